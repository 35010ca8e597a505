from __future__ import annotations

import logging
from datetime import time

from sqlalchemy import select
from sqlalchemy.orm import Session

from slotbook.core.config import settings
from slotbook.db.session import SessionLocal
from slotbook.logging_utils import configure_logging, set_tenant_context
from slotbook.models import (
    BlockType,
    Employee,
    Location,
    ScheduleBlock,
    Service,
    Tenant,
    TenantStatus,
    Weekday,
)

logger = logging.getLogger(__name__)

DEMO_TENANT = "Slotbook Demo Salon"

SERVICE_CATALOG: list[tuple[str, int, int]] = [
    ("Haircut", 30, 3500),
    ("Colour", 90, 9000),
    ("Beard Trim", 15, 1500),
]

EMPLOYEES: list[str] = ["Alex Morgan", "Sam Rivera"]

WORKDAYS = (
    Weekday.MONDAY,
    Weekday.TUESDAY,
    Weekday.WEDNESDAY,
    Weekday.THURSDAY,
    Weekday.FRIDAY,
)

# (block type, start, end) repeated on every workday.
DAY_PLAN: list[tuple[BlockType, time, time]] = [
    (BlockType.WORKING_HOURS, time(9, 0), time(12, 0)),
    (BlockType.BREAK, time(12, 0), time(13, 0)),
    (BlockType.WORKING_HOURS, time(13, 0), time(17, 0)),
]


def ensure_tenant(session: Session) -> Tenant:
    tenant = session.execute(
        select(Tenant).where(Tenant.name == DEMO_TENANT)
    ).scalar_one_or_none()
    if tenant:
        set_tenant_context(tenant.id)
        logger.info("tenant already present", extra={"tenant": str(tenant.id)})
        return tenant

    tenant = Tenant(
        name=DEMO_TENANT,
        status=TenantStatus.ACTIVE,
        timezone=settings.timezone,
        settings={"reschedule_window_hours": settings.default_reschedule_window_hours},
    )
    session.add(tenant)
    session.flush()
    set_tenant_context(tenant.id)
    logger.info("created tenant", extra={"tenant": str(tenant.id)})
    return tenant


def ensure_location(session: Session, tenant: Tenant) -> Location:
    location = session.execute(
        select(Location).where(Location.tenant_id == tenant.id)
    ).scalars().first()
    if not location:
        location = Location(tenant_id=tenant.id, name="Main Street", address="1 Main Street")
        session.add(location)
        session.flush()
    return location


def ensure_services(session: Session, tenant: Tenant) -> list[Service]:
    created = 0
    services: list[Service] = []
    for name, duration, price in SERVICE_CATALOG:
        service = session.execute(
            select(Service).where(Service.tenant_id == tenant.id, Service.name == name)
        ).scalar_one_or_none()
        if not service:
            service = Service(
                tenant_id=tenant.id,
                name=name,
                duration_min=duration,
                price_cents=price,
            )
            session.add(service)
            session.flush()
            created += 1
        services.append(service)

    logger.info("ensured services", extra={"created_count": created, "total": len(services)})
    return services


def ensure_schedules(session: Session, tenant: Tenant, location: Location) -> list[Employee]:
    employees: list[Employee] = []
    created = 0
    for name in EMPLOYEES:
        employee = session.execute(
            select(Employee).where(Employee.tenant_id == tenant.id, Employee.name == name)
        ).scalar_one_or_none()
        if employee:
            employees.append(employee)
            continue

        employee = Employee(tenant_id=tenant.id, name=name)
        session.add(employee)
        session.flush()
        for weekday in WORKDAYS:
            for block_type, start, end in DAY_PLAN:
                session.add(
                    ScheduleBlock(
                        tenant_id=tenant.id,
                        employee_id=employee.id,
                        location_id=location.id,
                        weekday=weekday,
                        start_time=start,
                        end_time=end,
                        block_type=block_type,
                    )
                )
                created += 1
        employees.append(employee)

    session.flush()
    logger.info("ensured schedule blocks", extra={"created_count": created})
    return employees


def seed_demo(session: Session) -> Tenant:
    tenant = ensure_tenant(session)
    location = ensure_location(session, tenant)
    ensure_services(session, tenant)
    ensure_schedules(session, tenant, location)
    return tenant


def seed() -> None:
    configure_logging()
    logger.info("starting seed process")

    session = SessionLocal()
    try:
        tenant = seed_demo(session)
        session.commit()
        logger.info("seed complete", extra={"tenant": str(tenant.id)})
    except Exception:
        session.rollback()
        logger.exception("seed failed")
        raise
    finally:
        session.close()


if __name__ == "__main__":  # pragma: no cover - script entrypoint
    seed()
