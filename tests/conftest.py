import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")

from collections.abc import Iterator
from datetime import datetime, time, timedelta, timezone
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from slotbook.db.base import Base
from slotbook.db.session import get_db
from slotbook.main import app
from slotbook.models import (
    Appointment,
    AppointmentStatus,
    BlockType,
    Employee,
    Location,
    ScheduleBlock,
    Service,
    Tenant,
    TenantStatus,
    Weekday,
)

# 2030-01-07 is a Monday.
MONDAY = datetime(2030, 1, 7).date()


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture()
def db_session(session_factory) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(session_factory) -> Iterator[TestClient]:
    def override_get_db():
        db = session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_tenant(session: Session, name: str, **kwargs) -> Tenant:
    kwargs.setdefault("status", TenantStatus.ACTIVE)
    kwargs.setdefault("timezone", "UTC")
    tenant = Tenant(name=name, **kwargs)
    session.add(tenant)
    session.flush()
    return tenant


def build_world(session: Session, *, name: str = "Demo Salon", **tenant_kwargs) -> SimpleNamespace:
    """One tenant, one location, two employees and a 30 minute service.

    Jamie works Mondays 09:00-17:00; Riley works Mondays 13:00-15:00.
    """

    tenant = make_tenant(
        session, name, settings={"reschedule_window_hours": 2}, **tenant_kwargs
    )
    location = Location(tenant_id=tenant.id, name="Downtown")
    jamie = Employee(tenant_id=tenant.id, name="Jamie")
    riley = Employee(tenant_id=tenant.id, name="Riley")
    service = Service(tenant_id=tenant.id, name="Haircut", duration_min=30, price_cents=3000)
    session.add_all([location, jamie, riley, service])
    session.flush()
    session.add_all(
        [
            ScheduleBlock(
                tenant_id=tenant.id,
                employee_id=jamie.id,
                location_id=location.id,
                weekday=Weekday.MONDAY,
                start_time=time(9, 0),
                end_time=time(17, 0),
                block_type=BlockType.WORKING_HOURS,
            ),
            ScheduleBlock(
                tenant_id=tenant.id,
                employee_id=jamie.id,
                location_id=location.id,
                weekday=Weekday.MONDAY,
                start_time=time(12, 0),
                end_time=time(13, 0),
                block_type=BlockType.BREAK,
            ),
            ScheduleBlock(
                tenant_id=tenant.id,
                employee_id=riley.id,
                location_id=location.id,
                weekday=Weekday.MONDAY,
                start_time=time(13, 0),
                end_time=time(15, 0),
                block_type=BlockType.WORKING_HOURS,
            ),
        ]
    )
    session.commit()
    return SimpleNamespace(
        tenant_id=tenant.id,
        location_id=location.id,
        employee_id=jamie.id,
        other_employee_id=riley.id,
        service_id=service.id,
    )


@pytest.fixture()
def world(db_session) -> SimpleNamespace:
    return build_world(db_session)


@pytest.fixture()
def headers(world) -> dict[str, str]:
    return {
        "X-Tenant-ID": str(world.tenant_id),
        "X-User-Id": "user-1",
        "X-User-Email": "casey@example.com",
    }


def insert_appointment(
    session: Session,
    world: SimpleNamespace,
    start: datetime,
    *,
    status: AppointmentStatus = AppointmentStatus.SCHEDULED,
    employee_id=None,
    tenant_id=None,
    minutes: int = 30,
) -> Appointment:
    appointment = Appointment(
        tenant_id=tenant_id or world.tenant_id,
        service_id=world.service_id,
        location_id=world.location_id,
        employee_id=employee_id or world.employee_id,
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        status=status,
        booked_by="seed@example.com",
        booked_by_name="seed",
        user_id="seed",
    )
    session.add(appointment)
    session.commit()
    return appointment


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)
