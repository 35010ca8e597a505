"""Tenant-scoped data access for services, schedules and appointments."""

from __future__ import annotations

from collections.abc import Collection, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, time
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from slotbook.core.errors import ConflictError, InternalError
from slotbook.models import (
    BLOCKING_STATUSES,
    Appointment,
    AppointmentStatus,
    BlockType,
    Employee,
    Location,
    ScheduleBlock,
    Service,
    Weekday,
)
from slotbook.services.intervals import ensure_utc

# Name of the PostgreSQL exclusion constraint created by the migrations.
OVERLAP_CONSTRAINT = "ex_appointments_employee_no_overlap"


@contextmanager
def persistence(action: str) -> Iterator[None]:
    """Wrap storage errors with the failing action as context."""

    try:
        yield
    except IntegrityError as exc:
        if OVERLAP_CONSTRAINT in str(exc.orig):
            raise ConflictError("Time slot is already booked") from exc
        raise InternalError(f"Failed to {action}") from exc
    except SQLAlchemyError as exc:
        raise InternalError(f"Failed to {action}") from exc


@dataclass(frozen=True)
class WorkingBlock:
    """A working-hours block joined with employee and location names."""

    employee_id: UUID
    employee_name: str
    location_id: UUID
    location_name: str
    start_time: time
    end_time: time


@dataclass
class AppointmentFilters:
    location_id: UUID | None = None
    employee_id: UUID | None = None
    status: AppointmentStatus | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    user_id: str | None = None


class ServiceCatalog:
    """Read access to services, employees and locations of one tenant."""

    def __init__(self, db: Session, tenant_id: UUID) -> None:
        self.db = db
        self.tenant_id = tenant_id

    def get_service(self, service_id: UUID) -> Service | None:
        stmt = select(Service).where(
            Service.id == service_id, Service.tenant_id == self.tenant_id
        )
        with persistence("load service"):
            return self.db.execute(stmt).scalars().first()

    def get_location(self, location_id: UUID) -> Location | None:
        stmt = select(Location).where(
            Location.id == location_id, Location.tenant_id == self.tenant_id
        )
        with persistence("load location"):
            return self.db.execute(stmt).scalars().first()

    def get_employee(self, employee_id: UUID, *, lock: bool = False) -> Employee | None:
        """Return the employee; ``lock`` serializes bookings for them."""

        stmt = select(Employee).where(
            Employee.id == employee_id, Employee.tenant_id == self.tenant_id
        )
        if lock:
            stmt = stmt.with_for_update()
        with persistence("load employee"):
            return self.db.execute(stmt).scalars().first()


class ScheduleRepository:
    """Read access to recurring weekly schedule blocks."""

    def __init__(self, db: Session, tenant_id: UUID) -> None:
        self.db = db
        self.tenant_id = tenant_id

    def working_blocks(
        self,
        weekday: Weekday,
        *,
        location_id: UUID | None = None,
        employee_id: UUID | None = None,
    ) -> list[WorkingBlock]:
        stmt = (
            select(ScheduleBlock, Employee.name, Location.name)
            .join(Employee, Employee.id == ScheduleBlock.employee_id)
            .join(Location, Location.id == ScheduleBlock.location_id)
            .where(
                ScheduleBlock.tenant_id == self.tenant_id,
                ScheduleBlock.weekday == weekday,
                ScheduleBlock.block_type == BlockType.WORKING_HOURS,
            )
            .order_by(ScheduleBlock.start_time)
        )
        if location_id:
            stmt = stmt.where(ScheduleBlock.location_id == location_id)
        if employee_id:
            stmt = stmt.where(ScheduleBlock.employee_id == employee_id)

        with persistence("fetch schedules"):
            rows = self.db.execute(stmt).all()
        return [
            WorkingBlock(
                employee_id=block.employee_id,
                employee_name=employee_name,
                location_id=block.location_id,
                location_name=location_name,
                start_time=block.start_time,
                end_time=block.end_time,
            )
            for block, employee_name, location_name in rows
        ]


class AppointmentRepository:
    """CRUD and conflict queries for appointments of one tenant."""

    def __init__(self, db: Session, tenant_id: UUID) -> None:
        self.db = db
        self.tenant_id = tenant_id

    def get(self, appointment_id: UUID, *, for_update: bool = False) -> Appointment | None:
        stmt = select(Appointment).where(
            Appointment.id == appointment_id, Appointment.tenant_id == self.tenant_id
        )
        if for_update:
            stmt = stmt.with_for_update(of=Appointment)
        with persistence("load appointment"):
            return self.db.execute(stmt).scalars().first()

    def find(self, filters: AppointmentFilters) -> list[Appointment]:
        stmt = (
            select(Appointment)
            .where(Appointment.tenant_id == self.tenant_id)
            .order_by(Appointment.start_time)
        )
        if filters.location_id:
            stmt = stmt.where(Appointment.location_id == filters.location_id)
        if filters.employee_id:
            stmt = stmt.where(Appointment.employee_id == filters.employee_id)
        if filters.status:
            stmt = stmt.where(Appointment.status == filters.status)
        if filters.start_date:
            stmt = stmt.where(Appointment.start_time >= ensure_utc(filters.start_date))
        if filters.end_date:
            stmt = stmt.where(Appointment.start_time <= ensure_utc(filters.end_date))
        if filters.user_id:
            stmt = stmt.where(Appointment.user_id == filters.user_id)

        with persistence("fetch appointments"):
            return list(self.db.execute(stmt).scalars().all())

    def blocking_overlaps(
        self,
        employee_ids: Collection[UUID],
        start: datetime,
        end: datetime,
        *,
        exclude_id: UUID | None = None,
    ) -> list[Appointment]:
        """Return blocking appointments intersecting ``[start, end)``."""

        if not employee_ids:
            return []
        stmt = (
            select(Appointment)
            .where(
                Appointment.tenant_id == self.tenant_id,
                Appointment.employee_id.in_(list(employee_ids)),
                Appointment.status.in_(BLOCKING_STATUSES),
                Appointment.start_time < ensure_utc(end),
                Appointment.end_time > ensure_utc(start),
            )
            .order_by(Appointment.start_time)
        )
        if exclude_id:
            stmt = stmt.where(Appointment.id != exclude_id)
        with persistence("check for conflicts"):
            return list(self.db.execute(stmt).scalars().all())

    def add(self, appointment: Appointment) -> Appointment:
        with persistence("create appointment"):
            self.db.add(appointment)
            self.db.flush()
        return appointment

    def save(self, appointment: Appointment) -> Appointment:
        with persistence("update appointment"):
            self.db.flush()
        return appointment

    def delete(self, appointment: Appointment) -> None:
        with persistence("delete appointment"):
            self.db.delete(appointment)
            self.db.flush()

    def past_due_ids(self, *, before: datetime, not_before: datetime, limit: int) -> list[UUID]:
        """Ids of SCHEDULED appointments starting in ``[not_before, before)``."""

        stmt = (
            select(Appointment.id)
            .where(
                Appointment.tenant_id == self.tenant_id,
                Appointment.status == AppointmentStatus.SCHEDULED,
                Appointment.start_time < ensure_utc(before),
                Appointment.start_time >= ensure_utc(not_before),
            )
            .order_by(Appointment.start_time)
            .limit(limit)
        )
        with persistence("fetch past due appointments"):
            return list(self.db.execute(stmt).scalars().all())

    def cancel_scheduled(
        self,
        ids: Collection[UUID],
        *,
        canceled_by: str,
        reason: str,
        now: datetime,
    ) -> int:
        """Cancel the given appointments that are still SCHEDULED."""

        stmt = (
            update(Appointment)
            .where(
                Appointment.id.in_(list(ids)),
                Appointment.tenant_id == self.tenant_id,
                Appointment.status == AppointmentStatus.SCHEDULED,
            )
            .values(
                status=AppointmentStatus.CANCELLED,
                canceled_by=canceled_by,
                cancel_reason=reason,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        with persistence("cancel past due appointments"):
            result = self.db.execute(stmt)
        return int(result.rowcount or 0)
