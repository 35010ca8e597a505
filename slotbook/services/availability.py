"""Slot generation from recurring working hours."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from slotbook.core.config import settings
from slotbook.core.errors import BadRequestError, NotFoundError
from slotbook.models import Weekday
from slotbook.services.intervals import (
    day_bounds,
    ensure_utc,
    intervals_overlap,
    slot_starts,
)
from slotbook.services.repositories import (
    AppointmentRepository,
    ScheduleRepository,
    ServiceCatalog,
)
from slotbook.services.tenancy import TenantContext

logger = logging.getLogger(__name__)


@dataclass
class TimeSlot:
    """A candidate start time for one employee."""

    time: str
    available: bool
    employee_id: UUID
    employee_name: str
    start_utc: datetime

    def as_dict(self) -> dict[str, str | bool]:
        return {
            "time": self.time,
            "available": self.available,
            "employeeId": str(self.employee_id),
            "employeeName": self.employee_name,
        }


@dataclass
class Availability:
    date: date
    time_slots: list[TimeSlot] = field(default_factory=list)

    def as_dict(self) -> dict[str, object]:
        return {
            "date": self.date.isoformat(),
            "timeSlots": [slot.as_dict() for slot in self.time_slots],
        }


def parse_target_date(raw: str | date) -> date:
    """Parse a YYYY-MM-DD string, raising ``BadRequestError`` otherwise."""

    if isinstance(raw, date):
        return raw
    try:
        return datetime.strptime(raw.strip(), "%Y-%m-%d").date()
    except (AttributeError, ValueError) as exc:
        raise BadRequestError("Invalid date format. Use YYYY-MM-DD.") from exc


class AvailabilityEngine:
    """Combine schedules, service duration and bookings into slots."""

    def __init__(
        self,
        db: Session,
        ctx: TenantContext,
        *,
        granularity_minutes: int | None = None,
    ) -> None:
        self.ctx = ctx
        self.catalog = ServiceCatalog(db, ctx.tenant_id)
        self.schedules = ScheduleRepository(db, ctx.tenant_id)
        self.appointments = AppointmentRepository(db, ctx.tenant_id)
        self.step = timedelta(
            minutes=granularity_minutes or settings.slot_granularity_minutes
        )

    def check(
        self,
        *,
        service_id: UUID,
        target_date: str | date,
        location_id: UUID | None = None,
        employee_id: UUID | None = None,
    ) -> Availability:
        day = parse_target_date(target_date)

        service = self.catalog.get_service(service_id)
        if service is None:
            raise NotFoundError("Service not found")
        if location_id and self.catalog.get_location(location_id) is None:
            raise NotFoundError("Location not found")
        if employee_id and self.catalog.get_employee(employee_id) is None:
            raise NotFoundError("Employee not found")

        weekday = Weekday.from_index(day.weekday())
        blocks = self.schedules.working_blocks(
            weekday, location_id=location_id, employee_id=employee_id
        )
        if not blocks:
            return Availability(date=day)

        duration = timedelta(minutes=service.duration_min)
        day_start, day_end = day_bounds(day, self.ctx.timezone)
        busy: dict[UUID, list[tuple[datetime, datetime]]] = defaultdict(list)
        for appointment in self.appointments.blocking_overlaps(
            {block.employee_id for block in blocks}, day_start, day_end
        ):
            busy[appointment.employee_id].append(
                (ensure_utc(appointment.start_time), ensure_utc(appointment.end_time))
            )

        slots: list[TimeSlot] = []
        for block in blocks:
            for local_start in slot_starts(
                day,
                block.start_time,
                block.end_time,
                duration=duration,
                step=self.step,
                tz=self.ctx.timezone,
            ):
                start = ensure_utc(local_start)
                end = start + duration
                taken = any(
                    intervals_overlap(start, end, other_start, other_end)
                    for other_start, other_end in busy[block.employee_id]
                )
                slots.append(
                    TimeSlot(
                        time=local_start.strftime("%H:%M"),
                        available=not taken,
                        employee_id=block.employee_id,
                        employee_name=block.employee_name,
                        start_utc=start,
                    )
                )

        slots.sort(key=lambda slot: (slot.start_utc, slot.employee_name))
        logger.debug(
            "computed availability",
            extra={
                "service_id": str(service_id),
                "date": day.isoformat(),
                "slots": len(slots),
                "blocks": len(blocks),
            },
        )
        return Availability(date=day, time_slots=slots)
