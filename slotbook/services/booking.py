"""Appointment creation, lifecycle transitions and deletion."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from slotbook.core.errors import BadRequestError, ConflictError, NotFoundError
from slotbook.metrics import BOOKING_CONFLICTS, BOOKINGS_CREATED
from slotbook.models import (
    ALLOWED_TRANSITIONS,
    BLOCKING_STATUSES,
    Appointment,
    AppointmentStatus,
)
from slotbook.models.base import utcnow
from slotbook.services.intervals import ensure_utc, to_utc_from_local
from slotbook.services.repositories import (
    AppointmentFilters,
    AppointmentRepository,
    ServiceCatalog,
)
from slotbook.services.tenancy import CallerIdentity, TenantContext

logger = logging.getLogger(__name__)

SLOT_TAKEN = "Time slot is already booked"


@dataclass
class BookingRequest:
    service_id: UUID
    location_id: UUID
    employee_id: UUID
    start_time: datetime
    notes: str | None = None


@dataclass
class AppointmentChange:
    status: AppointmentStatus
    start_time: datetime | None = None
    canceled_by: str | None = None
    cancel_reason: str | None = None


class BookingEngine:
    """Validate and persist appointment changes for one tenant.

    Bookings for an employee are serialized by locking the employee row
    before the overlap check, so the check and the insert see the same
    state. The storage layer adds an exclusion constraint on top.
    """

    def __init__(
        self,
        db: Session,
        ctx: TenantContext,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.ctx = ctx
        self.clock = clock
        self.catalog = ServiceCatalog(db, ctx.tenant_id)
        self.appointments = AppointmentRepository(db, ctx.tenant_id)

    def create(self, request: BookingRequest, booker: CallerIdentity) -> Appointment:
        service = self.catalog.get_service(request.service_id)
        if service is None:
            raise NotFoundError("Service not found")
        location = self.catalog.get_location(request.location_id)
        if location is None:
            raise NotFoundError("Location not found")
        employee = self.catalog.get_employee(request.employee_id, lock=True)
        if employee is None:
            raise NotFoundError("Employee not found")

        start = to_utc_from_local(request.start_time, self.ctx.timezone)
        end = start + timedelta(minutes=service.duration_min)
        self._ensure_free(employee.id, start, end)

        appointment = Appointment(
            tenant_id=self.ctx.tenant_id,
            service=service,
            location=location,
            employee=employee,
            start_time=start,
            end_time=end,
            status=AppointmentStatus.SCHEDULED,
            booked_by=booker.booker_email,
            booked_by_name=booker.booker_name,
            user_id=booker.booker_id,
            notes=request.notes,
        )
        self.appointments.add(appointment)
        BOOKINGS_CREATED.inc()
        logger.info(
            "appointment booked",
            extra={
                "appointment_id": str(appointment.id),
                "employee_id": str(employee.id),
                "start_time": start.isoformat(),
            },
        )
        return appointment

    def update(self, appointment_id: UUID, change: AppointmentChange) -> Appointment:
        appointment = self.get(appointment_id, for_update=True)
        now = self.clock()
        current_start = ensure_utc(appointment.start_time)

        new_start = (
            to_utc_from_local(change.start_time, self.ctx.timezone)
            if change.start_time is not None
            else None
        )
        moving = new_start is not None and new_start != current_start

        if moving and appointment.status == AppointmentStatus.FULFILLED:
            raise BadRequestError("Cannot reschedule a fulfilled appointment")

        if moving and appointment.status != AppointmentStatus.CANCELLED:
            window = self.ctx.reschedule_window_hours
            hours_until = (current_start - now).total_seconds() / 3600
            if hours_until < window:
                raise BadRequestError(
                    f"Cannot reschedule appointments less than {window:g} hours "
                    "before the appointment time"
                )

        if change.status != appointment.status and (
            change.status not in ALLOWED_TRANSITIONS[appointment.status]
        ):
            raise BadRequestError(
                f"Cannot change appointment status from {appointment.status.value} "
                f"to {change.status.value}"
            )

        if moving:
            duration = ensure_utc(appointment.end_time) - current_start
            new_end = new_start + duration
            if change.status in BLOCKING_STATUSES:
                self.catalog.get_employee(appointment.employee_id, lock=True)
                self._ensure_free(
                    appointment.employee_id, new_start, new_end, exclude_id=appointment.id
                )
            appointment.start_time = new_start
            appointment.end_time = new_end

        if (
            change.status == AppointmentStatus.FULFILLED
            and appointment.status != AppointmentStatus.FULFILLED
        ):
            appointment.fulfillment_date = now
        appointment.status = change.status

        if change.canceled_by:
            appointment.canceled_by = change.canceled_by
        if change.cancel_reason:
            appointment.cancel_reason = change.cancel_reason

        self.appointments.save(appointment)
        logger.info(
            "appointment updated",
            extra={
                "appointment_id": str(appointment.id),
                "status": appointment.status.value,
                "rescheduled": moving,
            },
        )
        return appointment

    def remove(self, appointment_id: UUID) -> None:
        appointment = self.get(appointment_id, for_update=True)
        is_past = ensure_utc(appointment.start_time) < self.clock()
        if not is_past and appointment.status != AppointmentStatus.CANCELLED:
            raise BadRequestError(
                "Cannot delete appointment. It must be either cancelled "
                "or past its scheduled date."
            )
        self.appointments.delete(appointment)
        logger.info("appointment deleted", extra={"appointment_id": str(appointment_id)})

    def get(self, appointment_id: UUID, *, for_update: bool = False) -> Appointment:
        appointment = self.appointments.get(appointment_id, for_update=for_update)
        if appointment is None:
            raise NotFoundError(f"Appointment with ID {appointment_id} not found")
        return appointment

    def list(self, filters: AppointmentFilters, caller: CallerIdentity) -> list[Appointment]:
        """List appointments; non-admin callers only see their own bookings."""

        if caller.user_id and not caller.is_admin:
            filters.user_id = caller.user_id
        if filters.start_date is not None:
            filters.start_date = to_utc_from_local(filters.start_date, self.ctx.timezone)
        if filters.end_date is not None:
            filters.end_date = to_utc_from_local(filters.end_date, self.ctx.timezone)
        return self.appointments.find(filters)

    def _ensure_free(
        self,
        employee_id: UUID,
        start: datetime,
        end: datetime,
        *,
        exclude_id: UUID | None = None,
    ) -> None:
        conflicts = self.appointments.blocking_overlaps(
            [employee_id], start, end, exclude_id=exclude_id
        )
        if conflicts:
            BOOKING_CONFLICTS.inc()
            logger.info(
                "booking conflict",
                extra={
                    "employee_id": str(employee_id),
                    "start_time": start.isoformat(),
                    "conflicting_id": str(conflicts[0].id),
                },
            )
            raise ConflictError(SLOT_TAKEN)


def serialize_appointment(appointment: Appointment, *, tz: ZoneInfo) -> dict[str, Any]:
    """Return a JSON-friendly representation of an appointment."""

    start = ensure_utc(appointment.start_time)
    end = ensure_utc(appointment.end_time)
    return {
        "id": str(appointment.id),
        "tenantId": str(appointment.tenant_id),
        "serviceId": str(appointment.service_id),
        "serviceName": appointment.service.name if appointment.service else None,
        "locationId": str(appointment.location_id),
        "locationName": appointment.location.name if appointment.location else None,
        "employeeId": str(appointment.employee_id),
        "employeeName": appointment.employee.name if appointment.employee else None,
        "startTime": start.isoformat(),
        "endTime": end.isoformat(),
        "startTimeLocal": start.astimezone(tz).isoformat(),
        "status": appointment.status.value,
        "bookedBy": appointment.booked_by,
        "bookedByName": appointment.booked_by_name,
        "userId": appointment.user_id,
        "canceledBy": appointment.canceled_by,
        "cancelReason": appointment.cancel_reason,
        "fulfillmentDate": ensure_utc(appointment.fulfillment_date).isoformat()
        if appointment.fulfillment_date
        else None,
        "notes": appointment.notes,
        "createdAt": ensure_utc(appointment.created_at).isoformat()
        if appointment.created_at
        else None,
        "updatedAt": ensure_utc(appointment.updated_at).isoformat()
        if appointment.updated_at
        else None,
    }
