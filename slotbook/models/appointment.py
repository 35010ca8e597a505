from __future__ import annotations

import enum
import uuid
from datetime import datetime

from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from slotbook.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from slotbook.models.employee import Employee
    from slotbook.models.location import Location
    from slotbook.models.service import Service


class AppointmentStatus(str, enum.Enum):
    """Possible statuses for an appointment lifecycle."""

    SCHEDULED = "SCHEDULED"
    FULFILLED = "FULFILLED"
    CANCELLED = "CANCELLED"


# Statuses that occupy the employee's time.
BLOCKING_STATUSES = (AppointmentStatus.SCHEDULED, AppointmentStatus.FULFILLED)

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset(
        {AppointmentStatus.FULFILLED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.FULFILLED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}


class Appointment(Base, TimestampMixin):
    """Booking of a service with an employee at a location."""

    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointments_employee_start", "employee_id", "start_time"),
        Index("ix_appointments_tenant_status_start", "tenant_id", "status", "start_time"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), index=True
    )
    service_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("services.id", ondelete="CASCADE"), nullable=False
    )
    location_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("locations.id", ondelete="CASCADE"), nullable=False
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # Captured from the service duration at booking time.
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[AppointmentStatus] = mapped_column(
        Enum(AppointmentStatus, name="appointment_status"),
        default=AppointmentStatus.SCHEDULED,
        nullable=False,
    )
    booked_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    booked_by_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    canceled_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    fulfillment_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    service: Mapped["Service"] = relationship(lazy="joined", innerjoin=True)
    employee: Mapped["Employee"] = relationship(lazy="joined", innerjoin=True)
    location: Mapped["Location"] = relationship(lazy="joined", innerjoin=True)
