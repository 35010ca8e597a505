"""Request bodies accepted by the HTTP API."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from slotbook.models import AppointmentStatus
from slotbook.services import AppointmentChange, BookingRequest


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class AppointmentCreate(CamelModel):
    service_id: UUID = Field(alias="serviceId")
    location_id: UUID = Field(alias="locationId")
    employee_id: UUID = Field(alias="employeeId")
    start_time: datetime = Field(alias="startTime")
    notes: str | None = None

    def to_request(self) -> BookingRequest:
        return BookingRequest(
            service_id=self.service_id,
            location_id=self.location_id,
            employee_id=self.employee_id,
            start_time=self.start_time,
            notes=self.notes,
        )


class AppointmentUpdate(CamelModel):
    status: AppointmentStatus
    start_time: datetime | None = Field(default=None, alias="startTime")
    canceled_by: str | None = Field(default=None, alias="canceledBy")
    cancel_reason: str | None = Field(default=None, alias="cancelReason")

    def to_change(self) -> AppointmentChange:
        return AppointmentChange(
            status=self.status,
            start_time=self.start_time,
            canceled_by=self.canceled_by,
            cancel_reason=self.cancel_reason,
        )
