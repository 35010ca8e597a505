"""SQLAlchemy models for the Slotbook API."""

from slotbook.models.appointment import (
    ALLOWED_TRANSITIONS,
    BLOCKING_STATUSES,
    Appointment,
    AppointmentStatus,
)
from slotbook.models.employee import Employee
from slotbook.models.location import Location
from slotbook.models.schedule_block import BlockType, ScheduleBlock, Weekday
from slotbook.models.service import Service
from slotbook.models.tenant import Tenant, TenantStatus

__all__ = [
    "ALLOWED_TRANSITIONS",
    "BLOCKING_STATUSES",
    "Appointment",
    "AppointmentStatus",
    "BlockType",
    "Employee",
    "Location",
    "ScheduleBlock",
    "Service",
    "Tenant",
    "TenantStatus",
    "Weekday",
]
