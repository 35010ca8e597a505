"""Availability, booking and reconciliation engines."""

from slotbook.services.availability import Availability, AvailabilityEngine, TimeSlot
from slotbook.services.booking import (
    AppointmentChange,
    BookingEngine,
    BookingRequest,
    serialize_appointment,
)
from slotbook.services.reconciliation import ReconciliationSweeper, SweepReport
from slotbook.services.repositories import (
    AppointmentFilters,
    AppointmentRepository,
    ScheduleRepository,
    ServiceCatalog,
)
from slotbook.services.tenancy import (
    CallerIdentity,
    TenantContext,
    TenantSettings,
    load_tenant_context,
)

__all__ = [
    "AppointmentChange",
    "AppointmentFilters",
    "AppointmentRepository",
    "Availability",
    "AvailabilityEngine",
    "BookingEngine",
    "BookingRequest",
    "CallerIdentity",
    "ReconciliationSweeper",
    "ScheduleRepository",
    "ServiceCatalog",
    "SweepReport",
    "TenantContext",
    "TenantSettings",
    "TimeSlot",
    "load_tenant_context",
    "serialize_appointment",
]
