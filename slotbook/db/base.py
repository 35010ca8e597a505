"""Import SQLAlchemy models for Alembic's autogenerate feature."""

from slotbook.models.base import Base
from slotbook.models import (  # noqa: F401
    Appointment,
    Employee,
    Location,
    ScheduleBlock,
    Service,
    Tenant,
)

__all__ = [
    "Base",
    "Appointment",
    "Employee",
    "Location",
    "ScheduleBlock",
    "Service",
    "Tenant",
]
