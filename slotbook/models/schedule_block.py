from __future__ import annotations

import enum
import uuid
from datetime import time

from sqlalchemy import CheckConstraint, Enum, ForeignKey, Time, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from slotbook.models.base import Base, TimestampMixin


class Weekday(str, enum.Enum):
    """Days of the week, ordered like ``date.weekday()``."""

    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"

    @classmethod
    def from_index(cls, index: int) -> "Weekday":
        return list(cls)[index]


class BlockType(str, enum.Enum):
    """Kind of recurring interval; only working hours produce slots."""

    WORKING_HOURS = "WORKING_HOURS"
    BREAK = "BREAK"
    VACATION = "VACATION"


class ScheduleBlock(Base, TimestampMixin):
    """Recurring weekly interval for an employee at a location."""

    __tablename__ = "schedule_blocks"
    __table_args__ = (CheckConstraint("start_time < end_time", name="start_before_end"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), index=True
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("employees.id", ondelete="CASCADE"), index=True
    )
    location_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("locations.id", ondelete="CASCADE"), index=True
    )
    weekday: Mapped[Weekday] = mapped_column(
        Enum(Weekday, name="weekday"), nullable=False
    )
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    block_type: Mapped[BlockType] = mapped_column(
        Enum(BlockType, name="schedule_block_type"),
        default=BlockType.WORKING_HOURS,
        nullable=False,
    )
