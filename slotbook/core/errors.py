"""Domain errors raised by the availability and booking engines."""

from __future__ import annotations

from fastapi import status


class SlotbookError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class NotFoundError(SlotbookError):
    """A tenant-scoped entity does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(SlotbookError):
    """The requested interval overlaps an existing booking."""

    status_code = status.HTTP_409_CONFLICT


class BadRequestError(SlotbookError):
    """Malformed input or a rule violation by the caller."""

    status_code = status.HTTP_400_BAD_REQUEST


class InternalError(SlotbookError):
    """Persistence or configuration failure."""


__all__ = [
    "BadRequestError",
    "ConflictError",
    "InternalError",
    "NotFoundError",
    "SlotbookError",
]
