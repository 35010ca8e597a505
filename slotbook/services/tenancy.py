"""Explicit tenant and caller context passed to every engine operation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slotbook.core.config import settings
from slotbook.core.errors import InternalError, NotFoundError
from slotbook.models import Tenant

logger = logging.getLogger(__name__)

ADMIN_PERMISSION = "admin"


class TenantSettings(BaseModel):
    """Per-tenant options stored in ``tenants.settings``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    reschedule_window_hours: float = Field(
        default_factory=lambda: settings.default_reschedule_window_hours,
        ge=0,
        validation_alias=AliasChoices("reschedule_window_hours", "rescheduleTimeLimit"),
    )


@dataclass(frozen=True)
class TenantContext:
    tenant_id: UUID
    timezone: ZoneInfo
    settings: TenantSettings = field(default_factory=TenantSettings)

    @property
    def reschedule_window_hours(self) -> float:
        return self.settings.reschedule_window_hours


@dataclass(frozen=True)
class CallerIdentity:
    """Identity forwarded by the upstream authentication layer."""

    user_id: str | None = None
    email: str | None = None
    name: str | None = None
    permissions: frozenset[str] = frozenset()

    @property
    def is_admin(self) -> bool:
        return ADMIN_PERMISSION in self.permissions

    @property
    def booker_email(self) -> str:
        return self.email or "unknown"

    @property
    def booker_name(self) -> str:
        return self.name or self.booker_email.split("@", 1)[0]

    @property
    def booker_id(self) -> str:
        return self.user_id or "unknown"


def resolve_timezone(name: str | None) -> ZoneInfo:
    """Return the named zone, falling back to the application default."""

    tz_name = name or settings.timezone
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InternalError(f"Unknown timezone '{tz_name}'") from exc


def build_tenant_context(tenant: Tenant) -> TenantContext:
    """Validate the tenant's stored settings into a context value."""

    try:
        tenant_settings = TenantSettings.model_validate(tenant.settings or {})
    except ValidationError as exc:
        logger.error(
            "invalid tenant settings",
            extra={"tenant": str(tenant.id), "errors": exc.errors()},
        )
        raise InternalError("Tenant settings are invalid") from exc

    return TenantContext(
        tenant_id=tenant.id,
        timezone=resolve_timezone(tenant.timezone),
        settings=tenant_settings,
    )


def load_tenant_context(db: Session, tenant_id: UUID) -> TenantContext:
    """Load the tenant row and build its context."""

    try:
        tenant = db.get(Tenant, tenant_id)
    except SQLAlchemyError as exc:
        raise InternalError("Failed to load tenant") from exc
    if tenant is None:
        raise NotFoundError("Tenant not found")
    return build_tenant_context(tenant)
