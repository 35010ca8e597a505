"""Request-scoped collaborators: tenant context and caller identity."""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from slotbook.core.errors import BadRequestError
from slotbook.db.session import get_db
from slotbook.logging_utils import set_tenant_context
from slotbook.services.tenancy import CallerIdentity, TenantContext, load_tenant_context


def get_tenant_context(
    x_tenant_id: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> TenantContext:
    """Resolve the tenant supplied by the upstream tenant resolver."""

    if not x_tenant_id:
        raise BadRequestError("Tenant context required")
    try:
        tenant_id = UUID(x_tenant_id)
    except ValueError as exc:
        raise BadRequestError("Tenant context required") from exc

    ctx = load_tenant_context(db, tenant_id)
    set_tenant_context(ctx.tenant_id)
    return ctx


def get_caller(
    x_user_id: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
    x_user_name: str | None = Header(default=None),
    x_user_permissions: str | None = Header(default=None),
) -> CallerIdentity:
    """Build the caller identity forwarded by the authentication layer."""

    permissions = frozenset(
        item.strip() for item in (x_user_permissions or "").split(",") if item.strip()
    )
    return CallerIdentity(
        user_id=x_user_id or None,
        email=x_user_email or None,
        name=x_user_name or None,
        permissions=permissions,
    )
