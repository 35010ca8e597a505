from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.orm import Session

from slotbook.core.config import settings
from slotbook.core.errors import InternalError, SlotbookError
from slotbook.db.session import get_db
from slotbook.dependencies import get_caller, get_tenant_context
from slotbook.logging_utils import configure_logging, get_request_id
from slotbook.middleware import (
    AccessLogMiddleware,
    RateLimitMiddleware,
    RequestContextMiddleware,
    SimpleRateLimiter,
)
from slotbook.models import AppointmentStatus
from slotbook.schemas import AppointmentCreate, AppointmentUpdate
from slotbook.services import (
    AppointmentFilters,
    AvailabilityEngine,
    BookingEngine,
    CallerIdentity,
    TenantContext,
    serialize_appointment,
)

configure_logging()

app = FastAPI(title=settings.app_name, version="0.1.0")

logger = logging.getLogger(__name__)

rate_limiter = SimpleRateLimiter(
    settings.rate_limit_requests, settings.rate_limit_window_seconds
)

app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RateLimitMiddleware, limiter=rate_limiter)
app.add_middleware(AccessLogMiddleware)


@app.exception_handler(SlotbookError)
async def slotbook_error_handler(request: Request, exc: SlotbookError) -> JSONResponse:
    """Translate domain errors into HTTP responses."""

    if isinstance(exc, InternalError):
        logger.error(
            "internal error",
            exc_info=exc,
            extra={"path": request.url.path, "request_id": get_request_id()},
        )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.get("/metrics")
def metrics() -> Response:
    """Expose Prometheus metrics for scraping."""

    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
def health() -> dict[str, str]:
    """Health check endpoint used by infrastructure probes."""

    return {"status": "ok"}


@app.get("/api/v1/availability")
def check_availability(
    date: str,
    service_id: UUID = Query(alias="serviceId"),
    location_id: UUID | None = Query(default=None, alias="locationId"),
    employee_id: UUID | None = Query(default=None, alias="employeeId"),
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Return every candidate slot for the date with an availability flag."""

    availability = AvailabilityEngine(db, ctx).check(
        service_id=service_id,
        target_date=date,
        location_id=location_id,
        employee_id=employee_id,
    )
    return availability.as_dict()


@app.get("/api/v1/appointments")
def list_appointments(
    location_id: UUID | None = Query(default=None, alias="locationId"),
    employee_id: UUID | None = Query(default=None, alias="employeeId"),
    appointment_status: AppointmentStatus | None = Query(default=None, alias="status"),
    start_date: datetime | None = Query(default=None, alias="startDate"),
    end_date: datetime | None = Query(default=None, alias="endDate"),
    ctx: TenantContext = Depends(get_tenant_context),
    caller: CallerIdentity = Depends(get_caller),
    db: Session = Depends(get_db),
) -> list[dict[str, Any]]:
    """List appointments for the tenant, oldest first."""

    filters = AppointmentFilters(
        location_id=location_id,
        employee_id=employee_id,
        status=appointment_status,
        start_date=start_date,
        end_date=end_date,
    )
    appointments = BookingEngine(db, ctx).list(filters, caller)
    return [serialize_appointment(appt, tz=ctx.timezone) for appt in appointments]


@app.get("/api/v1/appointments/{appointment_id}")
def get_appointment(
    appointment_id: UUID,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    appointment = BookingEngine(db, ctx).get(appointment_id)
    return serialize_appointment(appointment, tz=ctx.timezone)


@app.post("/api/v1/appointments", status_code=status.HTTP_201_CREATED)
def create_appointment(
    payload: AppointmentCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    caller: CallerIdentity = Depends(get_caller),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Book a slot; 409 when the employee is already busy."""

    appointment = BookingEngine(db, ctx).create(payload.to_request(), caller)
    return serialize_appointment(appointment, tz=ctx.timezone)


@app.patch("/api/v1/appointments/{appointment_id}")
def update_appointment(
    appointment_id: UUID,
    payload: AppointmentUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Change status and optionally reschedule an appointment."""

    appointment = BookingEngine(db, ctx).update(appointment_id, payload.to_change())
    return serialize_appointment(appointment, tz=ctx.timezone)


@app.delete(
    "/api/v1/appointments/{appointment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_appointment(
    appointment_id: UUID,
    ctx: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db),
) -> Response:
    """Delete a cancelled or past appointment."""

    BookingEngine(db, ctx).remove(appointment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
