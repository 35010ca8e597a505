"""Periodic cancellation of appointments nobody closed out."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Protocol
from uuid import UUID

import redis
from dateutil.relativedelta import relativedelta
from redis.exceptions import LockError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slotbook.core.config import Settings, settings as default_settings
from slotbook.logging_utils import tenant_log_context
from slotbook.metrics import SWEEP_CANCELLED, SWEEP_TENANT_FAILURES
from slotbook.models import Tenant, TenantStatus
from slotbook.models.base import utcnow
from slotbook.services.repositories import AppointmentRepository

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"
AUTO_CANCEL_REASON = "Automatically cancelled - no status update was provided"
SWEEP_LOCK_NAME = "slotbook:sweep:past-due"


class RunLock(Protocol):
    def acquire(self, blocking: bool = ...) -> bool: ...

    def release(self) -> None: ...


@dataclass
class SweepReport:
    started_at: datetime
    skipped: bool = False
    tenants_processed: int = 0
    tenants_failed: list[UUID] = field(default_factory=list)
    cancelled: int = 0

    def as_dict(self) -> dict[str, object]:
        return {
            "started_at": self.started_at.isoformat(),
            "skipped": self.skipped,
            "tenants_processed": self.tenants_processed,
            "tenants_failed": [str(tenant_id) for tenant_id in self.tenants_failed],
            "cancelled": self.cancelled,
        }


def redis_run_lock(config: Settings = default_settings) -> RunLock:
    """Return the shared Redis lock that keeps sweeps from overlapping."""

    client = redis.Redis.from_url(config.redis_url)
    return client.lock(SWEEP_LOCK_NAME, timeout=config.sweep_lock_timeout_seconds)


class ReconciliationSweeper:
    """Cancel SCHEDULED appointments left open past the grace period.

    Each batch is written in its own transaction; a failing tenant is
    logged and skipped so the remaining tenants are still processed.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        lock: RunLock | None = None,
        clock: Callable[[], datetime] = utcnow,
        config: Settings = default_settings,
    ) -> None:
        self.session_factory = session_factory
        self.lock = lock if lock is not None else redis_run_lock(config)
        self.clock = clock
        self.grace_period = timedelta(hours=config.sweep_grace_period_hours)
        self.lookback = relativedelta(months=config.sweep_lookback_months)
        self.batch_size = config.sweep_batch_size
        self.max_per_tenant = config.sweep_max_per_tenant

    def run(self) -> SweepReport:
        report = SweepReport(started_at=self.clock())
        if not self.lock.acquire(blocking=False):
            logger.warning("past due sweep already running, skipping")
            report.skipped = True
            return report

        try:
            logger.info("processing past due appointments")
            try:
                tenant_ids = self._active_tenants()
            except SQLAlchemyError:
                logger.exception("failed to fetch tenants for past due sweep")
                return report
            for tenant_id in tenant_ids:
                try:
                    with tenant_log_context(tenant_id):
                        self.sweep_tenant(tenant_id, now=report.started_at, report=report)
                    report.tenants_processed += 1
                except Exception:
                    SWEEP_TENANT_FAILURES.inc()
                    report.tenants_failed.append(tenant_id)
                    logger.exception(
                        "past due sweep failed for tenant",
                        extra={"tenant": str(tenant_id)},
                    )
        finally:
            try:
                self.lock.release()
            except LockError:
                logger.warning("past due sweep lock expired before release")

        logger.info("processed past due appointments", extra=report.as_dict())
        return report

    def sweep_tenant(
        self, tenant_id: UUID, *, now: datetime, report: SweepReport | None = None
    ) -> int:
        """Cancel one tenant's past-due appointments in bounded batches.

        Each committed batch is added to ``report`` right after its commit.
        """

        before = now - self.grace_period
        not_before = now - self.lookback

        with self.session_factory() as db:
            ids = AppointmentRepository(db, tenant_id).past_due_ids(
                before=before, not_before=not_before, limit=self.max_per_tenant
            )
        if not ids:
            return 0

        logger.info(
            "found past due appointments to cancel",
            extra={"tenant": str(tenant_id), "count": len(ids)},
        )
        cancelled = 0
        for offset in range(0, len(ids), self.batch_size):
            batch = ids[offset : offset + self.batch_size]
            with self.session_factory() as db, db.begin():
                updated = AppointmentRepository(db, tenant_id).cancel_scheduled(
                    batch,
                    canceled_by=SYSTEM_ACTOR,
                    reason=AUTO_CANCEL_REASON,
                    now=now,
                )
            cancelled += updated
            if report is not None:
                report.cancelled += updated
            SWEEP_CANCELLED.inc(updated)
            logger.info(
                "cancelled past due appointments",
                extra={"tenant": str(tenant_id), "count": updated},
            )
        return cancelled

    def _active_tenants(self) -> list[UUID]:
        with self.session_factory() as db:
            stmt = (
                select(Tenant.id)
                .where(Tenant.status == TenantStatus.ACTIVE)
                .order_by(Tenant.created_at)
            )
            return list(db.execute(stmt).scalars().all())
