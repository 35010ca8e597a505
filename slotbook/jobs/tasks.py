from __future__ import annotations

from typing import Any

from celery.utils.log import get_task_logger

from slotbook.db.session import SessionLocal
from slotbook.jobs.celery_app import celery_app
from slotbook.services.reconciliation import ReconciliationSweeper

logger = get_task_logger(__name__)


@celery_app.task(name="jobs.reconcile_past_due_appointments")
def reconcile_past_due_appointments() -> dict[str, Any]:
    """Auto-cancel appointments left SCHEDULED past the grace period."""

    report = ReconciliationSweeper(SessionLocal).run()
    if report.skipped:
        logger.warning("Previous reconciliation still running; nothing done")
    else:
        logger.info(
            "Reconciled %s tenants, cancelled %s appointments (%s failed)",
            report.tenants_processed,
            report.cancelled,
            len(report.tenants_failed),
        )
    return report.as_dict()
