"""
KYS Application Background Jobs

Scheduled maintenance of registration applications:
1. Purge drafts abandoned for longer than DRAFT_RETENTION_DAYS

Design Principles:
- Jobs are idempotent (safe to run multiple times)
- Jobs handle their own database sessions
- Submitted applications are never touched

Schedule:
- Runs hourly; can also be triggered manually via the debug endpoints
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger

from kys_portal.core.config import settings
from kys_portal.core.database import async_session_maker
from kys_portal.core.scheduler import register_job
from kys_portal.modules.applications import repository
from kys_portal.modules.audit import repository as audit_repository
from kys_portal.modules.audit.models import AuditAction, AuditCategory

logger = logging.getLogger(__name__)

JOB_ID_PURGE_STALE_DRAFTS = "applications_purge_stale_drafts"


async def purge_stale_drafts() -> dict[str, Any]:
    """
    Delete drafts not updated within the retention window.

    Returns:
        Dict with job statistics: deleted, cutoff, duration_seconds
    """
    started_at = datetime.now(UTC)
    cutoff = started_at - timedelta(days=settings.draft_retention_days)

    logger.info(f"Purging drafts not updated since {cutoff.isoformat()}")

    async with async_session_maker() as db:
        deleted = await repository.delete_stale_drafts(db, cutoff)

        if deleted:
            audit_repository.record(
                db,
                action=AuditAction.DRAFTS_PURGED.value,
                resource="school_application",
                details=f"Purged {deleted} drafts untouched for {settings.draft_retention_days} days",
                extra={"deleted": deleted, "cutoff": cutoff.isoformat()},
                category=AuditCategory.SYSTEM,
            )
            await db.commit()

    duration = (datetime.now(UTC) - started_at).total_seconds()
    logger.info(f"Draft purge completed: deleted={deleted}, duration={duration:.2f}s")

    return {
        "deleted": deleted,
        "cutoff": cutoff.isoformat(),
        "duration_seconds": duration,
    }


def register_application_jobs() -> None:
    """Register the application background jobs with the scheduler."""
    register_job(
        job_id=JOB_ID_PURGE_STALE_DRAFTS,
        func=purge_stale_drafts,
        trigger=IntervalTrigger(hours=1),
    )
    logger.info(f"Registered job: {JOB_ID_PURGE_STALE_DRAFTS} (interval: 1 hour)")
