"""
Background job scheduler for SLA enforcement.

Uses APScheduler to run periodic jobs:
- SLA sweep: escalate overdue open issues (every SLA_SWEEP_INTERVAL_MINUTES)
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from civic_issues.config import settings
from civic_issues.database import AsyncSessionLocal
from civic_issues.errors import CivicIssuesError
from civic_issues.models import OPEN_STATUSES, Issue
from civic_issues.services import lifecycle, sla
from civic_issues.services.notifier import Notifier, get_notifier

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()


async def escalate_overdue_issues(
    db: AsyncSession,
    notifier: Optional[Notifier] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Escalate every open issue that is past its SLA deadline.

    Escalations are made by the system actor through the lifecycle
    service. An issue that cannot be escalated is logged and skipped.

    Args:
        db: Database session (the caller commits)
        notifier: Notifier for reporter and department messages
        now: Sweep time (default: utcnow)

    Returns:
        Dictionary with checked, escalated and skipped counts
    """
    now = now or datetime.utcnow()

    result = await db.execute(
        select(Issue)
        .where(
            and_(
                Issue.status.in_(OPEN_STATUSES),
                Issue.sla_deadline < now,
                Issue.escalation_level < sla.MAX_ESCALATION_LEVEL,
            )
        )
        .order_by(Issue.sla_deadline)
    )
    candidates = result.scalars().all()

    escalated = 0
    skipped = 0
    for issue in candidates:
        if not sla.due_for_escalation(issue, now):
            continue
        try:
            await lifecycle.transition(
                db,
                issue,
                "escalated",
                None,
                comment=sla.DEFAULT_ESCALATION_REASON,
                notifier=notifier,
                now=now,
            )
            escalated += 1
        except CivicIssuesError as e:
            logger.warning(f"Skipping escalation of {issue.report_id}: {e.message}")
            skipped += 1

    stats = {"checked": len(candidates), "escalated": escalated, "skipped": skipped}
    logger.info(f"SLA sweep complete: {stats}")
    return stats


async def sla_sweep_job():
    """Scheduled SLA sweep in its own session."""
    logger.info("Starting SLA sweep job")

    async with AsyncSessionLocal() as db:
        try:
            await escalate_overdue_issues(db, notifier=get_notifier())
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error(f"SLA sweep job failed: {e}", exc_info=True)
            raise


def setup_scheduler():
    """
    Configure and start the background scheduler.

    The SLA sweep is only scheduled when SLA_AUTO_ESCALATE is enabled.
    """
    if scheduler.running:
        logger.warning("Scheduler is already running")
        return

    # A restarted scheduler must not reuse the loop it was first started on
    scheduler.configure(event_loop=asyncio.get_running_loop())

    if settings.SLA_AUTO_ESCALATE:
        scheduler.add_job(
            sla_sweep_job,
            IntervalTrigger(minutes=settings.SLA_SWEEP_INTERVAL_MINUTES),
            id="sla_sweep",
            name="SLA Escalation Sweep",
            replace_existing=True,
            misfire_grace_time=600,  # 10 minute grace period
            coalesce=True  # Combine missed runs into one
        )
    else:
        logger.info("SLA auto-escalation disabled, sweep not scheduled")

    scheduler.start()
    logger.info("Background scheduler started successfully")


def shutdown_scheduler():
    """
    Gracefully shutdown the scheduler.
    Waits for running jobs to complete before shutting down.
    """
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background scheduler stopped")
    else:
        logger.info("Scheduler was not running")


def get_job_status() -> list:
    """
    Get status of all scheduled jobs.

    Returns:
        List of job status dictionaries containing:
        - id: Job identifier
        - name: Human-readable job name
        - next_run: ISO-formatted next run time (or None)
        - trigger: Trigger description
    """
    jobs = []
    for job in scheduler.get_jobs():
        next_run = getattr(job, "next_run_time", None)
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": next_run.isoformat() if next_run else None,
            "trigger": str(job.trigger)
        })
    return jobs
