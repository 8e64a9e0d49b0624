"""
Tests for background tasks and scheduler.

Tests the scheduler setup, the SLA sweep and the scheduled job wrapper.
"""

import pytest
import pytest_asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

from civic_issues.config import settings
from civic_issues.services import reporting
from civic_issues.tasks import (
    escalate_overdue_issues,
    get_job_status,
    scheduler,
    setup_scheduler,
    shutdown_scheduler,
    sla_sweep_job,
)

NOW = datetime(2026, 3, 10, 12, 0, 0)


@pytest_asyncio.fixture
async def clean_scheduler():
    yield scheduler
    scheduler.remove_all_jobs()
    shutdown_scheduler()


@pytest.mark.asyncio
@pytest.mark.tasks
class TestScheduler:
    """Test scheduler configuration and management."""

    async def test_sweep_scheduled_when_enabled(self, clean_scheduler):
        with patch.object(settings, "SLA_AUTO_ESCALATE", True):
            setup_scheduler()

        jobs = get_job_status()
        assert [job["id"] for job in jobs] == ["sla_sweep"]
        assert jobs[0]["name"] == "SLA Escalation Sweep"
        assert "interval" in jobs[0]["trigger"]
        assert scheduler.running

    async def test_sweep_not_scheduled_when_disabled(self, clean_scheduler):
        with patch.object(settings, "SLA_AUTO_ESCALATE", False):
            setup_scheduler()

        assert get_job_status() == []
        assert scheduler.running

    async def test_setup_twice_is_harmless(self, clean_scheduler):
        with patch.object(settings, "SLA_AUTO_ESCALATE", True):
            setup_scheduler()
            setup_scheduler()

        assert len(get_job_status()) == 1

    async def test_shutdown_scheduler(self, clean_scheduler):
        setup_scheduler()
        shutdown_scheduler()

        # Should be safe to call multiple times
        shutdown_scheduler()
        assert not scheduler.running

    async def test_restart_after_shutdown(self, clean_scheduler):
        with patch.object(settings, "SLA_AUTO_ESCALATE", True):
            setup_scheduler()
        scheduler.remove_all_jobs()
        shutdown_scheduler()

        with patch.object(settings, "SLA_AUTO_ESCALATE", False):
            setup_scheduler()

        assert scheduler.running
        assert get_job_status() == []


@pytest.mark.asyncio
@pytest.mark.tasks
class TestEscalateOverdueIssues:

    async def test_escalates_overdue_issue(self, db_session, citizen, roads_department, create_issue, notifier):
        issue = await create_issue(
            citizen,
            status="assigned",
            assigned_department_id=roads_department.id,
            sla_deadline=NOW - timedelta(hours=1),
        )
        db_session.expunge_all()

        stats = await escalate_overdue_issues(db_session, notifier=notifier, now=NOW)

        assert stats == {"checked": 1, "escalated": 1, "skipped": 0}
        refreshed = await reporting.get_issue(db_session, issue.id)
        assert refreshed.status == "escalated"
        assert refreshed.escalation_level == 2
        assert refreshed.escalation_history[0]["reason"] == "SLA deadline exceeded"
        assert ("escalated", issue.report_id, 2) in notifier.calls

    async def test_ignores_issues_within_sla(self, db_session, citizen, create_issue):
        await create_issue(citizen, sla_deadline=NOW + timedelta(hours=1))
        await create_issue(citizen, status="resolved", sla_deadline=NOW - timedelta(days=3))
        db_session.expunge_all()

        stats = await escalate_overdue_issues(db_session, now=NOW)

        assert stats == {"checked": 0, "escalated": 0, "skipped": 0}

    async def test_top_level_is_not_checked(self, db_session, citizen, create_issue):
        await create_issue(
            citizen, status="escalated", escalation_level=3, sla_deadline=NOW - timedelta(days=3)
        )
        db_session.expunge_all()

        stats = await escalate_overdue_issues(db_session, now=NOW)

        assert stats["checked"] == 0

    async def test_waits_a_window_after_last_escalation(self, db_session, citizen, create_issue):
        recent = {
            "level": 2,
            "escalated_at": (NOW - timedelta(hours=1)).isoformat(),
            "escalated_to": "Department Head",
            "reason": "SLA deadline exceeded",
        }
        issue = await create_issue(
            citizen,
            status="escalated",
            priority="high",
            escalation_level=2,
            escalation_history=[recent],
            sla_deadline=NOW - timedelta(hours=2),
        )
        db_session.expunge_all()

        stats = await escalate_overdue_issues(db_session, now=NOW)
        assert stats["escalated"] == 0

        stats = await escalate_overdue_issues(db_session, now=NOW + timedelta(hours=48))
        assert stats["escalated"] == 1
        refreshed = await reporting.get_issue(db_session, issue.id)
        assert refreshed.escalation_level == 3
        assert refreshed.priority == "urgent"


@pytest.mark.asyncio
@pytest.mark.tasks
class TestScheduledJobs:
    """Test scheduled job functions."""

    async def test_sla_sweep_job_commits(self):
        with patch("civic_issues.tasks.scheduler.AsyncSessionLocal") as mock_session, \
             patch("civic_issues.tasks.scheduler.escalate_overdue_issues") as mock_sweep, \
             patch("civic_issues.tasks.scheduler.get_notifier") as mock_get_notifier:

            mock_db = AsyncMock()
            mock_session.return_value.__aenter__.return_value = mock_db
            mock_sweep.return_value = {"checked": 2, "escalated": 1, "skipped": 0}
            mock_get_notifier.return_value = MagicMock()

            await sla_sweep_job()

            mock_sweep.assert_awaited_once()
            mock_db.commit.assert_awaited_once()
            mock_db.rollback.assert_not_awaited()

    async def test_sla_sweep_job_rolls_back_on_failure(self):
        with patch("civic_issues.tasks.scheduler.AsyncSessionLocal") as mock_session, \
             patch("civic_issues.tasks.scheduler.escalate_overdue_issues") as mock_sweep, \
             patch("civic_issues.tasks.scheduler.get_notifier"):

            mock_db = AsyncMock()
            mock_session.return_value.__aenter__.return_value = mock_db
            mock_sweep.side_effect = Exception("Database gone")

            with pytest.raises(Exception, match="Database gone"):
                await sla_sweep_job()

            mock_db.rollback.assert_awaited_once()
            mock_db.commit.assert_not_awaited()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
