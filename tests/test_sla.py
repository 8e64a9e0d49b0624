"""
Tests for SLA deadlines, overdue checks and escalation bookkeeping.
"""

import pytest
from datetime import datetime, timedelta
from types import SimpleNamespace

from civic_issues.services import sla

NOW = datetime(2026, 3, 2, 12, 0, 0)


def make_issue(**kwargs):
    defaults = {
        "status": "assigned",
        "priority": "medium",
        "sla_deadline": NOW - timedelta(hours=1),
        "escalation_level": 1,
        "escalation_history": [],
        "penalty_points": 0,
    }
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


@pytest.mark.services
class TestDeadlines:

    @pytest.mark.parametrize(
        "priority,hours",
        [("urgent", 24), ("high", 48), ("medium", 72), ("low", 120)],
    )
    def test_calculate_deadline(self, priority, hours):
        assert sla.calculate_deadline(priority, NOW) == NOW + timedelta(hours=hours)

    def test_unknown_priority_uses_medium_window(self):
        assert sla.sla_hours("whatever") == 72

    def test_due_time_is_one_week(self):
        assert sla.calculate_due_time(NOW) == NOW + timedelta(days=7)

    def test_hours_remaining_goes_negative(self):
        assert sla.hours_remaining(NOW + timedelta(hours=3), NOW) == pytest.approx(3.0)
        assert sla.hours_remaining(NOW - timedelta(minutes=30), NOW) == pytest.approx(-0.5)

    def test_is_overdue(self):
        past = NOW - timedelta(seconds=1)
        assert sla.is_overdue(past, "in-progress", NOW) is True
        assert sla.is_overdue(NOW + timedelta(hours=1), "in-progress", NOW) is False

    @pytest.mark.parametrize("status", ["resolved", "rejected"])
    def test_closed_issues_are_never_overdue(self, status):
        assert sla.is_overdue(NOW - timedelta(days=30), status, NOW) is False

    def test_sla_snapshot(self):
        snapshot = sla.sla_snapshot(NOW + timedelta(hours=10, minutes=6), "assigned", NOW)
        assert snapshot.hours_remaining == 10.1
        assert snapshot.is_overdue is False

    def test_resolution_time_rounds_up(self):
        assert sla.resolution_time_hours(NOW, NOW + timedelta(minutes=90)) == 2
        assert sla.resolution_time_hours(NOW, NOW + timedelta(hours=5)) == 5
        assert sla.resolution_time_hours(NOW, NOW) == 0

    def test_medium_issue_overdue_after_three_days(self):
        deadline = sla.calculate_deadline("medium", NOW)

        assert deadline == NOW + timedelta(hours=72)
        assert sla.is_overdue(deadline, "assigned", NOW + timedelta(hours=73)) is True
        assert sla.is_overdue(deadline, "assigned", NOW + timedelta(hours=71)) is False

    def test_is_sla_compliant(self):
        assert sla.is_sla_compliant("urgent", 24) is True
        assert sla.is_sla_compliant("urgent", 25) is False
        assert sla.is_sla_compliant("low", 120) is True


@pytest.mark.services
class TestEscalation:

    def test_escalate_updates_issue(self):
        issue = make_issue()

        record = sla.escalate(issue, now=NOW)

        assert issue.escalation_level == 2
        assert issue.penalty_points == 20
        assert issue.priority == "high"
        assert issue.escalation_history == [record]
        assert record == {
            "level": 2,
            "escalated_at": NOW.isoformat(),
            "escalated_to": "Department Head",
            "reason": "SLA deadline exceeded",
        }

    def test_second_escalation_reaches_top(self):
        issue = make_issue()
        sla.escalate(issue, now=NOW)
        record = sla.escalate(issue, reason="Still flooded", now=NOW + timedelta(hours=1))

        assert issue.escalation_level == 3
        assert issue.penalty_points == 20 + 30
        assert issue.priority == "urgent"
        assert record["escalated_to"] == "Commissioner/Mayor"
        assert record["reason"] == "Still flooded"
        assert len(issue.escalation_history) == 2

    def test_escalate_at_top_level_raises(self):
        issue = make_issue(escalation_level=3)

        with pytest.raises(ValueError):
            sla.escalate(issue, now=NOW)

        assert issue.escalation_level == 3
        assert issue.escalation_history == []

    def test_escalation_target_defaults_to_top(self):
        assert sla.escalation_target(1) == "Department Staff"
        assert sla.escalation_target(9) == "Commissioner/Mayor"


@pytest.mark.services
class TestDueForEscalation:

    def test_not_overdue(self):
        issue = make_issue(sla_deadline=NOW + timedelta(hours=2))
        assert sla.due_for_escalation(issue, NOW) is False

    def test_overdue_and_never_escalated(self):
        assert sla.due_for_escalation(make_issue(), NOW) is True

    def test_closed_issue(self):
        assert sla.due_for_escalation(make_issue(status="resolved"), NOW) is False

    def test_top_level(self):
        assert sla.due_for_escalation(make_issue(escalation_level=3), NOW) is False

    def test_waits_a_full_window_between_levels(self):
        issue = make_issue(priority="medium")
        sla.escalate(issue, now=NOW)
        # Escalation raised the priority to high: 48 hour window
        assert sla.due_for_escalation(issue, NOW + timedelta(hours=47)) is False
        assert sla.due_for_escalation(issue, NOW + timedelta(hours=48)) is True

    def test_last_escalated_at(self):
        issue = make_issue()
        assert sla.last_escalated_at(issue) is None
        sla.escalate(issue, now=NOW)
        assert sla.last_escalated_at(issue) == NOW
