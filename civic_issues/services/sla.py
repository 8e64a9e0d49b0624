"""
SLA deadlines, overdue checks and escalation bookkeeping.

Everything here is a pure function of its inputs except ``escalate``,
which updates the SLA fields of the issue it is given in place.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from civic_issues.models import CLOSED_STATUSES
from civic_issues.services.priority import raise_priority

SLA_HOURS = {
    "urgent": 24,
    "high": 48,
    "medium": 72,
    "low": 120,
}

# Citizens may expect an outcome within a week regardless of priority
DUE_TIME_DAYS = 7

MAX_ESCALATION_LEVEL = 3

ESCALATION_TARGETS = {
    1: "Department Staff",
    2: "Department Head",
    3: "Commissioner/Mayor",
}

DEFAULT_ESCALATION_REASON = "SLA deadline exceeded"


@dataclass(frozen=True)
class SlaSnapshot:
    """Read-time SLA view of an issue."""
    deadline: datetime
    hours_remaining: float
    is_overdue: bool


def sla_hours(priority: str) -> int:
    return SLA_HOURS.get(priority, SLA_HOURS["medium"])


def calculate_deadline(priority: str, created_at: datetime) -> datetime:
    """Deadline = creation time + the SLA hours for the priority."""
    return created_at + timedelta(hours=sla_hours(priority))


def calculate_due_time(created_at: datetime) -> datetime:
    return created_at + timedelta(days=DUE_TIME_DAYS)


def hours_remaining(deadline: datetime, now: Optional[datetime] = None) -> float:
    """Hours until the deadline; negative once it has passed."""
    now = now or datetime.utcnow()
    return (deadline - now).total_seconds() / 3600


def is_overdue(deadline: datetime, status: str, now: Optional[datetime] = None) -> bool:
    """
    An issue is overdue once its deadline has passed, unless it is
    already resolved or rejected.
    """
    if status in CLOSED_STATUSES:
        return False
    return hours_remaining(deadline, now) < 0


def sla_snapshot(deadline: datetime, status: str, now: Optional[datetime] = None) -> SlaSnapshot:
    now = now or datetime.utcnow()
    return SlaSnapshot(
        deadline=deadline,
        hours_remaining=round(hours_remaining(deadline, now), 2),
        is_overdue=is_overdue(deadline, status, now),
    )


def resolution_time_hours(created_at: datetime, resolved_at: datetime) -> int:
    """Whole hours from report to resolution, rounded up."""
    elapsed = (resolved_at - created_at).total_seconds() / 3600
    return max(0, math.ceil(elapsed))


def is_sla_compliant(priority: str, resolution_hours: int) -> bool:
    return resolution_hours <= sla_hours(priority)


def escalation_target(level: int) -> str:
    return ESCALATION_TARGETS.get(level, ESCALATION_TARGETS[MAX_ESCALATION_LEVEL])


def can_escalate(level: int) -> bool:
    return level < MAX_ESCALATION_LEVEL


def escalate(issue, reason: Optional[str] = None, now: Optional[datetime] = None) -> dict:
    """
    Raise an issue's escalation level by one.

    Updates ``escalation_level``, ``escalation_history``, ``penalty_points``
    and ``priority`` on the issue. Status is left to the lifecycle service.

    Args:
        issue: Issue-like object with the SLA attributes
        reason: Why the issue is escalated (default: SLA deadline exceeded)
        now: Escalation time (default: utcnow)

    Returns:
        The escalation record that was appended to the history

    Raises:
        ValueError: If the issue is already at the top escalation level
    """
    current = issue.escalation_level or 1
    if not can_escalate(current):
        raise ValueError(f"Issue is already at escalation level {MAX_ESCALATION_LEVEL}")

    now = now or datetime.utcnow()
    level = current + 1
    record = {
        "level": level,
        "escalated_at": now.isoformat(),
        "escalated_to": escalation_target(level),
        "reason": reason or DEFAULT_ESCALATION_REASON,
    }

    issue.escalation_level = level
    # Reassign so the JSON column is flagged as changed
    issue.escalation_history = list(issue.escalation_history or []) + [record]
    issue.penalty_points = (issue.penalty_points or 0) + level * 10
    issue.priority = raise_priority(issue.priority)

    return record


def last_escalated_at(issue) -> Optional[datetime]:
    history = issue.escalation_history or []
    if not history:
        return None
    return datetime.fromisoformat(history[-1]["escalated_at"])


def due_for_escalation(issue, now: Optional[datetime] = None) -> bool:
    """
    Whether the SLA sweep should escalate an issue now.

    An overdue issue is escalated once; each further level waits another
    full SLA window (for its current priority) after the last escalation.
    """
    now = now or datetime.utcnow()
    if not can_escalate(issue.escalation_level or 1):
        return False
    if not is_overdue(issue.sla_deadline, issue.status, now):
        return False

    previous = last_escalated_at(issue)
    if previous is None:
        return True
    return now - previous >= timedelta(hours=sla_hours(issue.priority))
