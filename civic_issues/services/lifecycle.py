"""
Issue lifecycle state machine.

All status changes go through ``transition``, which checks the single
transition table below, applies the side effects of the new status,
appends the StateHistory row and notifies the reporter. Nothing else
writes ``Issue.status``.
"""

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from civic_issues.errors import (
    InvalidTransitionError,
    PermissionDeniedError,
    ValidationFailedError,
)
from civic_issues.models import (
    ROLE_ADMIN,
    ROLE_CITIZEN,
    ROLE_DEPARTMENT,
    ROLE_MUNICIPAL,
    Department,
    Issue,
    StateHistory,
    User,
)
from civic_issues.services import performance, sla
from civic_issues.services.notifier import Notifier

logger = logging.getLogger(__name__)

# Actor role used by the scheduler and by automatic routing
SYSTEM = "system"

# Rejected "from->to" pairs since process start, reported by workflow analytics
invalid_attempts: Counter = Counter()

STAFF = frozenset({ROLE_MUNICIPAL, ROLE_ADMIN})
WORKERS = STAFF | {ROLE_DEPARTMENT}
ESCALATORS = STAFF | {SYSTEM}

# from status -> {to status: roles allowed to make the change}
TRANSITIONS: Dict[str, Dict[str, FrozenSet[str]]] = {
    "pending": {
        "acknowledged": STAFF,
        "assigned": STAFF | {SYSTEM},
        "rejected": STAFF,
        "escalated": ESCALATORS,
    },
    "acknowledged": {
        "assigned": STAFF | {SYSTEM},
        "rejected": STAFF,
        "escalated": ESCALATORS,
    },
    "assigned": {
        "assigned": STAFF,
        "in-progress": WORKERS,
        "rejected": STAFF,
        "escalated": ESCALATORS,
    },
    "in-progress": {
        "resolved": WORKERS,
        "escalated": ESCALATORS,
    },
    "escalated": {
        "assigned": STAFF,
        "in-progress": WORKERS,
        "resolved": WORKERS,
        "rejected": STAFF,
        "escalated": ESCALATORS,
    },
    "resolved": {
        "reopened": STAFF | {ROLE_CITIZEN},
    },
    "rejected": {
        "reopened": STAFF,
    },
    "reopened": {
        "assigned": STAFF,
        "in-progress": WORKERS,
        "rejected": STAFF,
        "escalated": ESCALATORS,
    },
}

# Target statuses that need an explanation from the actor
COMMENT_REQUIRED = {
    "resolved": "Resolution notes are required to resolve an issue",
    "rejected": "A reason is required to reject an issue",
}


def allowed_roles(from_status: str, to_status: str) -> FrozenSet[str]:
    return TRANSITIONS.get(from_status, {}).get(to_status, frozenset())


def next_statuses(from_status: str, role: str) -> list:
    """Statuses the given role may move an issue to from ``from_status``."""
    return [
        to_status
        for to_status, roles in TRANSITIONS.get(from_status, {}).items()
        if role in roles
    ]


def actor_role(actor: Optional[User]) -> str:
    return actor.role if actor is not None else SYSTEM


def check_transition(
    issue: Issue,
    to_status: str,
    actor: Optional[User],
    comment: Optional[str] = None,
) -> None:
    """
    Validate a status change without applying it.

    Raises:
        InvalidTransitionError: If the change is not in the table
        PermissionDeniedError: If the actor may not make the change
        ValidationFailedError: If a required comment or precondition is missing
    """
    from_status = issue.status
    if to_status not in TRANSITIONS.get(from_status, {}):
        invalid_attempts[f"{from_status}->{to_status}"] += 1
        logger.warning(f"Rejected status change {from_status} -> {to_status} on {issue.report_id}")
        raise InvalidTransitionError(from_status, to_status)

    role = actor_role(actor)
    if role not in allowed_roles(from_status, to_status):
        raise PermissionDeniedError(
            f"Role '{role}' cannot change status from '{from_status}' to '{to_status}'"
        )

    if role == ROLE_CITIZEN and str(actor.id) != str(issue.reported_by_id):
        raise PermissionDeniedError("Only the reporter can reopen this issue")

    if role == ROLE_DEPARTMENT and (
        actor.department_id is None
        or str(actor.department_id) != str(issue.assigned_department_id)
    ):
        raise PermissionDeniedError("Issue is not assigned to your department")

    if to_status in COMMENT_REQUIRED and not (comment and comment.strip()):
        raise ValidationFailedError(COMMENT_REQUIRED[to_status], details={"field": "comment"})

    if to_status == "assigned" and issue.assigned_department_id is None:
        raise ValidationFailedError(
            "A department must be set before assigning", details={"field": "department_id"}
        )

    if to_status == "escalated" and not sla.can_escalate(issue.escalation_level or 1):
        raise ValidationFailedError("Issue is already at the highest escalation level")


def set_assignment(
    issue: Issue,
    department: Department,
    staff: Optional[User] = None,
    department_head: Optional[User] = None,
) -> None:
    """Point an issue at a department (and optionally a staff member)."""
    issue.department = department
    issue.assigned_department_id = department.id
    issue.assigned_staff = staff
    issue.assigned_staff_id = staff.id if staff is not None else None
    if department_head is not None:
        issue.department_head = department_head
        issue.department_head_id = department_head.id


async def _last_history(db: AsyncSession, issue: Issue) -> Optional[StateHistory]:
    result = await db.execute(
        select(StateHistory)
        .where(StateHistory.issue_id == issue.id)
        .order_by(StateHistory.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def _append_history(
    db: AsyncSession,
    issue: Issue,
    from_status: Optional[str],
    to_status: str,
    actor: Optional[User],
    comment: Optional[str],
    now: datetime,
) -> StateHistory:
    last = await _last_history(db, issue)
    stamp = now
    if last is not None and stamp <= last.timestamp:
        # Keep per-issue timestamps strictly increasing
        stamp = last.timestamp + timedelta(microseconds=1)

    entry = StateHistory(
        issue_id=issue.id,
        from_status=from_status,
        status=to_status,
        changed_by_id=actor.id if actor is not None else None,
        comment=comment,
        timestamp=stamp,
    )
    db.add(entry)
    await db.flush()
    return entry


async def record_initial_state(
    db: AsyncSession,
    issue: Issue,
    actor: Optional[User],
    now: Optional[datetime] = None,
) -> StateHistory:
    """Write the first history row for a freshly created issue."""
    return await _append_history(
        db, issue, None, issue.status, actor, "Issue reported", now or issue.created_at or datetime.utcnow()
    )


async def transition(
    db: AsyncSession,
    issue: Issue,
    to_status: str,
    actor: Optional[User],
    comment: Optional[str] = None,
    notifier: Optional[Notifier] = None,
    now: Optional[datetime] = None,
) -> StateHistory:
    """
    Move an issue to a new status.

    Args:
        db: Database session
        issue: Issue to change
        to_status: Target status
        actor: User making the change, or None for the scheduler
        comment: Resolution notes, rejection reason, or free-form note
        notifier: Notifier used for reporter and department messages
        now: Transition time (default: utcnow)

    Returns:
        The StateHistory row that was appended

    Raises:
        InvalidTransitionError: If the change is not in the table
        PermissionDeniedError: If the actor may not make the change
        ValidationFailedError: If a required comment or precondition is missing
    """
    check_transition(issue, to_status, actor, comment)

    now = now or datetime.utcnow()
    from_status = issue.status
    escalation_record = None

    if to_status == "assigned":
        await performance.record_assignment(db, issue)

    elif to_status == "resolved":
        hours = sla.resolution_time_hours(issue.created_at, now)
        issue.resolved_at = now
        issue.resolution_time_hours = hours
        issue.resolution_notes = comment
        await performance.record_resolution(db, issue, hours)

    elif to_status == "rejected":
        issue.rejection_reason = comment

    elif to_status == "escalated":
        escalation_record = sla.escalate(issue, reason=comment, now=now)
        await performance.record_escalation(db, issue)

    elif to_status == "reopened":
        issue.resolved_at = None
        issue.rejection_reason = None

    issue.status = to_status
    issue.updated_at = now
    entry = await _append_history(db, issue, from_status, to_status, actor, comment, now)

    logger.info(
        f"Issue {issue.report_id}: {from_status} -> {to_status} "
        f"by {actor.email if actor is not None else SYSTEM}"
    )

    if notifier is not None:
        await _notify(db, notifier, issue, from_status, to_status, comment, escalation_record)

    return entry


async def _notify(
    db: AsyncSession,
    notifier: Notifier,
    issue: Issue,
    from_status: str,
    to_status: str,
    comment: Optional[str],
    escalation_record: Optional[dict],
) -> None:
    """Best-effort notifications; failures never undo the transition."""
    try:
        await notifier.status_changed(db, issue, issue.reporter, from_status, to_status, comment)
        if to_status == "assigned":
            await notifier.department_assigned(issue, issue.department)
        elif escalation_record is not None:
            await notifier.issue_escalated(issue, issue.department, escalation_record)
    except Exception as e:
        logger.warning(f"Notification for issue {issue.report_id} failed: {e}")
