"""
Citizen reporting workflow: filing, editing, upvoting, commenting,
feedback and staff assignment of issues.

Status changes are delegated to the lifecycle service; this module owns
everything else that mutates an Issue row.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from civic_issues.config import settings
from civic_issues.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from civic_issues.models import (
    ROLE_DEPARTMENT,
    STAFF_ROLES,
    Department,
    Issue,
    IssueComment,
    IssueUpvote,
    User,
)
from civic_issues.schemas.issue import IssueCreate, IssueResponse, IssueUpdate
from civic_issues.services import lifecycle, priority as priority_service, sla
from civic_issues.services.analyzer import analyze_report
from civic_issues.services.anonymizer import project_issue_view
from civic_issues.services.departments import find_department_for_category
from civic_issues.services.duplicates import DuplicateCandidate, find_duplicates
from civic_issues.services.notifier import Notifier

logger = logging.getLogger(__name__)

REPORT_ID_PREFIX = "R"
REPORT_ID_DIGITS = 5


def format_report_id(number: int) -> str:
    return f"{REPORT_ID_PREFIX}{number:0{REPORT_ID_DIGITS}d}"


async def next_report_id(db: AsyncSession) -> str:
    """Next sequential report id, e.g. R00042."""
    # Longer ids sort first so R100000 ranks above R99999
    result = await db.execute(
        select(Issue.report_id)
        .order_by(func.length(Issue.report_id).desc(), Issue.report_id.desc())
        .limit(1)
    )
    latest = result.scalar_one_or_none()
    if not latest:
        return format_report_id(1)
    return format_report_id(int(latest[len(REPORT_ID_PREFIX):]) + 1)


async def get_issue(db: AsyncSession, issue_id: UUID) -> Issue:
    """
    Load an issue with its relationships freshly populated.

    Raises:
        NotFoundError: If no issue has the id
    """
    result = await db.execute(
        select(Issue)
        .where(Issue.id == issue_id)
        .execution_options(populate_existing=True)
    )
    issue = result.scalar_one_or_none()
    if issue is None:
        raise NotFoundError("Issue", issue_id)
    return issue


async def has_upvoted(db: AsyncSession, issue_id: UUID, user_id: Optional[UUID]) -> bool:
    if user_id is None:
        return False
    result = await db.execute(
        select(IssueUpvote.id).where(
            IssueUpvote.issue_id == issue_id,
            IssueUpvote.user_id == user_id,
        )
    )
    return result.scalar_one_or_none() is not None


def is_staff(user: Optional[User]) -> bool:
    return user is not None and user.role in STAFF_ROLES


def is_owner(issue: Issue, user: Optional[User]) -> bool:
    return user is not None and str(issue.reported_by_id) == str(user.id)


def issue_view(
    issue: Issue,
    requester: Optional[User],
    upvoted: Optional[bool] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Serialize an issue and redact it for the requester.

    Adds the read-time SLA snapshot to the serialized record before the
    role-based projection runs.
    """
    data = IssueResponse.model_validate(issue).model_dump()
    snapshot = sla.sla_snapshot(issue.sla_deadline, issue.status, now)
    data["sla"] = {
        "deadline": snapshot.deadline,
        "hours_remaining": snapshot.hours_remaining,
        "is_overdue": snapshot.is_overdue,
        "escalation_level": issue.escalation_level or 1,
    }
    data["has_upvoted"] = upvoted

    role = requester.role if requester is not None else None
    requester_id = requester.id if requester is not None else None
    return project_issue_view(data, role, requester_id)


def candidate_summary(candidate: DuplicateCandidate) -> Dict[str, Any]:
    issue = candidate.issue
    return {
        "id": str(issue.id),
        "report_id": issue.report_id,
        "title": issue.title,
        "status": issue.status,
        "upvote_count": issue.upvote_count or 0,
        "distance_meters": candidate.distance_meters,
        "created_at": issue.created_at.isoformat(),
    }


async def create_issue(
    db: AsyncSession,
    data: IssueCreate,
    reporter: User,
    notifier: Optional[Notifier] = None,
    now: Optional[datetime] = None,
) -> Issue:
    """
    File a new report.

    Args:
        db: Database session
        data: Validated report payload
        reporter: Citizen filing the report
        notifier: Notifier for confirmation and status messages
        now: Creation time (default: utcnow)

    Returns:
        The new issue, routed to a department when one is configured

    Raises:
        ConflictError: If similar open issues exist nearby and ``force`` is false
    """
    now = now or datetime.utcnow()
    location = data.location
    category = data.category.value

    if not data.force:
        candidates = await find_duplicates(db, category, location.latitude, location.longitude, now=now)
        if candidates:
            raise ConflictError(
                "Similar issues were already reported nearby",
                details={"candidates": [candidate_summary(c) for c in candidates]},
            )

    priority = priority_service.calculate_priority(
        data.title, data.description, category, data.subcategory
    )

    ai_analysis = None
    if settings.AI_ANALYSIS_ENABLED and settings.ANTHROPIC_API_KEY:
        ai_analysis = await analyze_report(data.title, data.description, location.address)

    issue = Issue(
        report_id=await next_report_id(db),
        title=data.title,
        description=data.description,
        category=category,
        subcategory=data.subcategory,
        images=[image.model_dump() for image in data.images],
        status="pending",
        priority=priority,
        address=location.address,
        latitude=location.latitude,
        longitude=location.longitude,
        city=location.city,
        state=location.state,
        pincode=location.pincode,
        ward=location.ward,
        zone=location.zone,
        reporter=reporter,
        reported_by_id=reporter.id,
        department=None,
        assigned_staff=None,
        department_head=None,
        comments=[],
        upvote_count=0,
        sla_deadline=sla.calculate_deadline(priority, now),
        due_time=sla.calculate_due_time(now),
        escalation_level=1,
        escalation_history=[],
        penalty_points=0,
        ai_analysis=ai_analysis,
        created_at=now,
        updated_at=now,
    )
    db.add(issue)
    await db.flush()

    await lifecycle.record_initial_state(db, issue, reporter, now)
    logger.info(f"Issue {issue.report_id} reported by {reporter.email} with {priority} priority")

    department = await find_department_for_category(db, category)
    if department is not None:
        lifecycle.set_assignment(issue, department)
        await lifecycle.transition(
            db,
            issue,
            "assigned",
            None,
            comment=f"Automatically assigned to {department.name}",
            notifier=notifier,
            now=now,
        )

    if notifier is not None:
        try:
            await notifier.issue_reported(db, issue, reporter)
        except Exception as e:
            logger.warning(f"Confirmation for issue {issue.report_id} failed: {e}")

    await db.flush()
    return issue


async def update_issue(db: AsyncSession, issue: Issue, data: IssueUpdate, actor: User) -> Issue:
    """
    Edit the content of an issue.

    Reporters may edit while the issue is pending; staff at any time.

    Raises:
        PermissionDeniedError: If the actor may not edit the issue
    """
    if not is_staff(actor):
        if not is_owner(issue, actor):
            raise PermissionDeniedError("Only the reporter can edit this issue")
        if issue.status != "pending":
            raise PermissionDeniedError("Issues can only be edited while pending")

    changes = data.model_dump(exclude_unset=True)
    if "title" in changes and changes["title"] is not None:
        issue.title = changes["title"]
    if "description" in changes and changes["description"] is not None:
        issue.description = changes["description"]
    if "images" in changes and changes["images"] is not None:
        issue.images = changes["images"]

    issue.updated_at = datetime.utcnow()
    await db.flush()
    return issue


async def add_upvote(db: AsyncSession, issue: Issue, user: User) -> Issue:
    """
    Upvote an issue once per user and re-score its priority.

    Raises:
        ValidationFailedError: If the user already upvoted the issue
    """
    db.add(IssueUpvote(issue_id=issue.id, user_id=user.id))
    try:
        await db.flush()
    except IntegrityError:
        raise ValidationFailedError("Already upvoted")

    await db.execute(
        update(Issue)
        .where(Issue.id == issue.id)
        .values(upvote_count=Issue.upvote_count + 1)
        .execution_options(synchronize_session=False)
    )
    issue = await get_issue(db, issue.id)
    rescore_priority(issue)
    await db.flush()
    return issue


async def remove_upvote(db: AsyncSession, issue: Issue, user: User) -> Issue:
    """
    Withdraw an upvote. Priority is never lowered by this.

    Raises:
        ValidationFailedError: If the user has not upvoted the issue
    """
    result = await db.execute(
        delete(IssueUpvote).where(
            IssueUpvote.issue_id == issue.id,
            IssueUpvote.user_id == user.id,
        )
    )
    if result.rowcount == 0:
        raise ValidationFailedError("You have not upvoted this issue")

    await db.execute(
        update(Issue)
        .where(Issue.id == issue.id, Issue.upvote_count > 0)
        .values(upvote_count=Issue.upvote_count - 1)
        .execution_options(synchronize_session=False)
    )
    return await get_issue(db, issue.id)


def rescore_priority(issue: Issue) -> bool:
    """
    Re-run the scorer with the current upvote count.

    Raises the priority (and re-derives the SLA deadline) only when the
    new label is higher and staff have not overridden the priority.

    Returns:
        True if the priority changed
    """
    if issue.priority_overridden_by_id is not None:
        return False

    scored = priority_service.calculate_priority(
        issue.title,
        issue.description,
        issue.category,
        issue.subcategory,
        upvotes=issue.upvote_count or 0,
    )
    if priority_service.priority_rank(scored) <= priority_service.priority_rank(issue.priority):
        return False

    logger.info(f"Issue {issue.report_id} priority raised {issue.priority} -> {scored} by upvotes")
    issue.priority = scored
    issue.sla_deadline = sla.calculate_deadline(scored, issue.created_at)
    return True


async def override_priority(db: AsyncSession, issue: Issue, priority: str, actor: User) -> Issue:
    """Staff priority override; the SLA deadline follows the new priority."""
    issue.priority = priority
    issue.priority_overridden_by_id = actor.id
    issue.priority_overridden_at = datetime.utcnow()
    issue.sla_deadline = sla.calculate_deadline(priority, issue.created_at)
    issue.updated_at = datetime.utcnow()
    await db.flush()
    logger.info(f"Issue {issue.report_id} priority overridden to {priority} by {actor.email}")
    return issue


def can_comment(issue: Issue, user: User) -> bool:
    if is_owner(issue, user) or is_staff(user):
        return True
    return (
        user.role == ROLE_DEPARTMENT
        and user.department_id is not None
        and str(user.department_id) == str(issue.assigned_department_id)
    )


async def add_comment(db: AsyncSession, issue: Issue, author: User, text: str) -> IssueComment:
    """
    Raises:
        PermissionDeniedError: If the author may not comment on the issue
    """
    if not can_comment(issue, author):
        raise PermissionDeniedError("You cannot comment on this issue")

    comment = IssueComment(issue_id=issue.id, author_id=author.id, author=author, text=text)
    db.add(comment)
    await db.flush()
    return comment


async def submit_feedback(
    db: AsyncSession,
    issue: Issue,
    reporter: User,
    rating: int,
    is_resolved: bool,
    comment: Optional[str] = None,
    notifier: Optional[Notifier] = None,
) -> Issue:
    """
    Record the reporter's rating of a resolved issue.

    An ``is_resolved`` of False reopens the issue.

    Raises:
        PermissionDeniedError: If the user is not the reporter
        ValidationFailedError: If the issue is not resolved or was already rated
    """
    if not is_owner(issue, reporter):
        raise PermissionDeniedError("Only the reporter can rate this issue")
    if issue.status != "resolved":
        raise ValidationFailedError("Can only rate resolved issues")
    if issue.feedback_rating is not None:
        raise ValidationFailedError("You have already rated this issue")

    issue.feedback_rating = rating
    issue.feedback_is_resolved = is_resolved
    issue.feedback_comment = comment
    issue.feedback_submitted_at = datetime.utcnow()

    if not is_resolved:
        await lifecycle.transition(
            db,
            issue,
            "reopened",
            reporter,
            comment=comment or "Reporter says the problem is not fixed",
            notifier=notifier,
        )

    await db.flush()
    logger.info(f"Feedback for {issue.report_id}: {rating} stars, resolved={is_resolved}")
    return issue


async def assign_issue(
    db: AsyncSession,
    issue: Issue,
    department_id: UUID,
    actor: User,
    staff_id: Optional[UUID] = None,
    comment: Optional[str] = None,
    notifier: Optional[Notifier] = None,
) -> Issue:
    """
    Assign an issue to a department and optionally a staff member.

    Raises:
        NotFoundError: If the department or staff member does not exist
        ValidationFailedError: If either is unusable for the assignment
        InvalidTransitionError: If the issue cannot move to assigned
    """
    department = await db.get(Department, department_id)
    if department is None:
        raise NotFoundError("Department", department_id)
    if not department.is_active:
        raise ValidationFailedError("Department is not active", details={"field": "department_id"})

    staff = None
    if staff_id is not None:
        staff = await db.get(User, staff_id)
        if staff is None:
            raise NotFoundError("User", staff_id)
        if (
            staff.role != ROLE_DEPARTMENT
            or not staff.is_active
            or str(staff.department_id) != str(department.id)
        ):
            raise ValidationFailedError(
                "Staff member must be an active member of the department",
                details={"field": "staff_id"},
            )

    lifecycle.set_assignment(issue, department, staff)
    await lifecycle.transition(
        db,
        issue,
        "assigned",
        actor,
        comment=comment or f"Assigned to {department.name}",
        notifier=notifier,
    )
    return issue


async def delete_issue(db: AsyncSession, issue: Issue) -> None:
    await db.delete(issue)
    await db.flush()
    logger.info(f"Issue {issue.report_id} deleted")


def duplicate_candidates(candidates: List[DuplicateCandidate]) -> List[Dict[str, Any]]:
    return [candidate_summary(candidate) for candidate in candidates]
