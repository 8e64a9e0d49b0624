"""
Issues API endpoints: reporting, reading, community actions and staff
workflow for citizen-reported civic issues.
"""

import math
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from civic_issues.api.deps import get_current_user, get_db, get_optional_user, require_roles
from civic_issues.config import settings
from civic_issues.models import (
    ROLE_ADMIN,
    ROLE_CITIZEN,
    ROLE_DEPARTMENT,
    ROLE_MUNICIPAL,
    Issue,
    IssueUpvote,
    StateHistory,
    User,
)
from civic_issues.schemas import (
    AssignRequest,
    CategoryEnum,
    CommentCreate,
    CommentResponse,
    DuplicateCheckResponse,
    EscalateRequest,
    FeedbackRequest,
    IssueCreate,
    IssueResponse,
    IssueUpdate,
    MessageResponse,
    PaginatedResponse,
    PriorityEnum,
    PriorityOverrideRequest,
    StateHistoryResponse,
    StatusChangeRequest,
    StatusEnum,
    UpvoteResponse,
)
from civic_issues.services import lifecycle, reporting
from civic_issues.services.duplicates import find_duplicates
from civic_issues.services.notifier import Notifier, get_notifier

router = APIRouter(prefix="/issues", tags=["issues"])

staff_only = require_roles(ROLE_MUNICIPAL, ROLE_ADMIN)


def _filters(
    status: Optional[StatusEnum],
    category: Optional[CategoryEnum],
    priority: Optional[PriorityEnum],
    department_id: Optional[UUID],
    search: Optional[str],
) -> list:
    filters = []

    if status:
        filters.append(Issue.status == status.value)

    if category:
        filters.append(Issue.category == category.value)

    if priority:
        filters.append(Issue.priority == priority.value)

    if department_id:
        filters.append(Issue.assigned_department_id == department_id)

    if search:
        search_pattern = f"%{search}%"
        filters.append(
            or_(
                Issue.title.ilike(search_pattern),
                Issue.description.ilike(search_pattern),
                Issue.report_id.ilike(search_pattern),
            )
        )

    return filters


async def _upvoted_ids(db: AsyncSession, user: Optional[User], issue_ids: List[UUID]) -> set:
    if user is None or not issue_ids:
        return set()
    result = await db.execute(
        select(IssueUpvote.issue_id).where(
            IssueUpvote.user_id == user.id,
            IssueUpvote.issue_id.in_(issue_ids),
        )
    )
    return {row[0] for row in result}


async def _paginate(
    db: AsyncSession,
    filters: list,
    page: int,
    per_page: int,
    requester: Optional[User],
) -> PaginatedResponse:
    query = select(Issue)
    count_query = select(func.count()).select_from(Issue)

    if filters:
        query = query.where(and_(*filters))
        count_query = count_query.where(and_(*filters))

    total_result = await db.execute(count_query)
    total = total_result.scalar_one()

    query = query.order_by(Issue.created_at.desc())
    offset = (page - 1) * per_page
    result = await db.execute(query.offset(offset).limit(per_page))
    issues = result.scalars().all()

    upvoted = await _upvoted_ids(db, requester, [issue.id for issue in issues])
    pages = math.ceil(total / per_page) if total > 0 else 0

    return PaginatedResponse(
        items=[
            reporting.issue_view(issue, requester, upvoted=issue.id in upvoted if requester else None)
            for issue in issues
        ],
        total=total,
        page=page,
        per_page=per_page,
        pages=pages
    )


async def _detail(db: AsyncSession, issue_id: UUID, user: Optional[User]) -> dict:
    issue = await reporting.get_issue(db, issue_id)
    upvoted = await reporting.has_upvoted(db, issue.id, user.id) if user else None
    return reporting.issue_view(issue, user, upvoted=upvoted)


@router.get("", response_model=PaginatedResponse[IssueResponse])
async def list_issues(
    status: Optional[StatusEnum] = None,
    category: Optional[CategoryEnum] = None,
    priority: Optional[PriorityEnum] = None,
    department_id: Optional[UUID] = None,
    search: Optional[str] = Query(None, max_length=100),
    scope: Optional[str] = Query(None, pattern="^(mine|all)$"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    List issues visible to the caller.

    - citizens: their own reports, or everyone's (anonymized) with scope=all
    - department staff: issues assigned to their department
    - municipal and admin: every issue

    Filters: status, category, priority, department_id, search (title,
    description or report id). Sorted newest first.
    """
    filters = _filters(status, category, priority, department_id, search)

    if user.role == ROLE_CITIZEN and scope != "all":
        filters.append(Issue.reported_by_id == user.id)
    elif user.role == ROLE_DEPARTMENT:
        filters.append(Issue.assigned_department_id == user.department_id)

    return await _paginate(db, filters, page, per_page, user)


@router.get("/public", response_model=PaginatedResponse[IssueResponse])
async def list_public_issues(
    response: Response,
    status: Optional[StatusEnum] = None,
    category: Optional[CategoryEnum] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Anonymized issue feed for the public map; cacheable."""
    response.headers["Cache-Control"] = f"public, max-age={settings.PUBLIC_CACHE_SECONDS}"
    filters = _filters(status, category, None, None, None)
    return await _paginate(db, filters, page, per_page, None)


@router.get("/check-duplicate", response_model=DuplicateCheckResponse)
async def check_duplicate(
    category: CategoryEnum,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(get_current_user),
):
    """
    Open issues of the same category within 50m reported in the last week.

    Lets the reporting form offer an upvote instead of a duplicate report.
    """
    candidates = await find_duplicates(db, category.value, lat, lng)
    return DuplicateCheckResponse(
        has_duplicates=bool(candidates),
        candidates=reporting.duplicate_candidates(candidates),
    )


@router.post("", response_model=IssueResponse, status_code=201)
async def create_issue(
    data: IssueCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_roles(ROLE_CITIZEN)),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Report a new issue.

    Responds 409 with the nearby candidates when similar open issues
    exist, unless ``force`` is true.
    """
    issue = await reporting.create_issue(db, data, user, notifier=notifier)
    return await _detail(db, issue.id, user)


@router.get("/{issue_id}", response_model=IssueResponse)
async def get_issue(
    issue_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    """Issue detail, redacted for the caller, with its SLA snapshot."""
    return await _detail(db, issue_id, user)


@router.get("/{issue_id}/history", response_model=List[StateHistoryResponse])
async def get_issue_history(
    issue_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    issue = await reporting.get_issue(db, issue_id)
    result = await db.execute(
        select(StateHistory)
        .where(StateHistory.issue_id == issue.id)
        .order_by(StateHistory.id)
    )
    entries = [StateHistoryResponse.model_validate(entry) for entry in result.scalars().all()]

    if not (reporting.is_staff(user) or reporting.is_owner(issue, user)):
        for entry in entries:
            entry.changed_by_id = None
    return entries


@router.patch("/{issue_id}", response_model=IssueResponse)
async def update_issue(
    issue_id: UUID,
    data: IssueUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    issue = await reporting.get_issue(db, issue_id)
    await reporting.update_issue(db, issue, data, user)
    return await _detail(db, issue.id, user)


@router.delete("/{issue_id}", response_model=MessageResponse)
async def delete_issue(
    issue_id: UUID,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_roles(ROLE_ADMIN)),
):
    issue = await reporting.get_issue(db, issue_id)
    await reporting.delete_issue(db, issue)
    return MessageResponse(message=f"Issue {issue.report_id} deleted")


@router.post("/{issue_id}/comments", response_model=CommentResponse, status_code=201)
async def add_comment(
    issue_id: UUID,
    data: CommentCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    issue = await reporting.get_issue(db, issue_id)
    return await reporting.add_comment(db, issue, user, data.text)


@router.post("/{issue_id}/upvote", response_model=UpvoteResponse)
async def upvote_issue(
    issue_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_roles(ROLE_CITIZEN)),
):
    issue = await reporting.get_issue(db, issue_id)
    issue = await reporting.add_upvote(db, issue, user)
    return UpvoteResponse(upvote_count=issue.upvote_count, has_upvoted=True, priority=issue.priority)


@router.delete("/{issue_id}/upvote", response_model=UpvoteResponse)
async def remove_upvote(
    issue_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_roles(ROLE_CITIZEN)),
):
    issue = await reporting.get_issue(db, issue_id)
    issue = await reporting.remove_upvote(db, issue, user)
    return UpvoteResponse(upvote_count=issue.upvote_count, has_upvoted=False, priority=issue.priority)


@router.post("/{issue_id}/feedback", response_model=IssueResponse)
async def submit_feedback(
    issue_id: UUID,
    data: FeedbackRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: Notifier = Depends(get_notifier),
):
    """Reporter's rating of a resolved issue; "not resolved" reopens it."""
    issue = await reporting.get_issue(db, issue_id)
    await reporting.submit_feedback(
        db, issue, user, data.rating, data.is_resolved, data.comment, notifier=notifier
    )
    return await _detail(db, issue.id, user)


@router.patch("/{issue_id}/priority", response_model=IssueResponse)
async def override_priority(
    issue_id: UUID,
    data: PriorityOverrideRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(staff_only),
):
    issue = await reporting.get_issue(db, issue_id)
    await reporting.override_priority(db, issue, data.priority.value, user)
    return await _detail(db, issue.id, user)


@router.post("/{issue_id}/status", response_model=IssueResponse)
async def change_status(
    issue_id: UUID,
    data: StatusChangeRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Move an issue through its lifecycle.

    Allowed moves depend on the current status and the caller's role;
    resolving and rejecting need a comment.
    """
    issue = await reporting.get_issue(db, issue_id)
    await lifecycle.transition(db, issue, data.status.value, user, data.comment, notifier=notifier)
    return await _detail(db, issue.id, user)


@router.post("/{issue_id}/assign", response_model=IssueResponse)
async def assign_issue(
    issue_id: UUID,
    data: AssignRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(staff_only),
    notifier: Notifier = Depends(get_notifier),
):
    issue = await reporting.get_issue(db, issue_id)
    await reporting.assign_issue(
        db, issue, data.department_id, user,
        staff_id=data.staff_id, comment=data.comment, notifier=notifier,
    )
    return await _detail(db, issue.id, user)


@router.post("/{issue_id}/escalate", response_model=IssueResponse)
async def escalate_issue(
    issue_id: UUID,
    data: EscalateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(staff_only),
    notifier: Notifier = Depends(get_notifier),
):
    """Manual escalation to the next level (at most level 3)."""
    issue = await reporting.get_issue(db, issue_id)
    await lifecycle.transition(
        db, issue, "escalated", user,
        comment=data.reason or "Escalated by municipal staff", notifier=notifier,
    )
    return await _detail(db, issue.id, user)
