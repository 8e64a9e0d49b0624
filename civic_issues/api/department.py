"""
Department staff workspace: the caller's department queue and counts.
"""

import math
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from civic_issues.api.deps import get_db, require_roles
from civic_issues.errors import ValidationFailedError
from civic_issues.models import OPEN_STATUSES, ROLE_DEPARTMENT, Issue, User
from civic_issues.schemas import (
    DepartmentStats,
    IssueResponse,
    PaginatedResponse,
    PriorityEnum,
    StatusEnum,
)
from civic_issues.services import analytics, reporting

router = APIRouter(prefix="/department", tags=["department"])


def _department_id(user: User):
    if user.department_id is None:
        raise ValidationFailedError("Your account is not linked to a department")
    return user.department_id


@router.get("/issues", response_model=PaginatedResponse[IssueResponse])
async def list_department_issues(
    status: Optional[StatusEnum] = None,
    priority: Optional[PriorityEnum] = None,
    open_only: bool = False,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_roles(ROLE_DEPARTMENT)),
):
    """
    Issues assigned to the caller's department, most urgent deadline first.
    """
    filters = [Issue.assigned_department_id == _department_id(user)]
    if status:
        filters.append(Issue.status == status.value)
    if priority:
        filters.append(Issue.priority == priority.value)
    if open_only:
        filters.append(Issue.status.in_(OPEN_STATUSES))

    total_result = await db.execute(select(func.count()).select_from(Issue).where(and_(*filters)))
    total = total_result.scalar_one()

    result = await db.execute(
        select(Issue)
        .where(and_(*filters))
        .order_by(Issue.sla_deadline.asc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )

    return PaginatedResponse(
        items=[reporting.issue_view(issue, user) for issue in result.scalars().all()],
        total=total,
        page=page,
        per_page=per_page,
        pages=math.ceil(total / per_page) if total > 0 else 0
    )


@router.get("/stats", response_model=DepartmentStats)
async def department_stats(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_roles(ROLE_DEPARTMENT)),
):
    return await analytics.department_stats(db, _department_id(user))
