"""
Administrator endpoints: staff account management and analytics.
"""

import logging
import math
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from civic_issues.api.deps import get_db, require_roles
from civic_issues.errors import ConflictError, NotFoundError, ValidationFailedError
from civic_issues.models import (
    ROLE_ADMIN,
    ROLE_DEPARTMENT,
    ROLE_MUNICIPAL,
    Department,
    User,
)
from civic_issues.schemas import (
    AdminUserCreate,
    AdminUserUpdate,
    DepartmentMetrics,
    MessageResponse,
    OverviewResponse,
    PaginatedResponse,
    RoleEnum,
    StuckIssue,
    TrendDataPoint,
    UserResponse,
    WorkflowMetrics,
)
from civic_issues.security import hash_password
from civic_issues.services import analytics

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

admin_only = require_roles(ROLE_ADMIN)

# Roles an administrator may create; citizens register themselves
CREATABLE_ROLES = {ROLE_DEPARTMENT, ROLE_MUNICIPAL}


async def _check_department_link(db: AsyncSession, role: str, department_id: Optional[UUID]) -> Optional[Department]:
    """
    Department users need an active department; other roles may not have one.

    Raises:
        ValidationFailedError: If the role and department do not fit together
    """
    if role != ROLE_DEPARTMENT:
        if department_id is not None:
            raise ValidationFailedError(
                f"Users with role '{role}' cannot belong to a department",
                details={"field": "department_id"},
            )
        return None

    if department_id is None:
        raise ValidationFailedError(
            "Department users must be assigned to a department",
            details={"field": "department_id"},
        )
    department = await db.get(Department, department_id)
    if department is None or not department.is_active:
        raise ValidationFailedError(
            "Department does not exist or is not active",
            details={"field": "department_id"},
        )
    return department


async def _get_user(db: AsyncSession, user_id: UUID) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


@router.get("/users", response_model=PaginatedResponse[UserResponse])
async def list_users(
    role: Optional[RoleEnum] = None,
    department_id: Optional[UUID] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(admin_only),
):
    filters = []
    if role:
        filters.append(User.role == role.value)
    if department_id:
        filters.append(User.department_id == department_id)
    if is_active is not None:
        filters.append(User.is_active.is_(is_active))
    if search:
        search_pattern = f"%{search}%"
        filters.append(or_(User.name.ilike(search_pattern), User.email.ilike(search_pattern)))

    query = select(User)
    count_query = select(func.count()).select_from(User)
    if filters:
        query = query.where(and_(*filters))
        count_query = count_query.where(and_(*filters))

    total_result = await db.execute(count_query)
    total = total_result.scalar_one()

    result = await db.execute(
        query.order_by(User.created_at.desc()).offset((page - 1) * per_page).limit(per_page)
    )

    return PaginatedResponse(
        items=result.scalars().all(),
        total=total,
        page=page,
        per_page=per_page,
        pages=math.ceil(total / per_page) if total > 0 else 0
    )


@router.post("/users", response_model=UserResponse, status_code=201)
async def create_user(
    data: AdminUserCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(admin_only),
):
    """Create a department or municipal staff account."""
    role = data.role.value
    if role not in CREATABLE_ROLES:
        raise ValidationFailedError(
            "Only department and municipal users can be created here",
            details={"field": "role"},
        )
    department = await _check_department_link(db, role, data.department_id)

    email = data.email.lower()
    existing = await db.execute(select(User.id).where(User.email == email))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("Email is already registered", details={"field": "email"})

    user = User(
        name=data.name.strip(),
        email=email,
        password_hash=hash_password(data.password),
        phone=data.phone,
        role=role,
        department=department,
        department_id=department.id if department else None,
        is_active=True,
    )
    db.add(user)
    await db.flush()
    logger.info(f"Admin {admin.email} created {role} user {user.email}")
    return user


@router.patch("/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: UUID,
    data: AdminUserUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(admin_only),
):
    user = await _get_user(db, user_id)
    changes = data.model_dump(exclude_unset=True)

    if "role" in changes or "department_id" in changes:
        role = changes["role"].value if changes.get("role") else user.role
        department_id = changes["department_id"] if "department_id" in changes else user.department_id
        if role != ROLE_DEPARTMENT and "department_id" not in changes:
            department_id = None
        department = await _check_department_link(db, role, department_id)
        user.role = role
        user.department = department
        user.department_id = department.id if department else None

    if changes.get("name"):
        user.name = changes["name"].strip()
    if "phone" in changes:
        user.phone = changes["phone"]
    if changes.get("is_active") is not None:
        if user.id == admin.id and not changes["is_active"]:
            raise ValidationFailedError("You cannot deactivate your own account")
        user.is_active = changes["is_active"]

    await db.flush()
    logger.info(f"Admin {admin.email} updated user {user.email}")
    return user


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(admin_only),
):
    user = await _get_user(db, user_id)
    if user.id == admin.id:
        raise ValidationFailedError("You cannot delete your own account")

    await db.delete(user)
    await db.flush()
    logger.info(f"Admin {admin.email} deleted user {user.email}")
    return MessageResponse(message=f"User {user.email} deleted")


@router.get("/analytics/overview", response_model=OverviewResponse)
async def analytics_overview(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(admin_only),
):
    return await analytics.overview(db)


@router.get("/analytics/trends", response_model=List[TrendDataPoint])
async def analytics_trends(
    range: str = Query("7d", pattern="^(7d|30d)$"),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(admin_only),
):
    """Daily reported and resolved counts over the last 7 or 30 days."""
    return await analytics.trends(db, days=analytics.TREND_RANGES[range])


@router.get("/analytics/departments", response_model=List[DepartmentMetrics])
async def analytics_departments(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(admin_only),
):
    return await analytics.department_metrics(db)


@router.get("/analytics/stuck", response_model=List[StuckIssue])
async def analytics_stuck(
    days: int = Query(7, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(admin_only),
):
    """Open issues whose status has not changed for ``days`` days or more."""
    return await analytics.stuck_issues(db, days=days)


@router.get("/analytics/workflow", response_model=WorkflowMetrics)
async def analytics_workflow(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(admin_only),
):
    """Transition counts and average hours between workflow steps."""
    return await analytics.workflow_metrics(db)
