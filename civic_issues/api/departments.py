"""
Department directory and administration.
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from civic_issues.api.deps import get_current_user, get_db, require_roles
from civic_issues.errors import ConflictError, NotFoundError
from civic_issues.models import ROLE_ADMIN, Department, User
from civic_issues.schemas import (
    DepartmentCreate,
    DepartmentResponse,
    DepartmentUpdate,
    DepartmentWithWorkload,
    MessageResponse,
)
from civic_issues.services import analytics

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/departments", tags=["departments"])

admin_only = require_roles(ROLE_ADMIN)


async def _get_department(db: AsyncSession, department_id: UUID) -> Department:
    department = await db.get(Department, department_id)
    if department is None:
        raise NotFoundError("Department", department_id)
    return department


async def _ensure_unique(db: AsyncSession, name: str = None, slug: str = None, exclude: UUID = None):
    for column, value in ((Department.name, name), (Department.slug, slug)):
        if value is None:
            continue
        query = select(Department.id).where(func.lower(column) == value.lower())
        if exclude is not None:
            query = query.where(Department.id != exclude)
        existing = await db.execute(query)
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(
                f"A department with this {column.key} already exists",
                details={"field": column.key},
            )


@router.get("", response_model=List[DepartmentWithWorkload])
async def list_departments(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(get_current_user),
):
    """Every department with open workload, issue count and staff count."""
    return await analytics.departments_with_workload(db)


@router.post("", response_model=DepartmentResponse, status_code=201)
async def create_department(
    data: DepartmentCreate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(admin_only),
):
    await _ensure_unique(db, name=data.name, slug=data.slug)

    department = Department(**data.model_dump())
    db.add(department)
    await db.flush()
    logger.info(f"Created department {department.slug}")
    return department


@router.patch("/{department_id}", response_model=DepartmentResponse)
async def update_department(
    department_id: UUID,
    data: DepartmentUpdate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(admin_only),
):
    department = await _get_department(db, department_id)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("name"):
        await _ensure_unique(db, name=changes["name"], exclude=department.id)

    for field, value in changes.items():
        setattr(department, field, value)

    await db.flush()
    return department


@router.delete("/{department_id}", response_model=MessageResponse)
async def delete_department(
    department_id: UUID,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(admin_only),
):
    """Delete a department; refused while staff are still assigned to it."""
    department = await _get_department(db, department_id)

    staff_result = await db.execute(
        select(func.count()).select_from(User).where(User.department_id == department.id)
    )
    staff_count = staff_result.scalar_one()
    if staff_count:
        raise ConflictError(
            f"Department still has {staff_count} staff member(s) assigned",
            details={"staff_count": staff_count},
        )

    await db.delete(department)
    await db.flush()
    logger.info(f"Deleted department {department.slug}")
    return MessageResponse(message=f"Department {department.name} deleted")
