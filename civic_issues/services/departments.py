"""
Category to department routing.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from civic_issues.models import CATEGORY_LABELS, Department

logger = logging.getLogger(__name__)

GENERAL_ADMINISTRATION = "general-administration"

# Every category except "other" has a department of the same slug
DEPARTMENT_FOR_CATEGORY = {
    category: category for category in CATEGORY_LABELS if category != "other"
}


def department_slug_for_category(category: str) -> str:
    """Slug of the department responsible for a category."""
    return DEPARTMENT_FOR_CATEGORY.get(category, GENERAL_ADMINISTRATION)


def department_display_name(slug: str) -> str:
    """Human-readable department name, e.g. "Water & Drainage Department"."""
    if slug == GENERAL_ADMINISTRATION:
        return "General Administration"
    label = CATEGORY_LABELS.get(slug)
    if label is None:
        return slug.replace("-", " ").title()
    return f"{label} Department"


async def find_department_for_category(
    db: AsyncSession,
    category: str,
) -> Optional[Department]:
    """
    Active department that should receive issues of a category.

    Falls back to general administration; returns None when neither is
    configured, in which case the issue waits for manual assignment.
    """
    for slug in (department_slug_for_category(category), GENERAL_ADMINISTRATION):
        result = await db.execute(
            select(Department).where(Department.slug == slug, Department.is_active.is_(True))
        )
        department = result.scalar_one_or_none()
        if department is not None:
            return department

    logger.info(f"No active department configured for category {category}")
    return None
