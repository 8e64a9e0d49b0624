"""
Staff and department performance leaderboards.
"""

from typing import List, Union

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from civic_issues.api.deps import get_current_user, get_db
from civic_issues.models import User
from civic_issues.schemas import DepartmentRanking, StaffLeaderboardEntry
from civic_issues.services import analytics

router = APIRouter(prefix="/performance", tags=["performance"])


@router.get("", response_model=Union[List[StaffLeaderboardEntry], List[DepartmentRanking]])
async def get_performance(
    type: str = Query("department", pattern="^(staff|department)$"),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(get_current_user),
):
    """
    Leaderboard of staff (reward minus penalty points) or departments
    (performance score).
    """
    if type == "staff":
        return await analytics.staff_leaderboard(db)
    return await analytics.department_rankings(db)
