"""
SLA monitoring endpoints for municipal staff.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from civic_issues.api.deps import get_db, require_roles
from civic_issues.models import ROLE_ADMIN, ROLE_MUNICIPAL, User
from civic_issues.schemas import SlaDashboard
from civic_issues.services import analytics
from civic_issues.services.notifier import Notifier, get_notifier
from civic_issues.tasks import escalate_overdue_issues

router = APIRouter(prefix="/sla", tags=["sla"])


class SweepResponse(BaseModel):
    checked: int
    escalated: int
    skipped: int


@router.get("/dashboard", response_model=SlaDashboard)
async def sla_dashboard(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_roles(ROLE_MUNICIPAL, ROLE_ADMIN)),
):
    """
    Overdue and upcoming deadlines, compliance rate, escalation levels
    and department rankings.
    """
    return await analytics.sla_dashboard(db)


@router.post("/sweep", response_model=SweepResponse)
async def run_sla_sweep(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_roles(ROLE_ADMIN)),
    notifier: Notifier = Depends(get_notifier),
):
    """Run the escalation sweep now instead of waiting for the scheduler."""
    return await escalate_overdue_issues(db, notifier=notifier)
