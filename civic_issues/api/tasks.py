"""
Background tasks API endpoints.

Provides endpoints to view scheduler status and upcoming jobs.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from civic_issues.api.deps import require_roles
from civic_issues.models import ROLE_ADMIN, User
from civic_issues.tasks import get_job_status, scheduler

router = APIRouter(prefix="/tasks", tags=["tasks"])


class JobStatusResponse(BaseModel):
    """Status of a scheduled job."""
    id: str
    name: str
    next_run: Optional[str] = None
    trigger: str


class SchedulerStatusResponse(BaseModel):
    running: bool
    jobs: list[JobStatusResponse]


@router.get("/scheduler/status", response_model=SchedulerStatusResponse)
async def get_scheduler_status(_: User = Depends(require_roles(ROLE_ADMIN))):
    """
    Get status of the scheduler and its jobs.

    Example response:
    ```json
    {
        "running": true,
        "jobs": [
            {
                "id": "sla_sweep",
                "name": "SLA Escalation Sweep",
                "next_run": "2024-01-15T14:00:00+00:00",
                "trigger": "interval[1:00:00]"
            }
        ]
    }
    ```
    """
    return SchedulerStatusResponse(running=scheduler.running, jobs=get_job_status())
