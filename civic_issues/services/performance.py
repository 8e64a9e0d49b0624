"""
Incremental staff and department performance counters.

Called by the lifecycle service whenever an issue is assigned, resolved
or escalated. Scores are recomputed from the counters on every update.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from civic_issues.models import DepartmentPerformance, Issue, StaffPerformance
from civic_issues.services.sla import is_sla_compliant

logger = logging.getLogger(__name__)

# Staff rewards per resolution
RESOLUTION_REWARD = 10
FAST_RESOLUTION_HOURS = 24
FAST_RESOLUTION_REWARD = 20
VERY_FAST_RESOLUTION_HOURS = 12
VERY_FAST_RESOLUTION_REWARD = 30

STAFF_ESCALATION_PENALTY = 20
DEPARTMENT_ESCALATION_PENALTY = 50
DEPARTMENT_SLA_MISS_PENALTY = 10


def running_average(current: float, count: int, value: float) -> float:
    """Average after adding ``value`` as the ``count``-th sample."""
    if count <= 0:
        return float(value)
    return round(((current or 0.0) * (count - 1) + value) / count, 2)


def resolution_reward(resolution_hours: int) -> int:
    reward = RESOLUTION_REWARD
    if resolution_hours <= FAST_RESOLUTION_HOURS:
        reward += FAST_RESOLUTION_REWARD
    if resolution_hours <= VERY_FAST_RESOLUTION_HOURS:
        reward += VERY_FAST_RESOLUTION_REWARD
    return reward


def sla_compliance_rate(resolved: int, escalated: int) -> float:
    """Share of resolved issues that were not escalated, as a percentage."""
    if resolved <= 0:
        return 100.0
    return round(max(0.0, (resolved - escalated) / resolved * 100), 2)


def performance_score(
    escalated: int,
    penalty_points: int,
    compliance_rate: float,
    average_resolution_time: float,
    resolved: int,
) -> float:
    """
    Department score on a 0-100 scale.

    Starts at 100, loses points for escalations and penalties, and is
    adjusted by SLA compliance and (once anything is resolved) average
    resolution time.
    """
    score = 100.0
    score -= escalated * 5
    score -= penalty_points * 0.5

    if compliance_rate >= 90:
        score += 20
    elif compliance_rate >= 80:
        score += 10
    elif compliance_rate < 70:
        score -= 30

    if resolved > 0:
        if average_resolution_time <= 24:
            score += 15
        elif average_resolution_time <= 48:
            score += 10
        elif average_resolution_time > 120:
            score -= 20

    return round(max(0.0, min(100.0, score)), 2)


def _refresh_department_scores(record: DepartmentPerformance) -> None:
    record.sla_compliance_rate = sla_compliance_rate(
        record.total_issues_resolved, record.total_issues_escalated
    )
    record.performance_score = performance_score(
        record.total_issues_escalated,
        record.penalty_points,
        record.sla_compliance_rate,
        record.average_resolution_time,
        record.total_issues_resolved,
    )


async def get_staff_performance(db: AsyncSession, staff_id: UUID, department_id: Optional[UUID] = None) -> StaffPerformance:
    result = await db.execute(select(StaffPerformance).where(StaffPerformance.staff_id == staff_id))
    record = result.scalar_one_or_none()
    if record is None:
        record = StaffPerformance(
            staff_id=staff_id,
            department_id=department_id,
            total_issues_assigned=0,
            total_issues_resolved=0,
            total_issues_escalated=0,
            average_resolution_time=0.0,
            reward_points=0,
            penalty_points=0,
        )
        db.add(record)
        await db.flush()
    return record


async def get_department_performance(db: AsyncSession, department_id: UUID) -> DepartmentPerformance:
    result = await db.execute(
        select(DepartmentPerformance).where(DepartmentPerformance.department_id == department_id)
    )
    record = result.scalar_one_or_none()
    if record is None:
        record = DepartmentPerformance(
            department_id=department_id,
            total_issues_received=0,
            total_issues_resolved=0,
            total_issues_escalated=0,
            sla_misses=0,
            average_resolution_time=0.0,
            sla_compliance_rate=100.0,
            penalty_points=0,
            performance_score=100.0,
        )
        db.add(record)
        await db.flush()
    return record


async def record_assignment(db: AsyncSession, issue: Issue) -> None:
    """Count a newly assigned issue for its department and staff member."""
    if issue.assigned_department_id:
        department = await get_department_performance(db, issue.assigned_department_id)
        department.total_issues_received += 1
    if issue.assigned_staff_id:
        staff = await get_staff_performance(db, issue.assigned_staff_id, issue.assigned_department_id)
        staff.total_issues_assigned += 1


async def record_resolution(db: AsyncSession, issue: Issue, resolution_hours: int) -> None:
    """Update counters, averages, rewards and SLA penalties for a resolution."""
    compliant = is_sla_compliant(issue.priority, resolution_hours)

    if issue.assigned_staff_id:
        staff = await get_staff_performance(db, issue.assigned_staff_id, issue.assigned_department_id)
        staff.total_issues_resolved += 1
        staff.average_resolution_time = running_average(
            staff.average_resolution_time, staff.total_issues_resolved, resolution_hours
        )
        staff.reward_points += resolution_reward(resolution_hours)

    if issue.assigned_department_id:
        department = await get_department_performance(db, issue.assigned_department_id)
        department.total_issues_resolved += 1
        department.average_resolution_time = running_average(
            department.average_resolution_time, department.total_issues_resolved, resolution_hours
        )
        if not compliant:
            department.sla_misses += 1
            department.penalty_points += DEPARTMENT_SLA_MISS_PENALTY
        _refresh_department_scores(department)

    if not compliant:
        logger.info(
            f"Issue {issue.report_id} resolved outside SLA "
            f"({resolution_hours}h for {issue.priority} priority)"
        )


async def record_escalation(db: AsyncSession, issue: Issue) -> None:
    if issue.assigned_staff_id:
        staff = await get_staff_performance(db, issue.assigned_staff_id, issue.assigned_department_id)
        staff.total_issues_escalated += 1
        staff.penalty_points += STAFF_ESCALATION_PENALTY

    if issue.assigned_department_id:
        department = await get_department_performance(db, issue.assigned_department_id)
        department.total_issues_escalated += 1
        department.penalty_points += DEPARTMENT_ESCALATION_PENALTY
        _refresh_department_scores(department)
