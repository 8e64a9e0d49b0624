"""
Read-only aggregates for the admin, SLA, department and public dashboards.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from civic_issues.models import (
    OPEN_STATUSES,
    ROLE_DEPARTMENT,
    CLOSED_STATUSES,
    Department,
    DepartmentPerformance,
    Issue,
    StaffPerformance,
    StateHistory,
    User,
)
from civic_issues.services import lifecycle
from civic_issues.services.reporting import issue_view
from civic_issues.services.sla import is_sla_compliant

TREND_RANGES = {"7d": 7, "30d": 30}
PUBLIC_LIST_SIZE = 5


async def _count(db: AsyncSession, *conditions) -> int:
    query = select(func.count()).select_from(Issue)
    if conditions:
        query = query.where(and_(*conditions))
    result = await db.execute(query)
    return result.scalar_one()


async def _grouped_counts(db: AsyncSession, column, *conditions) -> Dict[str, int]:
    query = select(column, func.count().label("count")).group_by(column)
    if conditions:
        query = query.where(and_(*conditions))
    result = await db.execute(query)
    return {str(row[0]): row[1] for row in result if row[0] is not None}


def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


async def overview(db: AsyncSession, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Headline counts for the admin dashboard."""
    now = now or datetime.utcnow()

    total = await _count(db)
    resolved = await _count(db, Issue.status == "resolved")
    overdue = await _count(db, Issue.status.in_(OPEN_STATUSES), Issue.sla_deadline < now)

    users_result = await db.execute(select(func.count()).select_from(User))

    return {
        "total_issues": total,
        "total_users": users_result.scalar_one(),
        "by_status": await _grouped_counts(db, Issue.status),
        "by_priority": await _grouped_counts(db, Issue.priority),
        "by_category": await _grouped_counts(db, Issue.category),
        "resolution_rate": _rate(resolved, total),
        "overdue": overdue,
    }


async def trends(db: AsyncSession, days: int = 7, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """
    Daily reported and resolved counts for the last ``days`` days.

    Days without activity are included with zero counts.
    """
    now = now or datetime.utcnow()
    start = (now - timedelta(days=days - 1)).date()
    cutoff = datetime.combine(start, datetime.min.time())

    reported = await db.execute(select(Issue.created_at).where(Issue.created_at >= cutoff))
    resolved = await db.execute(select(Issue.resolved_at).where(Issue.resolved_at >= cutoff))

    points = {}
    for offset in range(days):
        day = (start + timedelta(days=offset)).isoformat()
        points[day] = {"date": day, "issues_reported": 0, "issues_resolved": 0}

    for (created_at,) in reported:
        day = created_at.date().isoformat()
        if day in points:
            points[day]["issues_reported"] += 1
    for (resolved_at,) in resolved:
        day = resolved_at.date().isoformat()
        if day in points:
            points[day]["issues_resolved"] += 1

    return list(points.values())


async def department_metrics(db: AsyncSession) -> List[Dict[str, Any]]:
    """Per-department assignment, resolution and average resolution time."""
    query = (
        select(
            Department.id,
            Department.name,
            func.count(Issue.id).label("total"),
            func.count(Issue.resolved_at).label("resolved"),
            func.avg(Issue.resolution_time_hours).label("avg_hours"),
        )
        .outerjoin(Issue, Issue.assigned_department_id == Department.id)
        .group_by(Department.id, Department.name)
        .order_by(Department.name)
    )
    result = await db.execute(query)
    open_counts = await _grouped_counts(
        db, Issue.assigned_department_id, Issue.status.in_(OPEN_STATUSES)
    )

    return [
        {
            "department_id": row.id,
            "department_name": row.name,
            "total_assigned": row.total,
            "resolved": row.resolved,
            "open": open_counts.get(str(row.id), 0),
            "avg_resolution_time": round(float(row.avg_hours or 0), 2),
        }
        for row in result
    ]


async def stuck_issues(db: AsyncSession, days: int = 7, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """Open issues whose status has not changed for at least ``days`` days."""
    now = now or datetime.utcnow()
    cutoff = now - timedelta(days=days)

    last_change = (
        select(
            StateHistory.issue_id.label("issue_id"),
            func.max(StateHistory.timestamp).label("changed_at"),
        )
        .group_by(StateHistory.issue_id)
        .subquery()
    )
    query = (
        select(Issue, last_change.c.changed_at)
        .join(last_change, last_change.c.issue_id == Issue.id)
        .where(
            Issue.status.in_(OPEN_STATUSES),
            last_change.c.changed_at <= cutoff,
        )
        .order_by(last_change.c.changed_at)
    )
    result = await db.execute(query)

    return [
        {
            "id": issue.id,
            "report_id": issue.report_id,
            "title": issue.title,
            "status": issue.status,
            "priority": issue.priority,
            "department_name": issue.department.name if issue.department else None,
            "in_status_since": changed_at,
            "days_in_status": round((now - changed_at).total_seconds() / 86400, 1),
        }
        for issue, changed_at in result
    ]


def _hours(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


def _average(values: List[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0.0


async def workflow_metrics(db: AsyncSession) -> Dict[str, Any]:
    """
    Transition counts and timings read from the status history.

    Reported to in-progress is measured once per issue, from its first
    history entry to the first time it entered in-progress. In-progress
    to resolved is measured for every resolution, from the entry that
    preceded it.
    """
    result = await db.execute(
        select(StateHistory.issue_id, StateHistory.from_status, StateHistory.status, StateHistory.timestamp)
        .order_by(StateHistory.issue_id, StateHistory.timestamp, StateHistory.id)
    )

    reported_at: Dict[UUID, datetime] = {}
    previous_at: Dict[UUID, datetime] = {}
    started = set()
    to_in_progress: List[float] = []
    to_resolved: List[float] = []

    for issue_id, from_status, status, timestamp in result:
        reported_at.setdefault(issue_id, timestamp)
        if status == "in-progress" and issue_id not in started:
            started.add(issue_id)
            to_in_progress.append(_hours(reported_at[issue_id], timestamp))
        elif status == "resolved" and from_status == "in-progress" and issue_id in previous_at:
            to_resolved.append(_hours(previous_at[issue_id], timestamp))
        previous_at[issue_id] = timestamp

    return {
        "reported_to_in_progress_count": len(to_in_progress),
        "in_progress_to_resolved_count": len(to_resolved),
        "avg_hours_reported_to_in_progress": _average(to_in_progress),
        "avg_hours_in_progress_to_resolved": _average(to_resolved),
        "avg_time_per_transition": _average(to_in_progress + to_resolved),
        "invalid_transition_attempts": sum(lifecycle.invalid_attempts.values()),
    }


async def department_rankings(db: AsyncSession) -> List[Dict[str, Any]]:
    result = await db.execute(
        select(DepartmentPerformance).order_by(DepartmentPerformance.performance_score.desc())
    )
    return [
        {
            "rank": rank,
            "department_id": record.department_id,
            "department_name": record.department.name if record.department else "",
            "performance_score": record.performance_score,
            "sla_compliance_rate": record.sla_compliance_rate,
            "total_issues_resolved": record.total_issues_resolved,
            "total_issues_escalated": record.total_issues_escalated,
            "average_resolution_time": record.average_resolution_time,
        }
        for rank, record in enumerate(result.scalars().all(), start=1)
    ]


async def staff_leaderboard(db: AsyncSession) -> List[Dict[str, Any]]:
    """Staff ranked by reward minus penalty points."""
    result = await db.execute(
        select(StaffPerformance).order_by(
            (StaffPerformance.reward_points - StaffPerformance.penalty_points).desc(),
            StaffPerformance.total_issues_resolved.desc(),
        )
    )
    return [
        {
            "rank": rank,
            "staff_id": record.staff_id,
            "name": record.staff.name if record.staff else "",
            "department_id": record.department_id,
            "total_issues_assigned": record.total_issues_assigned,
            "total_issues_resolved": record.total_issues_resolved,
            "total_issues_escalated": record.total_issues_escalated,
            "average_resolution_time": record.average_resolution_time,
            "reward_points": record.reward_points,
            "penalty_points": record.penalty_points,
        }
        for rank, record in enumerate(result.scalars().all(), start=1)
    ]


async def sla_dashboard(db: AsyncSession, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    SLA health across all open issues.

    Compliance is the share of resolved issues whose resolution time was
    within the SLA hours of their priority.
    """
    now = now or datetime.utcnow()
    today_end = datetime.combine(now.date() + timedelta(days=1), datetime.min.time())
    tomorrow_end = today_end + timedelta(days=1)
    is_open = Issue.status.in_(OPEN_STATUSES)

    total_open = await _count(db, is_open)
    overdue = await _count(db, is_open, Issue.sla_deadline < now)
    due_today = await _count(db, is_open, Issue.sla_deadline >= now, Issue.sla_deadline < today_end)
    due_tomorrow = await _count(
        db, is_open, Issue.sla_deadline >= today_end, Issue.sla_deadline < tomorrow_end
    )

    resolved_result = await db.execute(
        select(Issue.priority, Issue.resolution_time_hours).where(
            Issue.status == "resolved", Issue.resolution_time_hours.is_not(None)
        )
    )
    resolved_rows = resolved_result.all()
    compliant = sum(1 for priority, hours in resolved_rows if is_sla_compliant(priority, hours))
    compliance_rate = _rate(compliant, len(resolved_rows))

    levels = await _grouped_counts(db, Issue.escalation_level, Issue.status == "escalated")

    return {
        "total_open": total_open,
        "overdue": overdue,
        "due_today": due_today,
        "due_tomorrow": due_tomorrow,
        "compliance_rate": compliance_rate,
        "escalation_levels": {str(level): levels.get(str(level), 0) for level in (1, 2, 3)},
        "department_rankings": await department_rankings(db),
    }


async def department_stats(db: AsyncSession, department_id: UUID, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.utcnow()
    mine = Issue.assigned_department_id == department_id
    by_status = await _grouped_counts(db, Issue.status, mine)

    return {
        "department_id": department_id,
        "total": sum(by_status.values()),
        "pending": by_status.get("pending", 0) + by_status.get("acknowledged", 0),
        "assigned": by_status.get("assigned", 0) + by_status.get("reopened", 0),
        "in_progress": by_status.get("in-progress", 0),
        "resolved": by_status.get("resolved", 0),
        "escalated": by_status.get("escalated", 0),
        "overdue": await _count(db, mine, Issue.status.in_(OPEN_STATUSES), Issue.sla_deadline < now),
        "high_priority": await _count(
            db, mine, Issue.status.in_(OPEN_STATUSES), Issue.priority.in_(["high", "urgent"])
        ),
    }


async def departments_with_workload(db: AsyncSession) -> List[Dict[str, Any]]:
    """Every department with open workload, total issues and staff count."""
    result = await db.execute(select(Department).order_by(Department.name))
    departments = result.scalars().all()

    totals = await _grouped_counts(db, Issue.assigned_department_id)
    workload = await _grouped_counts(db, Issue.assigned_department_id, Issue.status.in_(OPEN_STATUSES))

    staff_result = await db.execute(
        select(User.department_id, func.count().label("count"))
        .where(User.role == ROLE_DEPARTMENT, User.department_id.is_not(None))
        .group_by(User.department_id)
    )
    staff_counts = {str(row[0]): row[1] for row in staff_result}

    return [
        {
            "id": department.id,
            "name": department.name,
            "slug": department.slug,
            "description": department.description,
            "contact_email": department.contact_email,
            "contact_phone": department.contact_phone,
            "is_active": department.is_active,
            "created_at": department.created_at,
            "workload": workload.get(str(department.id), 0),
            "issue_count": totals.get(str(department.id), 0),
            "staff_count": staff_counts.get(str(department.id), 0),
        }
        for department in departments
    ]


async def _area_stats(db: AsyncSession, column) -> List[Dict[str, Any]]:
    totals = await _grouped_counts(db, column)
    resolved = await _grouped_counts(db, column, Issue.status.in_(CLOSED_STATUSES))
    return [
        {
            "name": name,
            "total": total,
            "resolved": resolved.get(name, 0),
            "open": total - resolved.get(name, 0),
        }
        for name, total in sorted(totals.items(), key=lambda item: -item[1])
    ]


async def public_dashboard(db: AsyncSession, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Anonymized city-wide dashboard.

    Issue lists are projected with no requester, so reporter identity and
    exact locations are always hidden.
    """
    now = now or datetime.utcnow()
    total = await _count(db)
    resolved = await _count(db, Issue.status == "resolved")
    open_count = await _count(db, Issue.status.in_(OPEN_STATUSES))

    department_rows = await db.execute(
        select(Department.name, Issue.status)
        .join(Issue, Issue.assigned_department_id == Department.id)
    )
    departments: Dict[str, Dict[str, Any]] = {}
    for name, status in department_rows:
        entry = departments.setdefault(name, {"name": name, "total": 0, "resolved": 0, "open": 0})
        entry["total"] += 1
        if status in CLOSED_STATUSES:
            entry["resolved"] += 1
        else:
            entry["open"] += 1

    most_upvoted = await db.execute(
        select(Issue)
        .where(Issue.upvote_count > 0)
        .order_by(Issue.upvote_count.desc(), Issue.created_at.desc())
        .limit(PUBLIC_LIST_SIZE)
    )
    recent = await db.execute(
        select(Issue).order_by(Issue.created_at.desc()).limit(PUBLIC_LIST_SIZE)
    )

    return {
        "summary": {
            "total": total,
            "open": open_count,
            "resolved": resolved,
            "resolution_rate": _rate(resolved, total),
        },
        "by_category": await _grouped_counts(db, Issue.category),
        "departments": sorted(departments.values(), key=lambda entry: -entry["total"]),
        "wards": await _area_stats(db, Issue.ward),
        "most_upvoted": [issue_view(issue, None, now=now) for issue in most_upvoted.scalars().all()],
        "recent": [issue_view(issue, None, now=now) for issue in recent.scalars().all()],
        "generated_at": now,
    }
