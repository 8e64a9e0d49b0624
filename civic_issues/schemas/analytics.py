from pydantic import BaseModel
from typing import Optional, List, Dict
from datetime import datetime
from uuid import UUID

from civic_issues.schemas.issue import IssueResponse

class OverviewResponse(BaseModel):
    """Admin dashboard headline numbers."""
    total_issues: int
    total_users: int
    by_status: Dict[str, int]
    by_priority: Dict[str, int]
    by_category: Dict[str, int]
    resolution_rate: float
    overdue: int

class TrendDataPoint(BaseModel):
    """Single day of the reported/resolved trend chart."""
    date: str  # ISO date string
    issues_reported: int
    issues_resolved: int

class DepartmentMetrics(BaseModel):
    department_id: UUID
    department_name: str
    total_assigned: int
    resolved: int
    open: int
    avg_resolution_time: float

class WorkflowMetrics(BaseModel):
    """Transition throughput; hours are measured from StateHistory timestamps."""
    reported_to_in_progress_count: int
    in_progress_to_resolved_count: int
    avg_hours_reported_to_in_progress: float
    avg_hours_in_progress_to_resolved: float
    avg_time_per_transition: float
    invalid_transition_attempts: int

class StuckIssue(BaseModel):
    id: UUID
    report_id: str
    title: str
    status: str
    priority: str
    department_name: Optional[str] = None
    in_status_since: datetime
    days_in_status: float

class DepartmentRanking(BaseModel):
    rank: int
    department_id: UUID
    department_name: str
    performance_score: float
    sla_compliance_rate: float
    total_issues_resolved: int
    total_issues_escalated: int
    average_resolution_time: float

class SlaDashboard(BaseModel):
    total_open: int
    overdue: int
    due_today: int
    due_tomorrow: int
    compliance_rate: float
    escalation_levels: Dict[str, int]
    department_rankings: List[DepartmentRanking]

class StaffLeaderboardEntry(BaseModel):
    rank: int
    staff_id: UUID
    name: str
    department_id: Optional[UUID] = None
    total_issues_assigned: int
    total_issues_resolved: int
    total_issues_escalated: int
    average_resolution_time: float
    reward_points: int
    penalty_points: int

class PublicSummary(BaseModel):
    total: int
    open: int
    resolved: int
    resolution_rate: float

class AreaStat(BaseModel):
    name: str
    total: int
    resolved: int
    open: int

class PublicDashboard(BaseModel):
    summary: PublicSummary
    by_category: Dict[str, int]
    departments: List[AreaStat]
    wards: List[AreaStat]
    most_upvoted: List[IssueResponse]
    recent: List[IssueResponse]
    generated_at: datetime

class DepartmentStats(BaseModel):
    department_id: UUID
    total: int
    pending: int
    assigned: int
    in_progress: int
    resolved: int
    escalated: int
    overdue: int
    high_priority: int
