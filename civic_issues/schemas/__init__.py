from civic_issues.schemas.common import PaginatedResponse, MessageResponse, HealthResponse
from civic_issues.schemas.user import (
    RoleEnum, DepartmentBrief, UserSummary, UserResponse,
    RegisterRequest, LoginRequest, AdminUserCreate, AdminUserUpdate
)
from civic_issues.schemas.department import (
    DepartmentCreate, DepartmentUpdate, DepartmentResponse, DepartmentWithWorkload
)
from civic_issues.schemas.issue import (
    CategoryEnum, PriorityEnum, StatusEnum, ImageRef, LocationIn,
    IssueCreate, IssueUpdate, IssueResponse, CommentCreate, CommentResponse,
    StatusChangeRequest, AssignRequest, EscalateRequest, PriorityOverrideRequest,
    FeedbackRequest, SlaResponse, DuplicateCandidateResponse, DuplicateCheckResponse,
    StateHistoryResponse, UpvoteResponse, AnalysisRequest, AnalysisResponse
)
from civic_issues.schemas.notification import NotificationResponse
from civic_issues.schemas.analytics import (
    OverviewResponse, TrendDataPoint, DepartmentMetrics, StuckIssue, WorkflowMetrics,
    DepartmentRanking, SlaDashboard, StaffLeaderboardEntry,
    PublicSummary, AreaStat, PublicDashboard, DepartmentStats
)

__all__ = [
    # Common
    "PaginatedResponse",
    "MessageResponse",
    "HealthResponse",
    # User
    "RoleEnum",
    "DepartmentBrief",
    "UserSummary",
    "UserResponse",
    "RegisterRequest",
    "LoginRequest",
    "AdminUserCreate",
    "AdminUserUpdate",
    # Department
    "DepartmentCreate",
    "DepartmentUpdate",
    "DepartmentResponse",
    "DepartmentWithWorkload",
    # Issue
    "CategoryEnum",
    "PriorityEnum",
    "StatusEnum",
    "ImageRef",
    "LocationIn",
    "IssueCreate",
    "IssueUpdate",
    "IssueResponse",
    "CommentCreate",
    "CommentResponse",
    "StatusChangeRequest",
    "AssignRequest",
    "EscalateRequest",
    "PriorityOverrideRequest",
    "FeedbackRequest",
    "SlaResponse",
    "DuplicateCandidateResponse",
    "DuplicateCheckResponse",
    "StateHistoryResponse",
    "UpvoteResponse",
    "AnalysisRequest",
    "AnalysisResponse",
    # Notification
    "NotificationResponse",
    # Analytics
    "OverviewResponse",
    "TrendDataPoint",
    "DepartmentMetrics",
    "StuckIssue",
    "WorkflowMetrics",
    "DepartmentRanking",
    "SlaDashboard",
    "StaffLeaderboardEntry",
    "PublicSummary",
    "AreaStat",
    "PublicDashboard",
    "DepartmentStats",
]
