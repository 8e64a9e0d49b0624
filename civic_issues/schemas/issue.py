from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import datetime
from uuid import UUID
from enum import Enum

from civic_issues.models import SUBCATEGORIES
from civic_issues.schemas.user import DepartmentBrief, UserSummary

class CategoryEnum(str, Enum):
    ROADS_INFRASTRUCTURE = "roads-infrastructure"
    STREET_LIGHTING = "street-lighting"
    WASTE_MANAGEMENT = "waste-management"
    WATER_DRAINAGE = "water-drainage"
    PARKS_PUBLIC_SPACES = "parks-public-spaces"
    TRAFFIC_SIGNAGE = "traffic-signage"
    PUBLIC_HEALTH_SAFETY = "public-health-safety"
    OTHER = "other"

class PriorityEnum(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

class StatusEnum(str, Enum):
    PENDING = "pending"
    ACKNOWLEDGED = "acknowledged"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"
    REJECTED = "rejected"
    REOPENED = "reopened"
    ESCALATED = "escalated"

class ImageRef(BaseModel):
    url: str = Field(..., min_length=1, max_length=1000)
    public_id: Optional[str] = Field(None, max_length=255)

class LocationIn(BaseModel):
    address: str = Field(..., min_length=10, max_length=500)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    pincode: Optional[str] = Field(None, max_length=10)
    ward: Optional[str] = Field(None, max_length=50)
    zone: Optional[str] = Field(None, max_length=50)

class IssueCreate(BaseModel):
    title: str = Field(..., min_length=10, max_length=200)
    description: str = Field(..., min_length=30, max_length=2000)
    category: CategoryEnum
    subcategory: str = Field(..., min_length=1, max_length=100)
    location: LocationIn
    images: List[ImageRef] = Field(default_factory=list, max_length=3)
    # Submit even when nearby duplicates exist
    force: bool = False

    @model_validator(mode="after")
    def check_subcategory(self):
        allowed = SUBCATEGORIES.get(self.category.value, [])
        if self.subcategory not in allowed:
            raise ValueError(
                f"Subcategory '{self.subcategory}' is not valid for category '{self.category.value}'"
            )
        return self

class IssueUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=10, max_length=200)
    description: Optional[str] = Field(None, min_length=30, max_length=2000)
    images: Optional[List[ImageRef]] = Field(None, max_length=3)

class CommentCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=1000)

class CommentResponse(BaseModel):
    id: UUID
    author_id: UUID
    text: str
    created_at: datetime

    class Config:
        from_attributes = True

class StatusChangeRequest(BaseModel):
    status: StatusEnum
    comment: Optional[str] = Field(None, max_length=2000)

class AssignRequest(BaseModel):
    department_id: UUID
    staff_id: Optional[UUID] = None
    comment: Optional[str] = Field(None, max_length=2000)

class EscalateRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)

class PriorityOverrideRequest(BaseModel):
    priority: PriorityEnum

class FeedbackRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    is_resolved: bool = True
    comment: Optional[str] = Field(None, max_length=1000)

class SlaResponse(BaseModel):
    deadline: datetime
    hours_remaining: float
    is_overdue: bool
    escalation_level: int

class IssueResponse(BaseModel):
    """
    Issue as returned to clients.

    Redacted fields come back as null (or are omitted from lists) for
    requesters without access to them.
    """
    id: UUID
    report_id: str
    title: str
    description: str
    category: str
    subcategory: str
    status: str
    priority: str
    images: List[ImageRef] = []

    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    ward: Optional[str] = None
    zone: Optional[str] = None

    reported_by_id: Optional[UUID] = None
    reporter: Optional[UserSummary] = None
    assigned_department_id: Optional[UUID] = None
    department: Optional[DepartmentBrief] = None
    assigned_staff_id: Optional[UUID] = None
    assigned_staff: Optional[UserSummary] = None
    department_head_id: Optional[UUID] = None
    department_head: Optional[UserSummary] = None
    priority_overridden_by_id: Optional[UUID] = None
    priority_overridden_at: Optional[datetime] = None

    upvote_count: int = 0
    has_upvoted: Optional[bool] = None
    comments: List[CommentResponse] = []

    sla_deadline: Optional[datetime] = None
    due_time: Optional[datetime] = None
    escalation_level: int = 1
    escalation_history: Optional[List[dict]] = None
    penalty_points: Optional[int] = None
    resolution_time_hours: Optional[int] = None
    resolution_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    resolved_at: Optional[datetime] = None
    sla: Optional[SlaResponse] = None

    feedback_rating: Optional[int] = None
    feedback_is_resolved: Optional[bool] = None
    feedback_comment: Optional[str] = None
    feedback_submitted_at: Optional[datetime] = None

    ai_analysis: Optional[dict] = None

    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class DuplicateCandidateResponse(BaseModel):
    id: UUID
    report_id: str
    title: str
    status: str
    upvote_count: int
    distance_meters: float
    created_at: datetime

class DuplicateCheckResponse(BaseModel):
    has_duplicates: bool
    candidates: List[DuplicateCandidateResponse]

class StateHistoryResponse(BaseModel):
    id: int
    issue_id: UUID
    from_status: Optional[str] = None
    status: str
    changed_by_id: Optional[UUID] = None
    comment: Optional[str] = None
    timestamp: datetime

    class Config:
        from_attributes = True

class UpvoteResponse(BaseModel):
    upvote_count: int
    has_upvoted: bool
    priority: str

class AnalysisRequest(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field("", max_length=2000)
    address: Optional[str] = Field(None, max_length=500)

class AnalysisResponse(BaseModel):
    category: str
    subcategory: Optional[str] = None
    priority: str
    sentiment: str
    keywords: List[str] = []
    summary: Optional[str] = None
    source: str
