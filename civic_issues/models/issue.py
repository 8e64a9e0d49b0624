"""
Issue model for citizen-reported civic complaints, plus the comment and
upvote rows that hang off it.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from civic_issues.database import Base


# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")

STATUS_PENDING = "pending"
STATUS_ACKNOWLEDGED = "acknowledged"
STATUS_ASSIGNED = "assigned"
STATUS_IN_PROGRESS = "in-progress"
STATUS_RESOLVED = "resolved"
STATUS_REJECTED = "rejected"
STATUS_REOPENED = "reopened"
STATUS_ESCALATED = "escalated"

VALID_STATUSES = [
    STATUS_PENDING,
    STATUS_ACKNOWLEDGED,
    STATUS_ASSIGNED,
    STATUS_IN_PROGRESS,
    STATUS_RESOLVED,
    STATUS_REJECTED,
    STATUS_REOPENED,
    STATUS_ESCALATED,
]

# Statuses that still need work; used for duplicates, workload and SLA sweeps
OPEN_STATUSES = [
    STATUS_PENDING,
    STATUS_ACKNOWLEDGED,
    STATUS_ASSIGNED,
    STATUS_IN_PROGRESS,
    STATUS_REOPENED,
    STATUS_ESCALATED,
]

# Statuses on which the SLA clock no longer runs
CLOSED_STATUSES = [STATUS_RESOLVED, STATUS_REJECTED]

VALID_PRIORITIES = ["low", "medium", "high", "urgent"]

VALID_CATEGORIES = [
    "roads-infrastructure",
    "street-lighting",
    "waste-management",
    "water-drainage",
    "parks-public-spaces",
    "traffic-signage",
    "public-health-safety",
    "other",
]


class Issue(Base):
    """
    A civic complaint filed by a citizen.

    ``status`` is written only by the lifecycle service, which appends a
    StateHistory row for every change. SLA fields are derived from
    ``priority`` and ``created_at`` at creation time.
    """

    __tablename__ = "issues"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    report_id: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)

    # Content
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    subcategory: Mapped[str] = mapped_column(String(100), nullable=False)
    images: Mapped[list] = mapped_column(JSONType, default=list, server_default="[]")

    # Workflow
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=STATUS_PENDING, index=True)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="medium", index=True)
    priority_overridden_by_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    priority_overridden_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    resolution_notes: Mapped[Optional[str]] = mapped_column(Text)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)

    # Location
    address: Mapped[str] = mapped_column(String(500), nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False, index=True)
    longitude: Mapped[float] = mapped_column(Float, nullable=False, index=True)
    city: Mapped[Optional[str]] = mapped_column(String(100))
    state: Mapped[Optional[str]] = mapped_column(String(100))
    pincode: Mapped[Optional[str]] = mapped_column(String(10))
    ward: Mapped[Optional[str]] = mapped_column(String(50), index=True)
    zone: Mapped[Optional[str]] = mapped_column(String(50))

    # People
    reported_by_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    assigned_department_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("departments.id", ondelete="SET NULL"), nullable=True, index=True
    )
    assigned_staff_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    department_head_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # Community
    upvote_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0")

    # SLA
    sla_deadline: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    due_time: Mapped[Optional[datetime]] = mapped_column(DateTime)
    escalation_level: Mapped[int] = mapped_column(Integer, default=1, server_default="1")
    escalation_history: Mapped[list] = mapped_column(JSONType, default=list, server_default="[]")
    penalty_points: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    resolution_time_hours: Mapped[Optional[int]] = mapped_column(Integer)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Citizen feedback (once, after resolution)
    feedback_rating: Mapped[Optional[int]] = mapped_column(Integer)
    feedback_is_resolved: Mapped[Optional[bool]] = mapped_column(Boolean)
    feedback_comment: Mapped[Optional[str]] = mapped_column(Text)
    feedback_submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    ai_analysis: Mapped[Optional[dict]] = mapped_column(JSONType)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        server_default=func.now(),
        index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        server_default=func.now()
    )

    # Relationships
    reporter: Mapped["User"] = relationship(
        "User", foreign_keys=[reported_by_id], lazy="selectin"
    )
    department: Mapped[Optional["Department"]] = relationship(
        "Department", foreign_keys=[assigned_department_id], lazy="selectin"
    )
    assigned_staff: Mapped[Optional["User"]] = relationship(
        "User", foreign_keys=[assigned_staff_id], lazy="selectin"
    )
    department_head: Mapped[Optional["User"]] = relationship(
        "User", foreign_keys=[department_head_id], lazy="selectin"
    )
    comments: Mapped[List["IssueComment"]] = relationship(
        "IssueComment",
        back_populates="issue",
        cascade="all, delete-orphan",
        order_by="IssueComment.created_at",
        lazy="selectin"
    )

    __table_args__ = (
        CheckConstraint(
            f"status IN ({', '.join(repr(s) for s in VALID_STATUSES)})",
            name="check_valid_status"
        ),
        CheckConstraint(
            f"priority IN ({', '.join(repr(p) for p in VALID_PRIORITIES)})",
            name="check_valid_priority"
        ),
        CheckConstraint(
            f"category IN ({', '.join(repr(c) for c in VALID_CATEGORIES)})",
            name="check_valid_category"
        ),
        CheckConstraint(
            "latitude >= -90 AND latitude <= 90 AND longitude >= -180 AND longitude <= 180",
            name="check_coordinates_range"
        ),
        CheckConstraint(
            "escalation_level >= 1 AND escalation_level <= 3",
            name="check_escalation_level"
        ),
        CheckConstraint(
            "feedback_rating IS NULL OR (feedback_rating >= 1 AND feedback_rating <= 5)",
            name="check_feedback_rating"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Issue(id={self.id}, "
            f"report_id={self.report_id}, "
            f"status={self.status}, "
            f"title='{self.title[:50]}...')>"
        )


class IssueComment(Base):
    """A comment left on an issue by its reporter or by staff."""

    __tablename__ = "issue_comments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    issue_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True
    )
    author_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        server_default=func.now()
    )

    issue: Mapped["Issue"] = relationship("Issue", back_populates="comments")
    author: Mapped["User"] = relationship("User", lazy="selectin")

    def __repr__(self) -> str:
        return f"<IssueComment(id={self.id}, issue_id={self.issue_id})>"


class IssueUpvote(Base):
    """One citizen's upvote on one issue; the pair is unique."""

    __tablename__ = "issue_upvotes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    issue_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("issue_id", "user_id", name="uq_issue_upvote_user"),
    )
