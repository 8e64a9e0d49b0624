"""
Aggregate performance counters for staff members and departments.

Both tables are derived data, updated incrementally by the lifecycle
service and rebuildable from issues and their state history.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import DateTime, Float, ForeignKey, Integer, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from civic_issues.database import Base


class StaffPerformance(Base):
    """Per-staff counters, one row per department user."""

    __tablename__ = "staff_performance"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    staff_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    department_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("departments.id", ondelete="SET NULL"), nullable=True, index=True
    )

    total_issues_assigned: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    total_issues_resolved: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    total_issues_escalated: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    average_resolution_time: Mapped[float] = mapped_column(Float, default=0.0, server_default="0")
    reward_points: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    penalty_points: Mapped[int] = mapped_column(Integer, default=0, server_default="0")

    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        server_default=func.now()
    )

    staff: Mapped["User"] = relationship("User", lazy="selectin")

    def __repr__(self) -> str:
        return (
            f"<StaffPerformance(staff_id={self.staff_id}, "
            f"resolved={self.total_issues_resolved}, reward={self.reward_points})>"
        )


class DepartmentPerformance(Base):
    """Per-department counters and the derived performance score."""

    __tablename__ = "department_performance"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    department_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("departments.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    total_issues_received: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    total_issues_resolved: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    total_issues_escalated: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    sla_misses: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    average_resolution_time: Mapped[float] = mapped_column(Float, default=0.0, server_default="0")
    sla_compliance_rate: Mapped[float] = mapped_column(Float, default=100.0, server_default="100")
    penalty_points: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    performance_score: Mapped[float] = mapped_column(Float, default=100.0, server_default="100")

    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        server_default=func.now()
    )

    department: Mapped["Department"] = relationship("Department", lazy="selectin")

    def __repr__(self) -> str:
        return (
            f"<DepartmentPerformance(department_id={self.department_id}, "
            f"score={self.performance_score})>"
        )
