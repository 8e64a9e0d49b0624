"""
StateHistory model: the append-only log of issue status changes.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from civic_issues.database import Base


class StateHistory(Base):
    """
    One row per status change of an issue.

    Rows are never updated. The integer primary key preserves insertion
    order and ``timestamp`` strictly increases per issue, so the latest
    row always carries the issue's current status.
    """

    __tablename__ = "state_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    issue_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True
    )
    from_status: Mapped[Optional[str]] = mapped_column(String(20))
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    # Null when the change was made by the scheduler
    changed_by_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    comment: Mapped[Optional[str]] = mapped_column(Text)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    changed_by: Mapped[Optional["User"]] = relationship("User", lazy="selectin")

    def __repr__(self) -> str:
        return (
            f"<StateHistory(issue_id={self.issue_id}, "
            f"{self.from_status} -> {self.status}, at={self.timestamp})>"
        )
