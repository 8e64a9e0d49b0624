"""
In-app notification model.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, String, Text, Uuid, false, func
from sqlalchemy.orm import Mapped, mapped_column

from civic_issues.database import Base


VALID_NOTIFICATION_TYPES = ["issue_update", "assignment", "comment", "status_change", "system"]


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="issue_update")
    related_issue_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("issues.id", ondelete="CASCADE"), nullable=True
    )
    read: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false())
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        server_default=func.now(),
        index=True
    )

    __table_args__ = (
        CheckConstraint(
            f"type IN ({', '.join(repr(t) for t in VALID_NOTIFICATION_TYPES)})",
            name="check_valid_notification_type"
        ),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, user_id={self.user_id}, read={self.read})>"
