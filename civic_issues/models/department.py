"""
Department model for the municipal units that own issue categories.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, String, Text, Uuid, func, true
from sqlalchemy.orm import Mapped, mapped_column, relationship

from civic_issues.database import Base


class Department(Base):
    """
    An organizational unit responsible for one or more issue categories.

    ``slug`` ties the department to the category it handles; new issues
    are routed to the active department whose slug matches their category.
    """

    __tablename__ = "departments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    slug: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text)
    contact_email: Mapped[Optional[str]] = mapped_column(String(255))
    contact_phone: Mapped[Optional[str]] = mapped_column(String(20))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=true())

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        server_default=func.now()
    )

    staff: Mapped[List["User"]] = relationship(
        "User",
        back_populates="department",
        lazy="noload"
    )

    def __repr__(self) -> str:
        return f"<Department(id={self.id}, slug={self.slug}, active={self.is_active})>"
