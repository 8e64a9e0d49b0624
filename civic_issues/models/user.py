"""
User model for citizens, staff and administrators.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    String,
    Text,
    Uuid,
    false,
    func,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from civic_issues.database import Base


ROLE_CITIZEN = "citizen"
ROLE_DEPARTMENT = "department"
ROLE_MUNICIPAL = "municipal"
ROLE_ADMIN = "admin"

VALID_ROLES = [ROLE_CITIZEN, ROLE_DEPARTMENT, ROLE_MUNICIPAL, ROLE_ADMIN]

# Roles that see every issue and every personal field
STAFF_ROLES = {ROLE_MUNICIPAL, ROLE_ADMIN}


class User(Base):
    """
    A person who can log in.

    Department staff are linked to exactly one department; every other
    role has no department.
    """

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(20))
    address: Mapped[Optional[str]] = mapped_column(Text)

    role: Mapped[str] = mapped_column(String(20), nullable=False, default=ROLE_CITIZEN, index=True)
    department_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=true())
    welcome_email_sent: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false())

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        server_default=func.now()
    )

    department: Mapped[Optional["Department"]] = relationship(
        "Department",
        back_populates="staff",
        lazy="selectin"
    )

    __table_args__ = (
        CheckConstraint(
            f"role IN ({', '.join(repr(r) for r in VALID_ROLES)})",
            name="check_valid_role"
        ),
    )

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
