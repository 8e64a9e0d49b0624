from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from uuid import UUID

from civic_issues.schemas.user import PHONE_PATTERN

class DepartmentBase(BaseModel):
    name: str = Field(..., min_length=5, max_length=100)
    slug: str = Field(..., min_length=2, max_length=50, pattern=r"^[a-z0-9]+(-[a-z0-9]+)*$")
    description: Optional[str] = Field(None, max_length=1000)
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)

class DepartmentCreate(DepartmentBase):
    is_active: bool = True

class DepartmentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=5, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    is_active: Optional[bool] = None

class DepartmentResponse(BaseModel):
    id: UUID
    name: str
    slug: str
    description: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True

class DepartmentWithWorkload(DepartmentResponse):
    """Department with live issue counts."""
    workload: int = 0
    issue_count: int = 0
    staff_count: int = 0
