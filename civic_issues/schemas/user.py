from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from uuid import UUID
from enum import Enum

PHONE_PATTERN = r"^\+?[\d\s-]{10,20}$"

class RoleEnum(str, Enum):
    CITIZEN = "citizen"
    DEPARTMENT = "department"
    MUNICIPAL = "municipal"
    ADMIN = "admin"

class DepartmentBrief(BaseModel):
    id: UUID
    name: str
    slug: str

    class Config:
        from_attributes = True

class UserSummary(BaseModel):
    """Person shown on an issue; fields may be masked."""
    id: Optional[UUID] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    class Config:
        from_attributes = True

class UserResponse(BaseModel):
    id: Optional[UUID] = None
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    role: str
    department_id: Optional[UUID] = None
    department: Optional[DepartmentBrief] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    address: Optional[str] = Field(None, max_length=500)

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

class AdminUserCreate(BaseModel):
    """Staff account created by an admin."""
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    role: RoleEnum
    department_id: Optional[UUID] = None
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)

class AdminUserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    role: Optional[RoleEnum] = None
    department_id: Optional[UUID] = None
    is_active: Optional[bool] = None
