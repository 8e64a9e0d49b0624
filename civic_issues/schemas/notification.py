from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from uuid import UUID

class NotificationResponse(BaseModel):
    id: UUID
    title: str
    message: str
    type: str
    related_issue_id: Optional[UUID] = None
    read: bool
    created_at: datetime

    class Config:
        from_attributes = True
