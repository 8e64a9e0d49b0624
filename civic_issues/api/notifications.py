"""
In-app notifications for the signed-in user.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from civic_issues.api.deps import get_current_user, get_db
from civic_issues.errors import NotFoundError
from civic_issues.models import Notification, User
from civic_issues.schemas import NotificationResponse

router = APIRouter(prefix="/notifications", tags=["notifications"])

MAX_NOTIFICATIONS = 50


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    unread: bool = False,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """The caller's most recent notifications, newest first."""
    query = select(Notification).where(Notification.user_id == user.id)
    if unread:
        query = query.where(Notification.read.is_(False))

    result = await db.execute(
        query.order_by(Notification.created_at.desc()).limit(MAX_NOTIFICATIONS)
    )
    return result.scalars().all()


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    notification = await db.get(Notification, notification_id)
    # Other users' notifications are reported as missing
    if notification is None or notification.user_id != user.id:
        raise NotFoundError("Notification", notification_id)

    notification.read = True
    await db.flush()
    return notification
