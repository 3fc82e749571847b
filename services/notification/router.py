"""
services/notification/router.py
In-app notification inbox. Rows are written by the lifecycle engine;
these endpoints only read them and flip unread → read.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.settings import settings
from services.notification import emitter
from shared.schemas.schemas import (
    MessageResponse,
    NotificationResponse,
    ReadAllResponse,
    UnreadCountResponse,
)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/{user_id}", response_model=list[NotificationResponse])
async def get_notifications(
    user_id: int,
    unread_only: bool = Query(False),
    limit: int = Query(settings.NOTIFICATION_FETCH_LIMIT, ge=1, le=settings.NOTIFICATION_FETCH_LIMIT),
    db: AsyncSession = Depends(get_db),
):
    """Newest first, at most NOTIFICATION_FETCH_LIMIT rows."""
    notifications = await emitter.fetch_notifications(
        db, user_id, limit=limit, unread_only=unread_only
    )
    return [NotificationResponse.model_validate(n) for n in notifications]


@router.get("/{user_id}/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(user_id: int, db: AsyncSession = Depends(get_db)):
    return UnreadCountResponse(unread_count=await emitter.unread_count(db, user_id))


@router.put("/{notification_id}/read", response_model=MessageResponse)
async def mark_read(
    notification_id: int,
    user_id: int = Query(..., description="Owner of the notification"),
    db: AsyncSession = Depends(get_db),
):
    await emitter.mark_read(db, notification_id, user_id)
    return MessageResponse(message="Marked as read")


@router.put("/{user_id}/read-all", response_model=ReadAllResponse)
async def mark_all_read(user_id: int, db: AsyncSession = Depends(get_db)):
    updated = await emitter.mark_all_read(db, user_id)
    return ReadAllResponse(message="All notifications marked as read", updated=updated)
