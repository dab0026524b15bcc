from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from foodapp.core.security import get_current_user
from foodapp.database import get_db
from foodapp.models import User
from foodapp.schemas import MessageResponse, NotificationResponse
from foodapp.services import notification_service

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    unread: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> List[NotificationResponse]:
    """Newest first."""
    notifications = await notification_service.list_notifications(db, user.id, unread_only=unread, limit=limit)
    return [NotificationResponse.model_validate(n) for n in notifications]


@router.post("/read-all", response_model=MessageResponse)
async def mark_all_read(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    updated = await notification_service.mark_all_read(db, user.id)
    return MessageResponse(message=f"{updated} notifications marked as read")


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> NotificationResponse:
    notification = await notification_service.mark_read(db, user.id, notification_id)
    return NotificationResponse.model_validate(notification)
