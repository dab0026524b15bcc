"""
In-App Notification Service

Rows in ``notifications`` back the customer's notification center. SMS,
WhatsApp and email go through Celery tasks instead (see ``foodapp.tasks``).
"""

import logging
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from foodapp.core.errors import NotFoundError
from foodapp.models import Notification, NotificationType, User, UserRole

logger = logging.getLogger(__name__)


def notify(
    db: AsyncSession,
    user_id: int,
    title: str,
    message: str,
    type: NotificationType = NotificationType.SYSTEM,
    order_id: Optional[int] = None,
) -> Notification:
    """Stage a notification on ``db``; the caller commits."""
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        order_id=order_id,
    )
    db.add(notification)
    return notification


async def list_notifications(
    db: AsyncSession,
    user_id: int,
    unread_only: bool = False,
    limit: int = 50,
) -> list[Notification]:
    query = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        query = query.where(Notification.is_read.is_(False))
    result = await db.execute(
        query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
    )
    return list(result.scalars().all())


async def unread_count(db: AsyncSession, user_id: int) -> int:
    return await db.scalar(
        select(func.count(Notification.id)).where(
            Notification.user_id == user_id, Notification.is_read.is_(False)
        )
    ) or 0


async def mark_read(db: AsyncSession, user_id: int, notification_id: int) -> Notification:
    notification = await db.get(Notification, notification_id)
    if notification is None or notification.user_id != user_id:
        raise NotFoundError("Notification")
    if not notification.is_read:
        notification.is_read = True
        await db.commit()
    return notification


async def mark_all_read(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
        .execution_options(synchronize_session="fetch")
    )
    await db.commit()
    return result.rowcount or 0


async def broadcast(
    db: AsyncSession,
    title: str,
    message: str,
    role: Optional[UserRole] = None,
    type: NotificationType = NotificationType.PROMOTION,
) -> int:
    """Send an in-app notification to every active user, or to one role."""
    query = select(User.id).where(User.is_active.is_(True))
    if role is not None:
        query = query.where(User.role == role)
    user_ids = list((await db.execute(query)).scalars())

    for user_id in user_ids:
        notify(db, user_id, title, message, type=type)
    await db.commit()

    logger.info(f"📣 Broadcast '{title}' to {len(user_ids)} users (role={role.value if role else 'all'})")
    return len(user_ids)
