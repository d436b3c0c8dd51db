import logging
from typing import List

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.config import settings
from taskflow.core.exceptions import NotFoundError
from taskflow.models.notification import Notification

logger = logging.getLogger(__name__)


def create_notification(db: AsyncSession, user_id: int, title: str, message: str, type: str = "SYSTEM") -> Notification:
    """Stage a notification on the session; the caller's commit persists it."""
    notification = Notification(user_id=user_id, title=title, message=message, type=type, read=False)
    db.add(notification)
    logger.info("Notification %s queued for user %s", type, user_id)
    return notification


async def list_notifications(
    db: AsyncSession,
    user_id: int,
    unread: bool = False,
    limit: int = None,
) -> List[Notification]:
    query = select(Notification).where(Notification.user_id == user_id)
    if unread:
        query = query.where(Notification.read.is_(False))
    result = await db.execute(
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit or settings.NOTIFICATIONS_PAGE_SIZE)
    )
    return result.scalars().all()


async def _get_own_notification(db: AsyncSession, user_id: int, notification_id: int) -> Notification:
    result = await db.execute(
        select(Notification)
        .where(Notification.id == notification_id)
        .where(Notification.user_id == user_id)
    )
    notification = result.scalar_one_or_none()
    if not notification:
        raise NotFoundError("Notification not found")
    return notification


async def mark_read(db: AsyncSession, user_id: int, notification_id: int) -> Notification:
    notification = await _get_own_notification(db, user_id, notification_id)
    notification.read = True
    await db.commit()
    await db.refresh(notification)
    return notification


async def mark_all_read(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id)
        .where(Notification.read.is_(False))
        .values(read=True)
    )
    await db.commit()
    return result.rowcount


async def delete_notification(db: AsyncSession, user_id: int, notification_id: int) -> None:
    notification = await _get_own_notification(db, user_id, notification_id)
    await db.delete(notification)
    await db.commit()
