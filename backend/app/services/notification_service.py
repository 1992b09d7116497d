"""
Notification Service.

The notification sink: stores in-app notifications for a user or for every
active user holding a role. Callers commit.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, desc
from datetime import datetime, timezone
from typing import Optional, List

from backend.app.models.notification import Notification, NotificationType
from backend.app.models.user import User
from backend.app.models.enums import UserRole


class NotificationService:
    
    @staticmethod
    async def notify_user(
        db: AsyncSession,
        user_id: int,
        type: NotificationType,
        title: str,
        message: str,
        link: Optional[str] = None
    ) -> Notification:
        """Create a single notification."""
        notif = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            link=link
        )
        db.add(notif)
        await db.flush()
        return notif

    @staticmethod
    async def notify_role(
        db: AsyncSession,
        role: UserRole,
        type: NotificationType,
        title: str,
        message: str,
        link: Optional[str] = None
    ) -> int:
        """Notify every active user with the given role. Returns recipient count."""
        result = await db.execute(
            select(User.id).where(User.role == role, User.is_active == True)
        )
        user_ids = result.scalars().all()
        
        notifications = [
            Notification(
                user_id=uid,
                type=type,
                title=title,
                message=message,
                link=link
            )
            for uid in user_ids
        ]
        
        if notifications:
            db.add_all(notifications)
            await db.flush()
            
        return len(notifications)

    @staticmethod
    async def list_for_user(
        db: AsyncSession,
        user_id: int,
        unread_only: bool = False,
        limit: int = 50
    ) -> List[Notification]:
        """Latest notifications for a user, newest first."""
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read == False)
        query = query.order_by(desc(Notification.created_at), desc(Notification.id)).limit(limit)
        
        result = await db.execute(query)
        return result.scalars().all()

    @staticmethod
    async def mark_read(db: AsyncSession, notification_id: int, user_id: int) -> bool:
        """Mark a notification as read."""
        stmt = update(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).values(
            is_read=True,
            read_at=datetime.now(timezone.utc)
        )
        result = await db.execute(stmt)
        return result.rowcount > 0

    @staticmethod
    async def mark_all_read(db: AsyncSession, user_id: int) -> int:
        """Mark all notifications for user as read."""
        stmt = update(Notification).where(
            Notification.user_id == user_id,
            Notification.is_read == False
        ).values(
            is_read=True,
            read_at=datetime.now(timezone.utc)
        )
        result = await db.execute(stmt)
        return result.rowcount
