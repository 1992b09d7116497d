"""
Notification inbox API endpoints.
"""

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from backend.app.db.session import get_db
from backend.app.core.dependencies import get_current_user
from backend.app.core.exceptions import ResourceNotFoundError
from backend.app.models.notification import Notification
from backend.app.services.notification_service import NotificationService
from backend.app.schemas.notification import NotificationResponse, NotificationListResponse, MarkReadResponse

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List current user's notifications, newest first."""
    notifications = await NotificationService.list_for_user(
        db, current_user["user_id"], unread_only=unread_only, limit=limit
    )
    unread = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == current_user["user_id"],
            Notification.is_read == False
        )
    )
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        unread_count=unread.scalar_one()
    )


@router.patch("/read-all", response_model=MarkReadResponse)
async def mark_all_notifications_read(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Mark all notifications as read."""
    count = await NotificationService.mark_all_read(db, current_user["user_id"])
    await db.commit()
    return MarkReadResponse(updated=count)


@router.patch("/{notification_id}/read", response_model=MarkReadResponse)
async def mark_notification_read(
    notification_id: int = Path(...),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Mark a specific notification as read."""
    success = await NotificationService.mark_read(db, notification_id, current_user["user_id"])
    if not success:
        raise ResourceNotFoundError("Notification", notification_id)
    
    await db.commit()
    return MarkReadResponse(updated=1)
