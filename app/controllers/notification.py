# file: app/controllers/notification.py

import asyncio
import logging
import math
from datetime import datetime, timezone
from typing import List, Optional, Union

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import ENABLE_TEST_ENDPOINT, IS_DEVELOPMENT
from app.database.connection import get_db, get_session_factory
from app.database.models import User
from app.models.notification import (
    CATEGORY_TYPES,
    MarkAllReadResponse,
    MarkReadResponse,
    MessageResponse,
    NotificationCreate,
    NotificationPage,
    NotificationResponse,
    NotificationStats,
    UnreadCountResponse,
)
from app.models.settings import SettingsChangeResponse, UserSettingsResponse, UserSettingsUpdate
from app.services import settings_service
from app.services.firebase_auth import get_current_user
from app.services.notification_service import NotificationService
from app.services.realtime import ConnectionManager, get_realtime, publish_to_user
from app.services.settings_service import SettingsValidationError

logger = logging.getLogger(__name__)

router = APIRouter()


def get_notification_service(db: AsyncSession = Depends(get_db)) -> NotificationService:
    return NotificationService(db)


def require_test_endpoint():
    if not ENABLE_TEST_ENDPOINT:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")


def parse_read_filter(is_read: Union[str, bool, None]) -> Optional[bool]:
    """`true`, 'true' and '1' ask for read notifications; anything else means no filter."""
    if is_read is True or is_read in ("true", "1"):
        return True
    return None


def resolve_type_filter(notification_type: Optional[str], category: Optional[str]) -> Union[str, List[str], None]:
    """A known category wins over an explicit type."""
    if category in CATEGORY_TYPES:
        return list(CATEGORY_TYPES[category])
    return notification_type or None


def compute_unread_percentage(unread: int, total: int) -> int:
    if total <= 0:
        return 0
    # Half-up rounding, so 12.5 -> 13
    return int(math.floor(unread / total * 100 + 0.5))


def _error_details(exc: Exception) -> str:
    return str(exc) if IS_DEVELOPMENT else "Internal server error"


@router.get("/", response_model=NotificationPage)
async def get_user_notifications(
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=100),
        notification_type: Optional[str] = Query(None, alias="type"),
        category: Optional[str] = Query(None),
        is_read: Optional[str] = Query(None, alias="isRead"),
        current_user: User = Depends(get_current_user),
        service: NotificationService = Depends(get_notification_service),
):
    """
    Paginated notifications for the current user, newest first.
    `category` expands to its group of types and overrides `type`.
    """
    type_filter = resolve_type_filter(notification_type, category)
    read_filter = parse_read_filter(is_read)
    logger.debug(
        "Listing notifications user=%s page=%s limit=%s type=%s read=%s",
        current_user.id, page, limit, type_filter, read_filter,
    )

    try:
        result = await service.get_user_notifications(current_user.id, page, limit, type_filter, read_filter)
    except Exception as exc:
        logger.exception("Error getting notifications for user %s", current_user.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "Failed to get notifications",
                "details": _error_details(exc),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    logger.info(
        "Fetched %d notifications (total=%d) for user %s",
        len(result.notifications), result.pagination.total, current_user.id,
    )
    return result


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
        current_user: User = Depends(get_current_user),
        service: NotificationService = Depends(get_notification_service),
):
    try:
        count = await service.get_unread_count(current_user.id)
    except Exception:
        logger.exception("Error getting unread count for user %s", current_user.id)
        raise HTTPException(status_code=500, detail="Failed to get unread count")
    return UnreadCountResponse(count=count)


@router.get("/settings", response_model=UserSettingsResponse)
async def get_notification_settings(
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    """Returns the caller's settings, creating the defaults on first access."""
    try:
        settings = await settings_service.get_or_create_settings(db, current_user.id)
    except Exception:
        logger.exception("Error getting notification settings for user %s", current_user.id)
        raise HTTPException(status_code=500, detail="Failed to get notification settings")
    return UserSettingsResponse.model_validate(settings)


@router.put("/settings", response_model=SettingsChangeResponse)
async def update_notification_settings(
        settings_update: UserSettingsUpdate,
        background_tasks: BackgroundTasks,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
        realtime: Optional[ConnectionManager] = Depends(get_realtime),
):
    try:
        settings = await settings_service.update_settings(db, current_user.id, settings_update)
    except SettingsValidationError as exc:
        logger.info("Rejected settings update for user %s: %s", current_user.id, exc.errors)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid notification settings", "errors": exc.errors},
        )
    except Exception:
        logger.exception("Error updating notification settings for user %s", current_user.id)
        raise HTTPException(status_code=500, detail="Failed to update notification settings")

    response = SettingsChangeResponse(
        message="Settings updated successfully",
        settings=UserSettingsResponse.model_validate(settings),
    )
    background_tasks.add_task(
        publish_to_user, realtime, current_user.id, "settings_updated",
        {"settings": response.settings.model_dump(mode="json", by_alias=True)},
    )
    return response


@router.post("/settings/reset", response_model=SettingsChangeResponse)
async def reset_notification_settings(
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    try:
        settings = await settings_service.reset_settings(db, current_user.id)
    except Exception:
        logger.exception("Error resetting notification settings for user %s", current_user.id)
        raise HTTPException(status_code=500, detail="Failed to reset notification settings")

    logger.info("Settings reset to defaults for user %s", current_user.id)
    return SettingsChangeResponse(
        message="Settings reset to defaults",
        settings=UserSettingsResponse.model_validate(settings),
    )


async def _count_notifications(session_factory: async_sessionmaker, user_id: int,
                               read_filter: Optional[bool] = None) -> int:
    async with session_factory() as session:
        result = await NotificationService(session).get_user_notifications(user_id, 1, 1, None, read_filter)
    return result.pagination.total


async def _count_unread(session_factory: async_sessionmaker, user_id: int) -> int:
    async with session_factory() as session:
        return await NotificationService(session).get_unread_count(user_id)


@router.get("/stats", response_model=NotificationStats)
async def get_notification_stats(
        current_user: User = Depends(get_current_user),
        session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """
    Three independent reads, each on its own session. They are not a
    snapshot: a notification arriving in between can make the numbers
    disagree by one.
    """
    try:
        total, unread, read = await asyncio.gather(
            _count_notifications(session_factory, current_user.id),
            _count_unread(session_factory, current_user.id),
            _count_notifications(session_factory, current_user.id, read_filter=True),
        )
    except Exception:
        logger.exception("Error getting notification stats for user %s", current_user.id)
        raise HTTPException(status_code=500, detail="Failed to get notification stats")

    return NotificationStats(
        total=total,
        unread=unread,
        read=read,
        unread_percentage=compute_unread_percentage(unread, total),
    )


@router.patch("/mark-all-read", response_model=MarkAllReadResponse)
async def mark_all_notifications_as_read(
        background_tasks: BackgroundTasks,
        current_user: User = Depends(get_current_user),
        service: NotificationService = Depends(get_notification_service),
        realtime: Optional[ConnectionManager] = Depends(get_realtime),
):
    try:
        modified_count = await service.mark_all_as_read(current_user.id)
    except Exception:
        logger.exception("Error marking all notifications as read for user %s", current_user.id)
        raise HTTPException(status_code=500, detail="Failed to mark all notifications as read")

    background_tasks.add_task(publish_to_user, realtime, current_user.id, "all_notifications_read")
    return MarkAllReadResponse(message="All notifications marked as read", modified_count=modified_count)


@router.patch("/{notification_id}/read", response_model=MarkReadResponse)
async def mark_notification_as_read(
        notification_id: int,
        background_tasks: BackgroundTasks,
        current_user: User = Depends(get_current_user),
        service: NotificationService = Depends(get_notification_service),
        realtime: Optional[ConnectionManager] = Depends(get_realtime),
):
    try:
        notification = await service.mark_as_read(notification_id, current_user.id)
    except Exception:
        logger.exception("Error marking notification %s as read", notification_id)
        raise HTTPException(status_code=500, detail="Failed to mark notification as read")

    if notification is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")

    # Lets other open clients update their unread badge
    background_tasks.add_task(publish_to_user, realtime, current_user.id, "notification_read", notification_id)
    return MarkReadResponse(
        message="Notification marked as read",
        notification=NotificationResponse.model_validate(notification),
    )


@router.delete("/{notification_id}", response_model=MessageResponse)
async def delete_notification(
        notification_id: int,
        background_tasks: BackgroundTasks,
        current_user: User = Depends(get_current_user),
        service: NotificationService = Depends(get_notification_service),
        realtime: Optional[ConnectionManager] = Depends(get_realtime),
):
    try:
        deleted = await service.delete_notification(notification_id, current_user.id)
    except Exception:
        logger.exception("Error deleting notification %s", notification_id)
        raise HTTPException(status_code=500, detail="Failed to delete notification")

    if deleted is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")

    background_tasks.add_task(publish_to_user, realtime, current_user.id, "notification_deleted", notification_id)
    return MessageResponse(message="Notification deleted successfully")


@router.post("/test", dependencies=[Depends(require_test_endpoint)])
async def create_test_notification(
        background_tasks: BackgroundTasks,
        current_user: User = Depends(get_current_user),
        service: NotificationService = Depends(get_notification_service),
        realtime: Optional[ConnectionManager] = Depends(get_realtime),
):
    """
    Debug helper: sends the caller a system announcement from themselves.
    Suppression by the caller's own settings is reported, not raised.
    """
    logger.info("Creating test notification for user %s", current_user.id)
    payload = NotificationCreate(
        recipient_id=current_user.id,
        sender_id=current_user.id,
        type="system_announcement",
        title="Test Notification",
        message="This is a test notification to verify the system is working",
        category="system",
        priority="medium",
    )

    try:
        notification = await service.create_notification(payload)
    except Exception as exc:
        logger.exception("Error creating test notification for user %s", current_user.id)
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to create test notification", "details": _error_details(exc)},
        )

    if notification is None:
        logger.warning("Test notification for user %s was not created (disabled by settings)", current_user.id)
        return {"success": False, "message": "Test notification not created (check user settings)"}

    logger.info("Test notification %s created", notification.id)
    serialized = NotificationResponse.model_validate(notification).model_dump(mode="json", by_alias=True)
    background_tasks.add_task(publish_to_user, realtime, current_user.id, "new_notification", serialized)
    return {"success": True, "message": "Test notification created", "notification": serialized}
