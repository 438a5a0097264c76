# file: app/services/notification_service.py

import logging
from datetime import datetime, timedelta, timezone
from math import ceil
from typing import Optional, Sequence, Union

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.database.connection import commit_or_rollback
from app.database.models import Notification, UserSettings
from app.models.notification import NotificationCreate, NotificationPage, NotificationResponse, Pagination

logger = logging.getLogger(__name__)

TypeFilter = Union[str, Sequence[str], None]

# Notification type -> the preference flag in the `notifications` settings section
TYPE_PREFERENCE_KEYS = {
    "follow_request": "followRequests",
    "follow_accepted": "followAccepted",
    "follow_rejected": "followRejected",
    "post_like": "postLikes",
    "post_comment": "postComments",
    "post_share": "postShares",
    "post_mention": "postMentions",
    "message": "newMessages",
    "event_reminder": "eventReminders",
    "event_invitation": "eventInvitations",
    "job_application": "jobApplications",
    "job_update": "jobUpdates",
    "system_announcement": "systemAnnouncements",
    "security_alert": "securityAlerts",
}


def is_notification_enabled(preferences: Optional[dict], notification_type: str) -> bool:
    """Only an explicit `false` disables a type; missing flags count as enabled."""
    if not preferences:
        return True
    key = TYPE_PREFERENCE_KEYS.get(notification_type)
    return preferences.get(key) is not False


def _minutes_since_midnight(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def is_in_quiet_hours(quiet_hours: Optional[dict], now: Optional[datetime] = None) -> bool:
    """
    Both ends of the window are inclusive. A window whose start is after its
    end (e.g. 22:00-08:00) wraps past midnight.
    """
    if not quiet_hours or not quiet_hours.get("enabled"):
        return False

    if now is None:
        now = datetime.now()
    current = now.hour * 60 + now.minute
    start = _minutes_since_midnight(quiet_hours.get("startTime", "22:00"))
    end = _minutes_since_midnight(quiet_hours.get("endTime", "08:00"))

    if start <= end:
        return start <= current <= end
    return current >= start or current <= end


class NotificationService:
    def __init__(self, db: AsyncSession):
        self.db = db

    def _owned_by(self, user_id: int):
        return (
            Notification.recipient_id == user_id,
            Notification.is_deleted.is_(False),
        )

    async def _find_owned(self, notification_id: int, user_id: int) -> Optional[Notification]:
        stmt = (
            select(Notification)
            .options(selectinload(Notification.sender))
            .where(Notification.id == notification_id, *self._owned_by(user_id))
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def _refresh_with_sender(self, notification: Notification):
        # A plain refresh leaves `sender` unloaded, and lazy loads are not allowed under asyncio
        await self.db.refresh(notification)
        await self.db.refresh(notification, ["sender"])

    async def create_notification(self, payload: NotificationCreate) -> Optional[Notification]:
        """
        Stores a notification unless the recipient's settings suppress it.
        Returns None when suppressed by a disabled type or by quiet hours.
        """
        result = await self.db.execute(select(UserSettings).where(UserSettings.user_id == payload.recipient_id))
        settings = result.scalars().first()

        if settings is not None:
            if not is_notification_enabled(settings.notifications, payload.type):
                logger.info("Notification type %s disabled for user %s", payload.type, payload.recipient_id)
                return None
            quiet_hours = (settings.communication or {}).get("quietHours")
            if is_in_quiet_hours(quiet_hours):
                logger.info("Quiet hours active for user %s, notification dropped", payload.recipient_id)
                return None

        notification = Notification(
            recipient_id=payload.recipient_id,
            sender_id=payload.sender_id,
            type=payload.type,
            title=payload.title,
            message=payload.message,
            related_post_id=payload.related_post_id,
            related_comment_id=payload.related_comment_id,
            related_user_id=payload.related_user_id,
            priority=payload.priority,
            category=payload.category,
            meta=payload.metadata,
        )
        self.db.add(notification)
        await commit_or_rollback(self.db)
        await self._refresh_with_sender(notification)
        return notification

    async def get_user_notifications(
            self,
            user_id: int,
            page: int = 1,
            limit: int = 20,
            type_filter: TypeFilter = None,
            read_filter: Optional[bool] = None,
    ) -> NotificationPage:
        conditions = list(self._owned_by(user_id))
        if type_filter:
            if isinstance(type_filter, str):
                conditions.append(Notification.type == type_filter)
            else:
                conditions.append(Notification.type.in_(list(type_filter)))
        if read_filter is not None:
            conditions.append(Notification.is_read.is_(read_filter))

        stmt = (
            select(Notification)
            .options(selectinload(Notification.sender))
            .where(*conditions)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        notifications = (await self.db.execute(stmt)).scalars().all()

        count_stmt = select(func.count()).select_from(Notification).where(*conditions)
        total = (await self.db.execute(count_stmt)).scalar_one()

        total_pages = ceil(total / limit)
        return NotificationPage(
            notifications=[NotificationResponse.model_validate(n) for n in notifications],
            pagination=Pagination(
                current_page=page,
                total_pages=total_pages,
                total=total,
                has_more=page < total_pages,
            ),
        )

    async def get_unread_count(self, user_id: int) -> int:
        stmt = (
            select(func.count())
            .select_from(Notification)
            .where(*self._owned_by(user_id), Notification.is_read.is_(False))
        )
        return (await self.db.execute(stmt)).scalar_one()

    async def mark_as_read(self, notification_id: int, user_id: int) -> Optional[Notification]:
        notification = await self._find_owned(notification_id, user_id)
        if notification is None:
            return None

        notification.is_read = True
        await commit_or_rollback(self.db)
        await self._refresh_with_sender(notification)
        return notification

    async def mark_all_as_read(self, user_id: int) -> int:
        stmt = (
            update(Notification)
            .where(*self._owned_by(user_id), Notification.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await commit_or_rollback(self.db)
        return result.rowcount

    async def delete_notification(self, notification_id: int, user_id: int) -> Optional[Notification]:
        """Soft delete: the row stays but disappears from every listing and count."""
        notification = await self._find_owned(notification_id, user_id)
        if notification is None:
            return None

        notification.is_deleted = True
        await commit_or_rollback(self.db)
        await self.db.refresh(notification)
        return notification

    async def cleanup_old_notifications(self, days: int = 90) -> int:
        cutoff = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(days=days)
        stmt = (
            update(Notification)
            .where(Notification.created_at < cutoff, Notification.is_deleted.is_(False))
            .values(is_deleted=True)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await commit_or_rollback(self.db)
        logger.info("Cleaned up %d notifications older than %d days", result.rowcount, days)
        return result.rowcount
