# file: app/models/notification.py

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

NotificationType = Literal[
    "follow_request",
    "follow_accepted",
    "follow_rejected",
    "post_like",
    "post_comment",
    "post_share",
    "post_mention",
    "message",
    "event_reminder",
    "event_invitation",
    "job_application",
    "job_update",
    "system_announcement",
    "security_alert",
]
Priority = Literal["low", "medium", "high", "urgent"]
Category = Literal["connection", "engagement", "communication", "system"]

# Coarse client-side filter groups. Types outside these groups (events, jobs)
# are only reachable through the `type` filter.
CATEGORY_TYPES: Dict[str, List[str]] = {
    "connection": ["follow_request", "follow_accepted", "follow_rejected"],
    "engagement": ["post_like", "post_comment", "post_share", "post_mention"],
    "communication": ["message"],
    "system": ["system_announcement", "security_alert"],
}


def format_time_ago(created_at: datetime, now: Optional[datetime] = None) -> str:
    if now is None:
        now = datetime.now(timezone.utc)
    if created_at.tzinfo is None:
        now = now.astimezone(timezone.utc).replace(tzinfo=None)
    seconds = int((now - created_at).total_seconds())

    if seconds < 60:
        return "Just now"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    if seconds < 2592000:
        return f"{seconds // 86400}d ago"
    return f"{seconds // 2592000}mo ago"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class NotificationCreate(BaseModel):
    recipient_id: int
    sender_id: int
    type: NotificationType
    title: str
    message: str
    related_post_id: Optional[int] = None
    related_comment_id: Optional[int] = None
    related_user_id: Optional[int] = None
    priority: Priority = "medium"
    category: Category = "connection"
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SenderSummary(CamelModel):
    id: int
    full_name: Optional[str] = None
    image_uri: Optional[str] = None


class NotificationResponse(CamelModel):
    id: int
    recipient_id: int
    sender_id: int
    sender: Optional[SenderSummary] = None
    type: str
    title: str
    message: str
    category: str
    priority: str
    is_read: bool
    related_post_id: Optional[int] = None
    related_comment_id: Optional[int] = None
    related_user_id: Optional[int] = None
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("meta", "metadata"),
        serialization_alias="metadata",
    )
    created_at: datetime
    updated_at: Optional[datetime] = None

    @computed_field(alias="timeAgo")
    @property
    def time_ago(self) -> str:
        return format_time_ago(self.created_at)


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total: int
    has_more: bool


class NotificationPage(CamelModel):
    notifications: List[NotificationResponse]
    pagination: Pagination


class UnreadCountResponse(BaseModel):
    count: int


class MessageResponse(BaseModel):
    message: str


class MarkReadResponse(CamelModel):
    message: str
    notification: NotificationResponse


class MarkAllReadResponse(CamelModel):
    message: str
    modified_count: int


class NotificationStats(CamelModel):
    total: int
    unread: int
    read: int
    unread_percentage: int
