# file: app/models/settings.py

from datetime import datetime
from typing import Any, Dict, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field

from app.models.notification import CamelModel

TIME_OF_DAY_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class NotificationPreferences(BaseModel):
    # Connections
    followRequests: bool = True
    followAccepted: bool = True
    followRejected: bool = True
    # Post engagement
    postLikes: bool = True
    postComments: bool = True
    postShares: bool = True
    postMentions: bool = True
    # Messages
    newMessages: bool = True
    messageReadReceipts: bool = True
    # Events
    eventReminders: bool = True
    eventInvitations: bool = True
    # Jobs
    jobApplications: bool = True
    jobUpdates: bool = True
    # System
    systemAnnouncements: bool = True
    securityAlerts: bool = True


class PrivacySettings(BaseModel):
    profileVisibility: Literal["public", "connections", "private"] = "public"
    showEmail: bool = False
    showPhone: bool = False
    showLocation: bool = True
    showCompany: bool = True
    showBatch: bool = True
    showDepartment: bool = True
    allowMessagesFrom: Literal["everyone", "connections", "none"] = "connections"
    showOnlineStatus: bool = True


class QuietHours(BaseModel):
    enabled: bool = False
    startTime: str = Field("22:00", pattern=TIME_OF_DAY_PATTERN)
    endTime: str = Field("08:00", pattern=TIME_OF_DAY_PATTERN)


class CommunicationSettings(BaseModel):
    emailNotifications: bool = True
    pushNotifications: bool = True
    inAppNotifications: bool = True
    notificationFrequency: Literal["immediate", "hourly", "daily", "weekly"] = "immediate"
    quietHours: QuietHours = Field(default_factory=QuietHours)


class DisplaySettings(BaseModel):
    theme: Literal["light", "dark", "auto"] = "auto"
    language: str = "en"
    timezone: str = "UTC"
    dateFormat: str = "MM/DD/YYYY"
    timeFormat: str = "12h"


class SecuritySettings(BaseModel):
    twoFactorEnabled: bool = False
    loginNotifications: bool = True
    sessionTimeout: int = Field(24, ge=1)  # hours
    requirePasswordChange: bool = False
    lastPasswordChange: Optional[datetime] = None
    passwordExpiryDays: int = Field(90, ge=1)


SETTINGS_SECTIONS: Dict[str, Type[BaseModel]] = {
    "notifications": NotificationPreferences,
    "privacy": PrivacySettings,
    "communication": CommunicationSettings,
    "display": DisplaySettings,
    "security": SecuritySettings,
}


def default_settings_document() -> Dict[str, Dict[str, Any]]:
    return {name: model().model_dump(mode="json") for name, model in SETTINGS_SECTIONS.items()}


class UserSettingsUpdate(BaseModel):
    """
    The only sections a client may write. Unknown top-level keys in the
    request body are dropped, not rejected.
    """
    model_config = ConfigDict(extra="ignore")

    notifications: Optional[Dict[str, Any]] = None
    privacy: Optional[Dict[str, Any]] = None
    communication: Optional[Dict[str, Any]] = None
    display: Optional[Dict[str, Any]] = None
    security: Optional[Dict[str, Any]] = None


class UserSettingsResponse(CamelModel):
    id: int
    user_id: int
    notifications: NotificationPreferences
    privacy: PrivacySettings
    communication: CommunicationSettings
    display: DisplaySettings
    security: SecuritySettings
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SettingsChangeResponse(BaseModel):
    message: str
    settings: UserSettingsResponse
