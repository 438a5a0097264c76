import pytest
from unittest.mock import AsyncMock, patch, MagicMock
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from firebase_admin import auth
from pydantic import ValidationError


# === Test Fixtures ===
@pytest.fixture
def mock_db_session():
    session = AsyncMock()
    session.add = MagicMock()
    mock_result = MagicMock()
    session.execute = AsyncMock(return_value=mock_result)
    mock_result.scalars.return_value.first.return_value = None
    return session


@pytest.fixture
def test_payload():
    from app.models.notification import NotificationCreate
    return NotificationCreate(
        recipient_id=1, sender_id=2, type="post_like", title="New Like",
        message="Someone liked your post", category="engagement",
    )


###############################################################
# 1. Unit Tests for `app/models`
###############################################################
from app.models.notification import CATEGORY_TYPES, NotificationCreate, NotificationResponse, format_time_ago
from app.models.settings import (
    SETTINGS_SECTIONS,
    UserSettingsUpdate,
    default_settings_document,
)


def test_utc_001_notification_create_defaults():
    notification = NotificationCreate(recipient_id=1, sender_id=1, type="message", title="Hi", message="Hello")
    assert notification.priority == "medium"
    assert notification.category == "connection"
    assert notification.metadata == {}


def test_utc_002_notification_create_rejects_unknown_type():
    with pytest.raises(ValidationError):
        NotificationCreate(recipient_id=1, sender_id=1, type="poke", title="Hi", message="Hello")


@pytest.mark.parametrize("elapsed,expected", [
    (timedelta(seconds=30), "Just now"),
    (timedelta(minutes=5), "5m ago"),
    (timedelta(hours=3, minutes=59), "3h ago"),
    (timedelta(days=2), "2d ago"),
    (timedelta(days=65), "2mo ago"),
])
def test_utc_003_format_time_ago(elapsed, expected):
    now = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
    assert format_time_ago(now - elapsed, now=now) == expected


def test_utc_004_notification_response_reads_orm_metadata():
    row = SimpleNamespace(
        id=1, recipient_id=1, sender_id=2, type="post_like", title="t", message="m",
        category="engagement", priority="low", is_read=False, related_post_id=5,
        related_comment_id=None, related_user_id=None, meta={"postTitle": "Hello"},
        created_at=datetime.now(timezone.utc), updated_at=None,
        sender=SimpleNamespace(id=2, full_name="Sender Name", image_uri="avatars/2.png"),
    )
    dumped = NotificationResponse.model_validate(row).model_dump(mode="json", by_alias=True)
    assert dumped["metadata"] == {"postTitle": "Hello"}
    assert dumped["relatedPostId"] == 5
    assert dumped["timeAgo"] == "Just now"
    assert dumped["sender"] == {"id": 2, "fullName": "Sender Name", "imageUri": "avatars/2.png"}


def test_utc_005_default_settings_document():
    defaults = default_settings_document()
    assert set(defaults) == {"notifications", "privacy", "communication", "display", "security"}
    assert all(defaults["notifications"].values())
    assert defaults["privacy"]["profileVisibility"] == "public"
    assert defaults["communication"]["quietHours"] == {"enabled": False, "startTime": "22:00", "endTime": "08:00"}
    assert defaults["display"]["theme"] == "auto"
    assert defaults["security"]["sessionTimeout"] == 24
    assert defaults["security"]["lastPasswordChange"] is None


def test_utc_006_settings_update_drops_unknown_sections():
    update = UserSettingsUpdate(**{"foo": 1, "userId": 99, "display": {"theme": "dark"}})
    assert update.model_dump(exclude_none=True) == {"display": {"theme": "dark"}}


@pytest.mark.parametrize("section,bad_value", [
    ("display", {"theme": "neon"}),
    ("privacy", {"profileVisibility": "everyone"}),
    ("communication", {"quietHours": {"startTime": "25:00"}}),
    ("security", {"sessionTimeout": 0}),
])
def test_utc_007_settings_sections_reject_bad_values(section, bad_value):
    with pytest.raises(ValidationError):
        SETTINGS_SECTIONS[section].model_validate(bad_value)


###############################################################
# 2. Unit Tests for `app/controllers/notification.py` helpers
###############################################################
from app.controllers.notification import compute_unread_percentage, parse_read_filter, resolve_type_filter


@pytest.mark.parametrize("value,expected", [
    (True, True), ("true", True), ("1", True),
    ("false", None), ("0", None), ("yes", None), (None, None), (False, None),
])
def test_utc_010_parse_read_filter(value, expected):
    assert parse_read_filter(value) is expected


@pytest.mark.parametrize("category", sorted(CATEGORY_TYPES))
def test_utc_011_category_overrides_type(category):
    assert resolve_type_filter("post_like", category) == CATEGORY_TYPES[category]


def test_utc_012_type_filter_without_known_category():
    assert resolve_type_filter("message", None) == "message"
    assert resolve_type_filter("message", "bogus") == "message"
    assert resolve_type_filter(None, None) is None
    assert resolve_type_filter("", None) is None


@pytest.mark.parametrize("unread,total,expected", [
    (3, 10, 30), (0, 0, 0), (1, 8, 13), (1, 3, 33), (2, 3, 67), (5, 5, 100),
])
def test_utc_013_compute_unread_percentage(unread, total, expected):
    assert compute_unread_percentage(unread, total) == expected


###############################################################
# 3. Unit Tests for `app/services/notification_service.py`
###############################################################
from app.services.notification_service import NotificationService, is_in_quiet_hours, is_notification_enabled


def test_utc_020_is_notification_enabled():
    assert is_notification_enabled(None, "post_like") is True
    assert is_notification_enabled({}, "post_like") is True
    assert is_notification_enabled({"postLikes": False}, "post_like") is False
    assert is_notification_enabled({"postLikes": False}, "message") is True
    assert is_notification_enabled({"newMessages": False}, "message") is False


@pytest.mark.parametrize("hour,minute,expected", [
    (23, 30, True), (2, 0, True), (22, 0, True), (8, 0, True), (8, 1, False), (12, 0, False),
])
def test_utc_021_quiet_hours_overnight_window(hour, minute, expected):
    window = {"enabled": True, "startTime": "22:00", "endTime": "08:00"}
    assert is_in_quiet_hours(window, now=datetime(2025, 1, 1, hour, minute)) is expected


def test_utc_022_quiet_hours_same_day_window_and_disabled():
    window = {"enabled": True, "startTime": "09:00", "endTime": "17:00"}
    assert is_in_quiet_hours(window, now=datetime(2025, 1, 1, 12, 0)) is True
    assert is_in_quiet_hours(window, now=datetime(2025, 1, 1, 18, 0)) is False
    assert is_in_quiet_hours({**window, "enabled": False}, now=datetime(2025, 1, 1, 12, 0)) is False
    assert is_in_quiet_hours(None) is False


@pytest.mark.asyncio
async def test_utc_023_create_notification_without_settings(mock_db_session, test_payload):
    notification = await NotificationService(mock_db_session).create_notification(test_payload)

    mock_db_session.add.assert_called_once_with(notification)
    mock_db_session.commit.assert_awaited_once()
    assert notification.recipient_id == 1
    assert notification.type == "post_like"
    assert notification.meta == {}
    mock_db_session.refresh.assert_any_await(notification, ["sender"])


@pytest.mark.asyncio
async def test_utc_024_create_notification_suppressed_by_type(mock_db_session, test_payload):
    settings = SimpleNamespace(notifications={"postLikes": False}, communication={})
    mock_db_session.execute.return_value.scalars.return_value.first.return_value = settings

    result = await NotificationService(mock_db_session).create_notification(test_payload)

    assert result is None
    mock_db_session.add.assert_not_called()
    mock_db_session.commit.assert_not_awaited()


@patch("app.services.notification_service.is_in_quiet_hours", return_value=True)
@pytest.mark.asyncio
async def test_utc_025_create_notification_suppressed_by_quiet_hours(mock_quiet, mock_db_session, test_payload):
    quiet_hours = {"enabled": True, "startTime": "00:00", "endTime": "23:59"}
    settings = SimpleNamespace(notifications={}, communication={"quietHours": quiet_hours})
    mock_db_session.execute.return_value.scalars.return_value.first.return_value = settings

    result = await NotificationService(mock_db_session).create_notification(test_payload)

    assert result is None
    mock_quiet.assert_called_once_with(quiet_hours)
    mock_db_session.add.assert_not_called()


@pytest.mark.asyncio
async def test_utc_026_mark_as_read_not_found(mock_db_session):
    result = await NotificationService(mock_db_session).mark_as_read(42, user_id=1)
    assert result is None
    mock_db_session.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_utc_027_commit_failure_rolls_back(mock_db_session):
    row = SimpleNamespace(id=42, is_read=False)
    mock_db_session.execute.return_value.scalars.return_value.first.return_value = row
    mock_db_session.commit.side_effect = RuntimeError("connection lost")

    with pytest.raises(RuntimeError):
        await NotificationService(mock_db_session).mark_as_read(42, user_id=1)
    mock_db_session.rollback.assert_awaited_once()


###############################################################
# 4. Unit Tests for `app/services/settings_service.py`
###############################################################
from app.services.settings_service import SettingsValidationError, merge_section, update_settings


def test_utc_030_merge_section_keeps_stored_keys():
    current = default_settings_document()["display"]
    merged = merge_section("display", {**current, "language": "th"}, {"theme": "dark"})
    assert merged["theme"] == "dark"
    assert merged["language"] == "th"
    assert merged["timezone"] == "UTC"


@pytest.mark.asyncio
async def test_utc_031_update_settings_rejects_before_writing(mock_db_session):
    with pytest.raises(SettingsValidationError) as exc_info:
        await update_settings(
            mock_db_session, 1,
            UserSettingsUpdate(display={"theme": "dark"}, security={"sessionTimeout": -5}),
        )

    assert exc_info.value.errors[0]["loc"] == ("sessionTimeout",)
    mock_db_session.add.assert_not_called()
    mock_db_session.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_utc_032_update_settings_creates_missing_document(mock_db_session):
    settings = await update_settings(mock_db_session, 7, UserSettingsUpdate(privacy={"showEmail": True}))

    mock_db_session.add.assert_called_once_with(settings)
    assert settings.user_id == 7
    assert settings.privacy["showEmail"] is True
    assert settings.display == default_settings_document()["display"]


###############################################################
# 5. Unit Tests for `app/services/realtime.py`
###############################################################
from app.services.realtime import ConnectionManager, publish_to_user, user_room


@pytest.mark.asyncio
async def test_utc_040_connection_manager_joins_and_emits():
    manager = ConnectionManager()
    socket = AsyncMock()
    other_socket = AsyncMock()

    await manager.connect(socket, 5)
    await manager.connect(other_socket, 6)
    await manager.emit_to_user(5, "notification_read", 11)

    socket.accept.assert_awaited_once()
    socket.send_json.assert_awaited_once_with({"event": "notification_read", "data": 11})
    other_socket.send_json.assert_not_awaited()
    assert user_room(5) == "user_5"


@pytest.mark.asyncio
async def test_utc_041_connection_manager_drops_dead_sockets():
    manager = ConnectionManager()
    dead = AsyncMock()
    dead.send_json.side_effect = RuntimeError("closed")
    await manager.connect(dead, 5)

    await manager.emit_to_user(5, "all_notifications_read")

    assert "user_5" not in manager.rooms
    manager.disconnect(dead, 5)


@pytest.mark.asyncio
async def test_utc_042_publish_to_user_never_raises():
    await publish_to_user(None, 1, "notification_deleted", 3)

    broken = MagicMock()
    broken.emit_to_user = AsyncMock(side_effect=RuntimeError("broker down"))
    await publish_to_user(broken, 1, "notification_deleted", 3)
    broken.emit_to_user.assert_awaited_once_with(1, "notification_deleted", 3)


###############################################################
# 6. Unit Tests for `app/services/firebase_auth.py`
###############################################################
from app.services.firebase_auth import TokenVerificationError, verify_firebase_token


@patch("app.services.firebase_auth.auth.verify_id_token", return_value={"uid": "abc"})
def test_utc_050_verify_token_success(mock_verify):
    assert verify_firebase_token("token")["uid"] == "abc"
    mock_verify.assert_called_once_with("token")


@patch("app.services.firebase_auth.auth.verify_id_token")
def test_utc_051_verify_token_expired(mock_verify):
    mock_verify.side_effect = auth.ExpiredIdTokenError("Token expired", cause=None)
    with pytest.raises(TokenVerificationError, match="Token has expired"):
        verify_firebase_token("token")


@patch("app.services.firebase_auth.auth.verify_id_token", side_effect=ValueError("malformed"))
def test_utc_052_verify_token_invalid(mock_verify):
    with pytest.raises(TokenVerificationError, match="Could not validate credentials"):
        verify_firebase_token("token")


###############################################################
# 7. Unit Tests for the cleanup script
###############################################################
from scripts.notification_cleanup import run_cleanup


@patch("scripts.notification_cleanup.get_db_session")
@patch("scripts.notification_cleanup.NotificationService")
@pytest.mark.asyncio
async def test_utc_060_run_cleanup(mock_service_class, mock_get_db_session):
    """Verifies the cleanup job uses its own session and the configured retention window."""
    mock_db_session_instance = AsyncMock()
    mock_get_db_session.return_value.__aenter__.return_value = mock_db_session_instance
    mock_service_class.return_value.cleanup_old_notifications = AsyncMock(return_value=4)

    cleaned = await run_cleanup(days=30)

    assert cleaned == 4
    mock_service_class.assert_called_once_with(mock_db_session_instance)
    mock_service_class.return_value.cleanup_old_notifications.assert_awaited_once_with(30)
