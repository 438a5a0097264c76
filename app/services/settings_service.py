# file: app/services/settings_service.py

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.connection import commit_or_rollback
from app.database.models import UserSettings
from app.models.settings import SETTINGS_SECTIONS, UserSettingsUpdate, default_settings_document

logger = logging.getLogger(__name__)


class SettingsValidationError(Exception):
    def __init__(self, errors: List[Dict[str, Any]]):
        super().__init__("Invalid settings update")
        self.errors = errors


def build_default_settings(user_id: int) -> UserSettings:
    return UserSettings(user_id=user_id, **default_settings_document())


def merge_section(name: str, current: Optional[dict], changes: dict) -> dict:
    """Supplied keys replace stored ones; the result is validated against the section model."""
    merged = {**(current or {}), **changes}
    return SETTINGS_SECTIONS[name].model_validate(merged).model_dump(mode="json")


async def find_settings(db: AsyncSession, user_id: int) -> Optional[UserSettings]:
    result = await db.execute(select(UserSettings).where(UserSettings.user_id == user_id))
    return result.scalars().first()


async def get_or_create_settings(db: AsyncSession, user_id: int) -> UserSettings:
    settings = await find_settings(db, user_id)
    if settings is not None:
        return settings

    settings = build_default_settings(user_id)
    db.add(settings)
    await commit_or_rollback(db)
    await db.refresh(settings)
    logger.info("Created default settings for user %s", user_id)
    return settings


async def update_settings(db: AsyncSession, user_id: int, settings_update: UserSettingsUpdate) -> UserSettings:
    changes = settings_update.model_dump(exclude_none=True)
    settings = await find_settings(db, user_id)
    defaults = default_settings_document()

    # Validate every section before touching the session so a bad payload leaves nothing pending.
    merged = {}
    try:
        for name, section_changes in changes.items():
            current = getattr(settings, name) if settings is not None else defaults[name]
            merged[name] = merge_section(name, current, section_changes)
    except ValidationError as exc:
        raise SettingsValidationError(exc.errors(include_url=False, include_context=False)) from exc

    if settings is None:
        settings = UserSettings(user_id=user_id, **{**defaults, **merged})
        db.add(settings)
    else:
        for name, value in merged.items():
            setattr(settings, name, value)

    await commit_or_rollback(db)
    await db.refresh(settings)
    return settings


async def reset_settings(db: AsyncSession, user_id: int) -> UserSettings:
    # Two separate commits: a concurrent reader can briefly see no settings at all.
    existing = await find_settings(db, user_id)
    if existing is not None:
        await db.delete(existing)
        await commit_or_rollback(db)

    settings = build_default_settings(user_id)
    db.add(settings)
    await commit_or_rollback(db)
    await db.refresh(settings)
    return settings
