import logging

from fastapi import APIRouter, Depends, status, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from firebase_admin import auth

from app.models.user import UserResponse, UserSyncRequest
from app.services.firebase_auth import (
    TokenVerificationError,
    get_current_user,
    get_user_by_firebase_uid,
    oauth2_scheme,
    verify_firebase_token,
)
from app.database.connection import get_db, commit_or_rollback
from app.database.models import User

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/sync", response_model=UserResponse)
async def sync_user(
    sync_data: UserSyncRequest,
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db)
):
    """
    Called by the frontend after a user signs up/in.
    Verifies the Firebase token and creates a user profile in our database
    if one doesn't already exist.
    """
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        uid = verify_firebase_token(token)["uid"]
    except TokenVerificationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))

    db_user = await get_user_by_firebase_uid(db, uid)
    if db_user:
        return UserResponse.model_validate(db_user)

    try:
        firebase_user_record = auth.get_user(uid)
        new_user = User(
            firebase_uid=firebase_user_record.uid,
            email=firebase_user_record.email,
            full_name=sync_data.fullName or firebase_user_record.display_name,
            image_uri=firebase_user_record.photo_url,
        )
        db.add(new_user)
        await commit_or_rollback(db)
        await db.refresh(new_user)
    except Exception:
        logger.exception("Failed to create user profile for firebase uid %s", uid)
        raise HTTPException(status_code=500, detail="Failed to create user profile in DB.")

    logger.info("Synced new user %s", new_user.id)
    return UserResponse.model_validate(new_user)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    return UserResponse.model_validate(current_user)
