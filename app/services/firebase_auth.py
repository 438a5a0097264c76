import logging
from typing import Optional

import firebase_admin
from firebase_admin import credentials, auth
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.config import FIREBASE_CREDENTIALS, TESTING
from app.database.models import User
from app.database.connection import get_db

logger = logging.getLogger(__name__)

# Singleton pattern: Check if the app is already initialized
if not TESTING and not firebase_admin._apps:
    try:
        cred = credentials.Certificate(FIREBASE_CREDENTIALS)
        firebase_admin.initialize_app(cred)
        logger.info("Firebase Admin SDK initialized successfully.")
    except Exception:
        logger.exception("Error initializing Firebase Admin SDK from %s", FIREBASE_CREDENTIALS)

# Scheme to extract the bearer token. auto_error=False so we can answer with our own 401.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/sync", auto_error=False)


class TokenVerificationError(Exception):
    pass


def verify_firebase_token(token: str) -> dict:
    """Verifies a Firebase ID token and returns its decoded claims."""
    try:
        return auth.verify_id_token(token)
    except auth.ExpiredIdTokenError as exc:
        raise TokenVerificationError("Token has expired") from exc
    except (auth.InvalidIdTokenError, ValueError) as exc:
        raise TokenVerificationError("Could not validate credentials") from exc
    except Exception as exc:
        logger.warning("Token verification failed: %s", exc)
        raise TokenVerificationError("Could not validate credentials") from exc


async def get_user_by_firebase_uid(db: AsyncSession, firebase_uid: str) -> Optional[User]:
    stmt = select(User).where(User.firebase_uid == firebase_uid)
    result = await db.execute(stmt)
    return result.scalars().first()


async def get_current_user(
        token: Optional[str] = Depends(oauth2_scheme),
        db: AsyncSession = Depends(get_db)
) -> User:
    """
    Required dependency: Verifies Firebase ID token and returns the DB user.
    Raises HTTPException if the token is missing or invalid.
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        firebase_uid = verify_firebase_token(token)["uid"]
    except TokenVerificationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await get_user_by_firebase_uid(db, firebase_uid)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User profile not found in application database. Please sync your account."
        )
    return user
