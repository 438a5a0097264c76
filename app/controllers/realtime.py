import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.connection import get_db
from app.services.firebase_auth import TokenVerificationError, get_user_by_firebase_uid, verify_firebase_token

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/notifications")
async def notifications_socket(
        websocket: WebSocket,
        token: Optional[str] = Query(None),
        db: AsyncSession = Depends(get_db),
):
    """Joins the caller's `user_<id>` room; the server only pushes, client frames are ignored."""
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    try:
        firebase_uid = verify_firebase_token(token)["uid"]
    except TokenVerificationError as exc:
        logger.info("Rejected notifications socket: %s", exc)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    user = await get_user_by_firebase_uid(db, firebase_uid)
    # Release the connection; the socket may stay open for hours
    await db.close()
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    realtime = websocket.app.state.realtime
    await realtime.connect(websocket, user.id)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        realtime.disconnect(websocket, user.id)
