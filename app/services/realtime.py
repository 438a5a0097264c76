import logging
from typing import Any, Dict, Optional, Set

from fastapi import Request, WebSocket

logger = logging.getLogger(__name__)


def user_room(user_id: int) -> str:
    return f"user_{user_id}"


class ConnectionManager:
    def __init__(self):
        self.rooms: Dict[str, Set[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, user_id: int):
        await websocket.accept()
        room = user_room(user_id)
        self.rooms.setdefault(room, set()).add(websocket)
        logger.info("WS client joined %s. sockets=%d", room, len(self.rooms[room]))

    def disconnect(self, websocket: WebSocket, user_id: int):
        room = user_room(user_id)
        members = self.rooms.get(room)
        if not members:
            return
        members.discard(websocket)
        if not members:
            del self.rooms[room]
        logger.info("WS client left %s", room)

    async def emit_to_user(self, user_id: int, event: str, data: Any = None):
        members = list(self.rooms.get(user_room(user_id), ()))
        if not members:
            return

        message = {"event": event, "data": data}
        for websocket in members:
            try:
                await websocket.send_json(message)
            except Exception:
                logger.warning("Dropping dead socket for user %s", user_id, exc_info=True)
                self.disconnect(websocket, user_id)


manager = ConnectionManager()


def get_realtime(request: Request) -> Optional[ConnectionManager]:
    return getattr(request.app.state, "realtime", None)


async def publish_to_user(realtime: Optional[ConnectionManager], user_id: int, event: str, data: Any = None):
    """Fire-and-forget push; a missing channel or a failed send never reaches the caller."""
    if realtime is None:
        logger.debug("No realtime channel configured, skipping %s", event)
        return
    try:
        await realtime.emit_to_user(user_id, event, data)
    except Exception:
        logger.exception("Failed to publish %s to user %s", event, user_id)
