"""Sockets subscribed to a user's notification stream, local to this worker."""
import json
import logging
from collections import defaultdict
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class UpdatesConnectionManager:
    def __init__(self) -> None:
        self._sockets: defaultdict[int, set[WebSocket]] = defaultdict(set)

    def connect(self, user_id: int, websocket: WebSocket) -> None:
        self._sockets[user_id].add(websocket)

    def disconnect(self, user_id: int, websocket: WebSocket) -> None:
        sockets = self._sockets.get(user_id)
        if sockets is None:
            return
        sockets.discard(websocket)
        if not sockets:
            del self._sockets[user_id]

    def is_connected(self, user_id: int) -> bool:
        return bool(self._sockets.get(user_id))

    async def notify_user(self, user_id: int, message: dict[str, Any]) -> int:
        """Send to every socket the user has open here; returns how many got it. Broken sockets are dropped."""
        sockets = list(self._sockets.get(user_id, ()))
        if not sockets:
            return 0
        text = json.dumps(message)
        delivered = 0
        for ws in sockets:
            try:
                await ws.send_text(text)
            except Exception:
                logger.debug("Dropping dead socket for user %s", user_id, exc_info=True)
                self.disconnect(user_id, ws)
            else:
                delivered += 1
        return delivered

    # Lets the manager stand in as the publisher when there is no Redis.
    async def publish(self, user_id: int, message: dict[str, Any]) -> None:
        await self.notify_user(user_id, message)


updates_manager = UpdatesConnectionManager()
