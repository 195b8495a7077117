"""Fan notifications out across workers: publish to a Redis channel, relay to local WebSockets."""
import asyncio
import json
import logging
from typing import Any

import redis.asyncio as aioredis

from skillswap.services.ws_updates import UpdatesConnectionManager

logger = logging.getLogger(__name__)

RECONNECT_DELAY_SECONDS = 5


class RedisUpdatesPublisher:
    """UpdatesPublisher that goes through Redis so every worker sees the message."""

    def __init__(self, redis: aioredis.Redis, channel: str) -> None:
        self._redis = redis
        self._channel = channel

    async def publish(self, user_id: int, message: dict[str, Any]) -> None:
        await self._redis.publish(self._channel, json.dumps({"user_id": user_id, "message": message}))


async def dispatch(raw: bytes | str, manager: UpdatesConnectionManager) -> bool:
    """Deliver one channel message to the local connections. False for malformed payloads."""
    try:
        envelope = json.loads(raw)
        user_id = int(envelope["user_id"])
        message = envelope["message"]
    except (KeyError, TypeError, ValueError):
        logger.warning("Dropping malformed relay message: %r", raw)
        return False
    await manager.notify_user(user_id, message)
    return True


async def run_relay_loop(redis: aioredis.Redis, channel: str, manager: UpdatesConnectionManager) -> None:
    while True:
        pubsub = redis.pubsub()
        try:
            await pubsub.subscribe(channel)
            async for item in pubsub.listen():
                if item.get("type") == "message":
                    await dispatch(item["data"], manager)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Notification relay failed, reconnecting in %ss", RECONNECT_DELAY_SECONDS)
        finally:
            await pubsub.aclose()
        await asyncio.sleep(RECONNECT_DELAY_SECONDS)
