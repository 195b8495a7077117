"""Notification sink: fire-and-forget delivery of lifecycle and feedback events.

The core calls ``emit`` after its transaction has committed. Delivery (persist a
Notification row in its own transaction, then push a real-time update) runs as
a background task; any failure is logged and swallowed so it can never undo or
delay the state change that produced the event.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from skillswap.models.notification import Notification, NotificationType
from skillswap.repository.base import Repository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    kind: NotificationType
    target_user_id: int
    message: str
    related_entity_id: int | None = None


class NotificationSink(Protocol):
    def emit(self, event: Event) -> None: ...


class UpdatesPublisher(Protocol):
    async def publish(self, user_id: int, message: dict[str, Any]) -> None: ...


def notification_payload(notification: Notification) -> dict[str, Any]:
    return {
        "type": "notification",
        "notification": {
            "id": notification.id,
            "type": notification.type.value,
            "message": notification.message,
            "related_id": notification.related_id,
            "is_read": notification.is_read,
            "created_at": notification.created_at.isoformat() if notification.created_at else None,
        },
    }


class DatabaseNotificationSink:
    """Persists each event as a Notification, then hands it to the real-time publisher."""

    def __init__(self, repository: Repository, publisher: UpdatesPublisher | None = None) -> None:
        self._repository = repository
        self._publisher = publisher
        self._pending: set[asyncio.Task] = set()

    def emit(self, event: Event) -> None:
        try:
            task = asyncio.get_running_loop().create_task(self._deliver(event))
        except RuntimeError:
            logger.warning(
                "No running event loop; dropping %s notification for user %s", event.kind.value, event.target_user_id
            )
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, event: Event) -> None:
        try:
            async with self._repository.transaction() as tx:
                notification = await tx.notifications.insert(
                    Notification(
                        user_id=event.target_user_id,
                        type=event.kind,
                        message=event.message,
                        related_id=event.related_entity_id,
                    )
                )
            if self._publisher is not None:
                await self._publisher.publish(event.target_user_id, notification_payload(notification))
        except Exception:
            logger.warning(
                "Failed to deliver %s notification to user %s", event.kind.value, event.target_user_id, exc_info=True
            )

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown, tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def emit_safely(sink: NotificationSink, event: Event) -> None:
    """Hand an event to any sink; a misbehaving sink is logged, never propagated."""
    try:
        sink.emit(event)
    except Exception:
        logger.warning(
            "Notification sink failed for %s on %s", event.kind.value, event.related_entity_id, exc_info=True
        )
