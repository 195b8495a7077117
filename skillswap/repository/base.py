"""Storage interface consumed by the core services.

The services only ever talk to these protocols. A ``Repository`` hands out
``Transaction`` objects; each transaction groups the per-entity stores that
share one underlying database transaction. Leaving the ``async with`` block
commits, an exception rolls everything back.
"""
from contextlib import AbstractAsyncContextManager
from decimal import Decimal
from typing import Any, Protocol, Sequence

from skillswap.models.feedback import Feedback
from skillswap.models.notification import Notification
from skillswap.models.swap import Swap, SwapStatus
from skillswap.models.user import User


class SwapStore(Protocol):
    async def get_by_id(self, swap_id: int) -> Swap | None: ...

    async def find_pending_duplicate(
        self,
        requester_id: int,
        recipient_id: int,
        requester_skill: str,
        recipient_skill: str,
    ) -> Swap | None: ...

    async def insert(self, swap: Swap) -> Swap:
        """Persist a new swap. Raises ConflictError if the pending-tuple index rejects it."""
        ...

    async def update_status(
        self,
        swap_id: int,
        expected: SwapStatus,
        new: SwapStatus,
        notes: str | None = None,
    ) -> Swap:
        """Conditional write: only applies if the row still has ``expected`` status, else ConflictError."""
        ...

    async def list_for_user(
        self,
        user_id: int,
        kind: str,
        status: SwapStatus | None,
        offset: int,
        limit: int,
    ) -> tuple[Sequence[Swap], int]: ...

    async def list_all(self, status: SwapStatus | None, offset: int, limit: int) -> tuple[Sequence[Swap], int]: ...


class FeedbackStore(Protocol):
    async def get_by_id(self, feedback_id: int) -> Feedback | None: ...

    async def get_by_swap_and_rater(self, swap_id: int, rater_id: int) -> Feedback | None: ...

    async def insert(self, feedback: Feedback) -> Feedback:
        """Persist new feedback. Raises ConflictError on a duplicate (swap_id, rater_id)."""
        ...

    async def update(self, feedback: Feedback, changes: dict[str, Any]) -> Feedback: ...

    async def delete(self, feedback: Feedback) -> None: ...

    async def list_by_rated_user(
        self, user_id: int, public_only: bool, offset: int, limit: int
    ) -> tuple[Sequence[Feedback], int]: ...

    async def list_by_rater(self, user_id: int, offset: int, limit: int) -> tuple[Sequence[Feedback], int]: ...

    async def count_and_sum_by_rated_user(self, user_id: int) -> tuple[int, int]: ...

    async def histogram(self, user_id: int | None = None, public_only: bool = False) -> dict[int, int]: ...

    async def count_and_sum_all(self) -> tuple[int, int]: ...


class UserStore(Protocol):
    async def get_by_id(self, user_id: int) -> User | None: ...

    async def lock_for_update(self, user_id: int) -> User | None:
        """Load the user row holding a write lock until the transaction ends."""
        ...

    async def update_rating_aggregate(self, user_id: int, rating: Decimal, total_ratings: int) -> None: ...

    async def get_by_email(self, email: str) -> User | None: ...

    async def insert(self, user: User) -> User:
        """Persist a new account. Raises ConflictError when the email is taken."""
        ...

    async def update_profile(self, user: User, changes: dict[str, Any]) -> User: ...

    async def set_banned(self, user_id: int, banned: bool) -> User | None: ...

    async def counts(self) -> dict[str, int]: ...

    async def recent(self, limit: int) -> Sequence[User]: ...


class NotificationStore(Protocol):
    async def insert(self, notification: Notification) -> Notification: ...

    async def list_for_user(
        self, user_id: int, unread_only: bool, offset: int, limit: int
    ) -> tuple[Sequence[Notification], int]: ...

    async def mark_read(self, notification_id: int, user_id: int) -> Notification | None: ...

    async def mark_all_read(self, user_id: int) -> int: ...

    async def count_unread(self, user_id: int) -> int: ...

    async def delete(self, notification_id: int, user_id: int) -> bool: ...


class Transaction(Protocol):
    swaps: SwapStore
    feedback: FeedbackStore
    users: UserStore
    notifications: NotificationStore

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


class Repository(Protocol):
    def transaction(self) -> AbstractAsyncContextManager[Transaction]: ...
