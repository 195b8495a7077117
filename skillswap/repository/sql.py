"""SQLAlchemy (async) implementation of the repository interface."""
import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, AsyncIterator, Sequence

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from skillswap.errors import ConflictError, InternalError, SkillSwapError
from skillswap.models.feedback import Feedback
from skillswap.models.notification import Notification
from skillswap.models.swap import Swap, SwapStatus
from skillswap.models.user import User

logger = logging.getLogger(__name__)


async def _page(db: AsyncSession, q, offset: int, limit: int) -> tuple[Sequence[Any], int]:
    """Run q for one page plus a COUNT(*) over the same filter."""
    total = (await db.execute(select(func.count()).select_from(q.order_by(None).subquery()))).scalar_one()
    rows = (await db.execute(q.offset(offset).limit(limit))).scalars().all()
    return rows, total


class SqlSwapStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_by_id(self, swap_id: int) -> Swap | None:
        result = await self.db.execute(select(Swap).where(Swap.id == swap_id))
        return result.scalar_one_or_none()

    async def find_pending_duplicate(
        self,
        requester_id: int,
        recipient_id: int,
        requester_skill: str,
        recipient_skill: str,
    ) -> Swap | None:
        result = await self.db.execute(
            select(Swap)
            .where(Swap.requester_id == requester_id)
            .where(Swap.recipient_id == recipient_id)
            .where(Swap.requester_skill == requester_skill)
            .where(Swap.recipient_skill == recipient_skill)
            .where(Swap.status == SwapStatus.PENDING)
        )
        return result.scalars().first()

    async def insert(self, swap: Swap) -> Swap:
        self.db.add(swap)
        try:
            await self.db.flush()
        except IntegrityError as exc:
            # The partial unique index lost a race against another request.
            raise ConflictError("A pending swap request already exists for these skills") from exc
        await self.db.refresh(swap)
        return swap

    async def update_status(
        self,
        swap_id: int,
        expected: SwapStatus,
        new: SwapStatus,
        notes: str | None = None,
    ) -> Swap:
        values: dict[str, Any] = {"status": new}
        if notes is not None:
            values["notes"] = notes
        result = await self.db.execute(
            update(Swap)
            .where(Swap.id == swap_id)
            .where(Swap.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(
                f"Swap is no longer {expected.value}",
                details={"swap_id": swap_id, "expected_status": expected.value},
            )
        refreshed = await self.db.execute(
            select(Swap).where(Swap.id == swap_id).execution_options(populate_existing=True)
        )
        return refreshed.scalar_one()

    async def list_for_user(
        self,
        user_id: int,
        kind: str,
        status: SwapStatus | None,
        offset: int,
        limit: int,
    ) -> tuple[Sequence[Swap], int]:
        q = select(Swap)
        if kind == "sent":
            q = q.where(Swap.requester_id == user_id)
        elif kind == "received":
            q = q.where(Swap.recipient_id == user_id)
        else:
            q = q.where(or_(Swap.requester_id == user_id, Swap.recipient_id == user_id))
        if status is not None:
            q = q.where(Swap.status == status)
        q = q.order_by(Swap.created_at.desc(), Swap.id.desc())
        return await _page(self.db, q, offset, limit)

    async def list_all(self, status: SwapStatus | None, offset: int, limit: int) -> tuple[Sequence[Swap], int]:
        q = select(Swap)
        if status is not None:
            q = q.where(Swap.status == status)
        q = q.order_by(Swap.created_at.desc(), Swap.id.desc())
        return await _page(self.db, q, offset, limit)


class SqlFeedbackStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_by_id(self, feedback_id: int) -> Feedback | None:
        result = await self.db.execute(select(Feedback).where(Feedback.id == feedback_id))
        return result.scalar_one_or_none()

    async def get_by_swap_and_rater(self, swap_id: int, rater_id: int) -> Feedback | None:
        result = await self.db.execute(
            select(Feedback).where(Feedback.swap_id == swap_id).where(Feedback.rater_id == rater_id)
        )
        return result.scalar_one_or_none()

    async def insert(self, feedback: Feedback) -> Feedback:
        self.db.add(feedback)
        try:
            await self.db.flush()
        except IntegrityError as exc:
            raise ConflictError("Feedback already exists for this swap") from exc
        await self.db.refresh(feedback)
        return feedback

    async def update(self, feedback: Feedback, changes: dict[str, Any]) -> Feedback:
        for field, value in changes.items():
            setattr(feedback, field, value)
        await self.db.flush()
        await self.db.refresh(feedback)
        return feedback

    async def delete(self, feedback: Feedback) -> None:
        await self.db.delete(feedback)
        await self.db.flush()

    async def list_by_rated_user(
        self, user_id: int, public_only: bool, offset: int, limit: int
    ) -> tuple[Sequence[Feedback], int]:
        q = select(Feedback).where(Feedback.rated_user_id == user_id)
        if public_only:
            q = q.where(Feedback.is_public.is_(True))
        q = q.order_by(Feedback.created_at.desc(), Feedback.id.desc())
        return await _page(self.db, q, offset, limit)

    async def list_by_rater(self, user_id: int, offset: int, limit: int) -> tuple[Sequence[Feedback], int]:
        q = (
            select(Feedback)
            .where(Feedback.rater_id == user_id)
            .order_by(Feedback.created_at.desc(), Feedback.id.desc())
        )
        return await _page(self.db, q, offset, limit)

    async def count_and_sum_by_rated_user(self, user_id: int) -> tuple[int, int]:
        result = await self.db.execute(
            select(func.count(Feedback.id), func.coalesce(func.sum(Feedback.rating), 0)).where(
                Feedback.rated_user_id == user_id
            )
        )
        count, total = result.one()
        return int(count), int(total)

    async def histogram(self, user_id: int | None = None, public_only: bool = False) -> dict[int, int]:
        q = select(Feedback.rating, func.count(Feedback.id)).group_by(Feedback.rating)
        if user_id is not None:
            q = q.where(Feedback.rated_user_id == user_id)
        if public_only:
            q = q.where(Feedback.is_public.is_(True))
        counts = {value: 0 for value in range(1, 6)}
        for rating, count in (await self.db.execute(q)).all():
            counts[int(rating)] = int(count)
        return counts

    async def count_and_sum_all(self) -> tuple[int, int]:
        result = await self.db.execute(select(func.count(Feedback.id), func.coalesce(func.sum(Feedback.rating), 0)))
        count, total = result.one()
        return int(count), int(total)


class SqlUserStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_by_id(self, user_id: int) -> User | None:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def lock_for_update(self, user_id: int) -> User | None:
        # FOR NO KEY UPDATE: does not conflict with the KEY SHARE locks taken by feedback FK checks.
        # Dropped by SQLite, whose single writer lock serialises instead.
        result = await self.db.execute(
            select(User)
            .where(User.id == user_id)
            .with_for_update(key_share=True)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def update_rating_aggregate(self, user_id: int, rating: Decimal, total_ratings: int) -> None:
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(rating=rating, total_ratings=total_ratings)
            .execution_options(synchronize_session=False)
        )

    async def get_by_email(self, email: str) -> User | None:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def insert(self, user: User) -> User:
        self.db.add(user)
        try:
            await self.db.flush()
        except IntegrityError as exc:
            raise ConflictError("Email already registered") from exc
        await self.db.refresh(user)
        return user

    async def update_profile(self, user: User, changes: dict[str, Any]) -> User:
        for field, value in changes.items():
            setattr(user, field, value)
        await self.db.flush()
        await self.db.refresh(user)
        return user

    async def set_banned(self, user_id: int, banned: bool) -> User | None:
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(is_banned=banned)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(
            select(User).where(User.id == user_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def counts(self) -> dict[str, int]:
        banned = User.is_banned.is_(True)
        active = User.is_banned.is_(False)
        result = await self.db.execute(
            select(
                func.count(User.id),
                func.count(User.id).filter(active),
                func.count(User.id).filter(banned),
                func.count(User.id).filter(active, User.is_public.is_(True)),
            )
        )
        total, active_count, banned_count, public_count = result.one()
        return {
            "total": int(total),
            "active": int(active_count),
            "banned": int(banned_count),
            "public": int(public_count),
        }

    async def recent(self, limit: int) -> Sequence[User]:
        result = await self.db.execute(
            select(User)
            .where(User.is_banned.is_(False))
            .order_by(User.created_at.desc(), User.id.desc())
            .limit(limit)
        )
        return result.scalars().all()


class SqlNotificationStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def insert(self, notification: Notification) -> Notification:
        self.db.add(notification)
        await self.db.flush()
        await self.db.refresh(notification)
        return notification

    async def list_for_user(
        self, user_id: int, unread_only: bool, offset: int, limit: int
    ) -> tuple[Sequence[Notification], int]:
        q = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            q = q.where(Notification.is_read.is_(False))
        q = q.order_by(Notification.created_at.desc(), Notification.id.desc())
        return await _page(self.db, q, offset, limit)

    async def mark_read(self, notification_id: int, user_id: int) -> Notification | None:
        result = await self.db.execute(
            select(Notification).where(Notification.id == notification_id).where(Notification.user_id == user_id)
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            return None
        notification.is_read = True
        await self.db.flush()
        return notification

    async def mark_all_read(self, user_id: int) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id)
            .where(Notification.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def count_unread(self, user_id: int) -> int:
        result = await self.db.execute(
            select(func.count(Notification.id))
            .where(Notification.user_id == user_id)
            .where(Notification.is_read.is_(False))
        )
        return int(result.scalar_one())

    async def delete(self, notification_id: int, user_id: int) -> bool:
        result = await self.db.execute(
            delete(Notification)
            .where(Notification.id == notification_id)
            .where(Notification.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class SqlTransaction:
    """One AsyncSession, one database transaction, four stores sharing it."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.swaps = SqlSwapStore(db)
        self.feedback = SqlFeedbackStore(db)
        self.users = SqlUserStore(db)
        self.notifications = SqlNotificationStore(db)

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()


class SqlRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SqlTransaction]:
        """Commit when the block exits cleanly; roll back on any exception (cancellation included)."""
        async with self._session_factory() as db:
            tx = SqlTransaction(db)
            try:
                yield tx
                await db.commit()
            except SkillSwapError:
                await db.rollback()
                raise
            except SQLAlchemyError as exc:
                await db.rollback()
                logger.exception("Storage failure, transaction rolled back")
                raise InternalError() from exc
            except BaseException:
                await db.rollback()
                raise
