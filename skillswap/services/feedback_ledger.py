"""Feedback ledger: exactly-once feedback per (swap, rater), each mutation recomputing the rated user's aggregate."""
import logging

from skillswap.errors import ConflictError, NotFoundError, ValidationError
from skillswap.models.feedback import Feedback
from skillswap.models.notification import NotificationType
from skillswap.models.swap import SwapStatus
from skillswap.repository.base import Repository, Transaction
from skillswap.schemas.feedback import FeedbackCreate, FeedbackUpdate
from skillswap.services.guard import AuthorizationGuard, Caller
from skillswap.services.notifications import Event, NotificationSink, emit_safely
from skillswap.services.pagination import PageRequest, PageResult
from skillswap.services.rating_aggregator import RatingAggregator, average_rating

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def _check_rating(rating: int) -> None:
    # bool is an int subclass; True/False are not ratings
    if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(
            f"Rating must be between {MIN_RATING} and {MAX_RATING}",
            details={"rating": rating},
        )


class FeedbackLedger:
    def __init__(
        self,
        repository: Repository,
        notifier: NotificationSink,
        aggregator: RatingAggregator | None = None,
        guard: AuthorizationGuard | None = None,
        max_page_size: int = 100,
    ) -> None:
        self._repository = repository
        self._notifier = notifier
        self._aggregator = aggregator or RatingAggregator()
        self._guard = guard or AuthorizationGuard()
        self._max_page_size = max_page_size

    async def create(self, caller: Caller, body: FeedbackCreate) -> Feedback:
        """Rate the other participant of a completed swap."""
        _check_rating(body.rating)
        async with self._repository.transaction() as tx:
            swap = await tx.swaps.get_by_id(body.swap_id)
            if swap is None:
                raise NotFoundError("Swap not found", details={"swap_id": body.swap_id})
            if swap.status != SwapStatus.COMPLETED:
                raise ConflictError(
                    "Can only leave feedback for completed swaps",
                    details={"swap_id": swap.id, "status": swap.status.value},
                )
            self._guard.require_participant(caller, swap, "You can only leave feedback for your own swaps")
            existing = await tx.feedback.get_by_swap_and_rater(swap.id, caller.id)
            if existing is not None:
                raise ConflictError("Feedback already exists for this swap", details={"feedback_id": existing.id})
            rated_user_id = swap.other_participant(caller.id)
            # Take the aggregate lock before writing so recomputations for this user queue up.
            await tx.users.lock_for_update(rated_user_id)
            feedback = await tx.feedback.insert(
                Feedback(
                    swap_id=swap.id,
                    rater_id=caller.id,
                    rated_user_id=rated_user_id,
                    rating=body.rating,
                    comment=body.comment,
                    is_public=body.is_public,
                )
            )
            await self._aggregator.recompute(tx, rated_user_id)
        logger.info("Feedback %s by user %s on swap %s", feedback.id, caller.id, swap.id)
        emit_safely(
            self._notifier,
            Event(
                kind=NotificationType.FEEDBACK_RECEIVED,
                target_user_id=rated_user_id,
                message=f"{caller.name or 'Someone'} left you feedback with {body.rating} stars",
                related_entity_id=feedback.id,
            )
        )
        return feedback

    async def update(self, caller: Caller, feedback_id: int, body: FeedbackUpdate) -> Feedback:
        """Rater edits their own feedback. Only fields present in the request change."""
        changes = body.model_dump(exclude_unset=True)
        if "rating" in changes:
            _check_rating(changes["rating"])
        if "is_public" in changes and changes["is_public"] is None:
            raise ValidationError("is_public cannot be null")
        async with self._repository.transaction() as tx:
            feedback = await self._load(tx, feedback_id)
            self._guard.require_rater(caller, feedback)
            rating_changed = "rating" in changes and changes["rating"] != feedback.rating
            if rating_changed:
                await tx.users.lock_for_update(feedback.rated_user_id)
            feedback = await tx.feedback.update(feedback, changes)
            if rating_changed:
                await self._aggregator.recompute(tx, feedback.rated_user_id)
        logger.info("Feedback %s updated by user %s (rating changed: %s)", feedback.id, caller.id, rating_changed)
        return feedback

    async def delete(self, caller: Caller, feedback_id: int) -> None:
        """Rater or admin removes feedback; the rated user's aggregate drops it immediately."""
        async with self._repository.transaction() as tx:
            feedback = await self._load(tx, feedback_id)
            self._guard.require_rater_or_admin(caller, feedback)
            rated_user_id = feedback.rated_user_id
            await tx.users.lock_for_update(rated_user_id)
            await tx.feedback.delete(feedback)
            await self._aggregator.recompute(tx, rated_user_id)
        logger.info("Feedback %s deleted by user %s", feedback_id, caller.id)

    async def list_for_user(
        self,
        user_id: int,
        page: PageRequest | None = None,
        public_only: bool = True,
    ) -> PageResult[Feedback]:
        """
        Feedback received by user_id, newest first. ``extra`` carries the
        per-value histogram (same visibility filter) and the stored aggregate.
        """
        page = (page or PageRequest()).validated(self._max_page_size)
        async with self._repository.transaction() as tx:
            user = await tx.users.get_by_id(user_id)
            if user is None:
                raise NotFoundError("User not found", details={"user_id": user_id})
            items, total = await tx.feedback.list_by_rated_user(user_id, public_only, page.offset, page.limit)
            histogram = await tx.feedback.histogram(user_id=user_id, public_only=public_only)
        return PageResult(
            items=items,
            total=total,
            page=page.page,
            limit=page.limit,
            extra={
                "rating_distribution": histogram,
                "user_rating": {"average": float(user.rating), "total": user.total_ratings},
            },
        )

    async def list_given_by(
        self, caller: Caller, user_id: int, page: PageRequest | None = None
    ) -> PageResult[Feedback]:
        self._guard.require_self_or_admin(caller, user_id)
        page = (page or PageRequest()).validated(self._max_page_size)
        async with self._repository.transaction() as tx:
            items, total = await tx.feedback.list_by_rater(user_id, page.offset, page.limit)
        return PageResult(items=items, total=total, page=page.page, limit=page.limit)

    async def stats(self, caller: Caller) -> dict:
        """Platform-wide totals for admins."""
        self._guard.require_admin(caller)
        async with self._repository.transaction() as tx:
            count, total = await tx.feedback.count_and_sum_all()
            histogram = await tx.feedback.histogram()
        return {
            "total": count,
            "average_rating": float(average_rating(count, total)),
            "rating_distribution": histogram,
        }

    async def _load(self, tx: Transaction, feedback_id: int) -> Feedback:
        feedback = await tx.feedback.get_by_id(feedback_id)
        if feedback is None:
            raise NotFoundError("Feedback not found", details={"feedback_id": feedback_id})
        return feedback
