"""Recompute a user's rating aggregate from the feedback attributed to them."""
import logging
from decimal import ROUND_HALF_UP, Decimal

from skillswap.errors import NotFoundError
from skillswap.repository.base import Transaction

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")


def average_rating(count: int, total: int) -> Decimal:
    """Mean of `count` ratings summing to `total`, rounded half-up to 2 places; 0.00 when empty."""
    if count <= 0:
        return Decimal("0.00")
    return (Decimal(total) / Decimal(count)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


class RatingAggregator:
    """
    Writes users.rating / users.total_ratings. Must be called inside the same
    transaction as the feedback mutation that invalidated the aggregate.

    The user row is locked first so concurrent recomputations for the same user
    serialise: the second one reads the feedback set only after the first has
    committed, never a stale snapshot.
    """

    async def recompute(self, tx: Transaction, user_id: int) -> tuple[Decimal, int]:
        user = await tx.users.lock_for_update(user_id)
        if user is None:
            raise NotFoundError("User not found", details={"user_id": user_id})
        count, total = await tx.feedback.count_and_sum_by_rated_user(user_id)
        rating = average_rating(count, total)
        await tx.users.update_rating_aggregate(user_id, rating, count)
        logger.info("Recomputed rating for user %s: %s over %s ratings", user_id, rating, count)
        return rating, count
