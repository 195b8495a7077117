"""Tests for rating arithmetic and recomputation."""

from decimal import Decimal

import pytest

from skillswap.errors import NotFoundError
from skillswap.models import Feedback
from skillswap.services.rating_aggregator import RatingAggregator, average_rating


class TestAverageRating:
    def test_empty_is_zero(self):
        assert average_rating(0, 0) == Decimal("0.00")

    @pytest.mark.parametrize(
        "count,total,expected",
        [
            (1, 5, "5.00"),
            (3, 13, "4.33"),
            (3, 14, "4.67"),
            (8, 21, "2.63"),
            (2, 7, "3.50"),
        ],
    )
    def test_rounds_half_up_to_two_places(self, count, total, expected):
        assert average_rating(count, total) == Decimal(expected)

    def test_exact_half_rounds_up(self):
        # 1.125 sits exactly on the midpoint
        assert average_rating(8, 9) == Decimal("1.13")


class TestRecompute:
    @pytest.mark.asyncio
    async def test_recompute_reads_current_feedback_set(self, repository, make_user, completed_swap):
        a = await make_user()
        b = await make_user()
        swap = await completed_swap(a, b)
        async with repository.transaction() as tx:
            await tx.feedback.insert(Feedback(swap_id=swap.id, rater_id=a.id, rated_user_id=b.id, rating=2))
            await tx.feedback.insert(Feedback(swap_id=swap.id, rater_id=b.id, rated_user_id=a.id, rating=5))
            result = await RatingAggregator().recompute(tx, b.id)

        assert result == (Decimal("2.00"), 1)
        async with repository.transaction() as tx:
            user = await tx.users.get_by_id(b.id)
        assert user.rating == Decimal("2.00")
        assert user.total_ratings == 1

    @pytest.mark.asyncio
    async def test_recompute_unknown_user(self, repository):
        with pytest.raises(NotFoundError):
            async with repository.transaction() as tx:
                await RatingAggregator().recompute(tx, 404)
