"""Tests for the feedback ledger and the rating aggregate it keeps in step."""

import asyncio
from decimal import Decimal

import pytest

from skillswap.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from skillswap.models.swap import SwapStatus
from skillswap.schemas.feedback import FeedbackCreate, FeedbackUpdate
from skillswap.schemas.swap import SwapCreate, SwapRespond
from skillswap.services.pagination import PageRequest


async def _rating_of(repository, user_id):
    async with repository.transaction() as tx:
        user = await tx.users.get_by_id(user_id)
    return user.rating, user.total_ratings


class TestCreateFeedback:
    @pytest.mark.asyncio
    async def test_full_swap_scenario(self, lifecycle, ledger, repository, make_user, as_caller, sink):
        a = await make_user("A")
        b = await make_user("B")
        swap = await lifecycle.create(
            as_caller(a), SwapCreate(recipient_id=b.id, requester_skill="Go", recipient_skill="Spanish")
        )
        assert swap.status == SwapStatus.PENDING
        swap = await lifecycle.respond(as_caller(b), swap.id, SwapRespond(status=SwapStatus.ACCEPTED))
        assert swap.status == SwapStatus.ACCEPTED
        swap = await lifecycle.complete(as_caller(a), swap.id)
        assert swap.status == SwapStatus.COMPLETED

        from_a = await ledger.create(as_caller(a), FeedbackCreate(swap_id=swap.id, rating=5))
        assert from_a.rated_user_id == b.id
        assert await _rating_of(repository, b.id) == (Decimal("5.00"), 1)

        from_b = await ledger.create(as_caller(b), FeedbackCreate(swap_id=swap.id, rating=3))
        assert from_b.rated_user_id == a.id
        assert await _rating_of(repository, a.id) == (Decimal("3.00"), 1)

        assert sink.kinds()[-2:] == ["feedback_received", "feedback_received"]
        assert sink.events[-1].target_user_id == a.id
        assert sink.events[-1].related_entity_id == from_b.id

    @pytest.mark.asyncio
    async def test_average_is_rounded_mean(self, ledger, repository, make_user, as_caller, completed_swap):
        target = await make_user()
        for rating, skill in ((5, "a"), (4, "b"), (4, "c")):
            rater = await make_user()
            swap = await completed_swap(rater, target, skill)
            await ledger.create(as_caller(rater), FeedbackCreate(swap_id=swap.id, rating=rating))

        assert await _rating_of(repository, target.id) == (Decimal("4.33"), 3)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rating", [0, 6, -1])
    async def test_rating_out_of_range(self, ledger, make_user, as_caller, completed_swap, rating):
        a = await make_user()
        b = await make_user()
        swap = await completed_swap(a, b)
        with pytest.raises(ValidationError):
            await ledger.create(as_caller(a), FeedbackCreate(swap_id=swap.id, rating=rating))

    @pytest.mark.asyncio
    async def test_missing_swap(self, ledger, make_user, as_caller):
        a = await make_user()
        with pytest.raises(NotFoundError):
            await ledger.create(as_caller(a), FeedbackCreate(swap_id=4242, rating=4))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("final", [None, SwapStatus.ACCEPTED, SwapStatus.REJECTED])
    async def test_only_completed_swaps_take_feedback(self, lifecycle, ledger, make_user, as_caller, final):
        a = await make_user()
        b = await make_user()
        swap = await lifecycle.create(
            as_caller(a), SwapCreate(recipient_id=b.id, requester_skill="x", recipient_skill="y")
        )
        if final is not None:
            await lifecycle.respond(as_caller(b), swap.id, SwapRespond(status=final))
        with pytest.raises(ConflictError):
            await ledger.create(as_caller(a), FeedbackCreate(swap_id=swap.id, rating=4))

    @pytest.mark.asyncio
    async def test_outsider_cannot_leave_feedback(self, ledger, make_user, as_caller, completed_swap):
        a = await make_user()
        b = await make_user()
        outsider = await make_user()
        swap = await completed_swap(a, b)
        with pytest.raises(AuthorizationError):
            await ledger.create(as_caller(outsider), FeedbackCreate(swap_id=swap.id, rating=1))

    @pytest.mark.asyncio
    async def test_feedback_is_once_per_rater(self, ledger, repository, make_user, as_caller, completed_swap):
        a = await make_user()
        b = await make_user()
        swap = await completed_swap(a, b)
        await ledger.create(as_caller(a), FeedbackCreate(swap_id=swap.id, rating=4))

        with pytest.raises(ConflictError):
            await ledger.create(as_caller(a), FeedbackCreate(swap_id=swap.id, rating=2))
        assert await _rating_of(repository, b.id) == (Decimal("4.00"), 1)

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_feedback(self, ledger, repository, make_user, as_caller, completed_swap):
        a = await make_user()
        b = await make_user()
        swap = await completed_swap(a, b)

        results = await asyncio.gather(
            ledger.create(as_caller(a), FeedbackCreate(swap_id=swap.id, rating=5)),
            ledger.create(as_caller(a), FeedbackCreate(swap_id=swap.id, rating=1)),
            return_exceptions=True,
        )

        created = [r for r in results if not isinstance(r, Exception)]
        assert len(created) == 1
        assert isinstance([r for r in results if isinstance(r, Exception)][0], ConflictError)
        rating, count = await _rating_of(repository, b.id)
        assert count == 1
        assert rating == Decimal(created[0].rating).quantize(Decimal("0.01"))

    @pytest.mark.asyncio
    async def test_concurrent_feedback_for_same_user_keeps_exact_mean(
        self, ledger, repository, make_user, as_caller, completed_swap
    ):
        target = await make_user()
        raters = [await make_user() for _ in range(4)]
        swaps = [await completed_swap(r, target, f"skill{i}") for i, r in enumerate(raters)]

        await asyncio.gather(
            *[
                ledger.create(as_caller(r), FeedbackCreate(swap_id=s.id, rating=rating))
                for r, s, rating in zip(raters, swaps, (5, 4, 2, 2))
            ]
        )

        assert await _rating_of(repository, target.id) == (Decimal("3.25"), 4)


class TestUpdateFeedback:
    @pytest.mark.asyncio
    async def test_rating_change_recomputes(self, ledger, repository, make_user, as_caller, completed_swap):
        a = await make_user()
        b = await make_user()
        swap = await completed_swap(a, b)
        feedback = await ledger.create(as_caller(a), FeedbackCreate(swap_id=swap.id, rating=2))

        updated = await ledger.update(as_caller(a), feedback.id, FeedbackUpdate(rating=4, comment="Better"))

        assert updated.rating == 4
        assert updated.comment == "Better"
        assert await _rating_of(repository, b.id) == (Decimal("4.00"), 1)

    @pytest.mark.asyncio
    async def test_partial_update_keeps_other_fields(self, ledger, make_user, as_caller, completed_swap):
        a = await make_user()
        b = await make_user()
        swap = await completed_swap(a, b)
        feedback = await ledger.create(
            as_caller(a), FeedbackCreate(swap_id=swap.id, rating=3, comment="ok", is_public=True)
        )

        updated = await ledger.update(as_caller(a), feedback.id, FeedbackUpdate(is_public=False))

        assert updated.is_public is False
        assert updated.rating == 3
        assert updated.comment == "ok"

    @pytest.mark.asyncio
    async def test_only_rater_updates(self, ledger, make_user, as_caller, completed_swap):
        a = await make_user()
        b = await make_user()
        admin = await make_user(is_admin=True)
        swap = await completed_swap(a, b)
        feedback = await ledger.create(as_caller(a), FeedbackCreate(swap_id=swap.id, rating=3))

        with pytest.raises(AuthorizationError):
            await ledger.update(as_caller(b), feedback.id, FeedbackUpdate(rating=1))
        with pytest.raises(AuthorizationError):
            await ledger.update(as_caller(admin), feedback.id, FeedbackUpdate(rating=1))
        with pytest.raises(NotFoundError):
            await ledger.update(as_caller(a), 999, FeedbackUpdate(rating=1))

    @pytest.mark.asyncio
    async def test_update_validates_rating_and_null_visibility(self, ledger, make_user, as_caller, completed_swap):
        a = await make_user()
        b = await make_user()
        swap = await completed_swap(a, b)
        feedback = await ledger.create(as_caller(a), FeedbackCreate(swap_id=swap.id, rating=3))

        with pytest.raises(ValidationError):
            await ledger.update(as_caller(a), feedback.id, FeedbackUpdate(rating=9))
        with pytest.raises(ValidationError):
            await ledger.update(as_caller(a), feedback.id, FeedbackUpdate(is_public=None))

    def test_unknown_fields_rejected(self):
        with pytest.raises(Exception):
            FeedbackUpdate(rating=3, rated_user_id=7)


class TestDeleteFeedback:
    @pytest.mark.asyncio
    async def test_deleting_only_feedback_resets_aggregate(
        self, ledger, repository, make_user, as_caller, completed_swap
    ):
        a = await make_user()
        b = await make_user()
        swap = await completed_swap(a, b)
        feedback = await ledger.create(as_caller(a), FeedbackCreate(swap_id=swap.id, rating=5))

        await ledger.delete(as_caller(a), feedback.id)

        assert await _rating_of(repository, b.id) == (Decimal("0.00"), 0)
        with pytest.raises(NotFoundError):
            await ledger.delete(as_caller(a), feedback.id)

    @pytest.mark.asyncio
    async def test_admin_may_delete_rated_user_may_not(
        self, ledger, repository, make_user, as_caller, completed_swap
    ):
        target = await make_user()
        admin = await make_user(is_admin=True)
        kept_rater = await make_user()
        removed_rater = await make_user()
        kept = await completed_swap(kept_rater, target, "kept")
        removed = await completed_swap(removed_rater, target, "removed")
        await ledger.create(as_caller(kept_rater), FeedbackCreate(swap_id=kept.id, rating=4))
        feedback = await ledger.create(as_caller(removed_rater), FeedbackCreate(swap_id=removed.id, rating=1))
        assert await _rating_of(repository, target.id) == (Decimal("2.50"), 2)

        with pytest.raises(AuthorizationError):
            await ledger.delete(as_caller(target), feedback.id)
        await ledger.delete(as_caller(admin), feedback.id)

        assert await _rating_of(repository, target.id) == (Decimal("4.00"), 1)


class TestListing:
    @pytest.mark.asyncio
    async def test_list_for_user_hides_private_and_reports_histogram(
        self, ledger, make_user, as_caller, completed_swap
    ):
        target = await make_user()
        public_rater = await make_user()
        private_rater = await make_user()
        s1 = await completed_swap(public_rater, target, "one")
        s2 = await completed_swap(private_rater, target, "two")
        await ledger.create(as_caller(public_rater), FeedbackCreate(swap_id=s1.id, rating=5))
        await ledger.create(as_caller(private_rater), FeedbackCreate(swap_id=s2.id, rating=1, is_public=False))

        public = await ledger.list_for_user(target.id)
        assert public.total == 1
        assert public.extra["rating_distribution"] == {1: 0, 2: 0, 3: 0, 4: 0, 5: 1}
        # The stored aggregate always covers every feedback row.
        assert public.extra["user_rating"] == {"average": 3.0, "total": 2}

        everything = await ledger.list_for_user(target.id, PageRequest(page=1, limit=10), public_only=False)
        assert everything.total == 2
        assert everything.extra["rating_distribution"][1] == 1

    @pytest.mark.asyncio
    async def test_list_for_unknown_user(self, ledger):
        with pytest.raises(NotFoundError):
            await ledger.list_for_user(31337)

    @pytest.mark.asyncio
    async def test_list_given_by_self_or_admin(self, ledger, make_user, as_caller, completed_swap):
        a = await make_user()
        b = await make_user()
        admin = await make_user(is_admin=True)
        swap = await completed_swap(a, b)
        await ledger.create(as_caller(a), FeedbackCreate(swap_id=swap.id, rating=4))

        assert (await ledger.list_given_by(as_caller(a), a.id)).total == 1
        assert (await ledger.list_given_by(as_caller(admin), a.id)).total == 1
        with pytest.raises(AuthorizationError):
            await ledger.list_given_by(as_caller(b), a.id)

    @pytest.mark.asyncio
    async def test_stats_for_admins(self, ledger, make_user, as_caller, completed_swap):
        a = await make_user()
        b = await make_user()
        admin = await make_user(is_admin=True)
        swap = await completed_swap(a, b)
        await ledger.create(as_caller(a), FeedbackCreate(swap_id=swap.id, rating=4))
        await ledger.create(as_caller(b), FeedbackCreate(swap_id=swap.id, rating=5))

        with pytest.raises(AuthorizationError):
            await ledger.stats(as_caller(a))
        stats = await ledger.stats(as_caller(admin))
        assert stats["total"] == 2
        assert stats["average_rating"] == 4.5
        assert stats["rating_distribution"][4] == 1
        assert stats["rating_distribution"][5] == 1
