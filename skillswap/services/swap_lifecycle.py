"""Swap lifecycle: create, respond, cancel, complete, read. Enforces actor rules and allowed transitions."""
import logging

from skillswap.errors import ConflictError, NotFoundError, ValidationError
from skillswap.models.notification import NotificationType
from skillswap.models.swap import Swap, SwapStatus
from skillswap.repository.base import Repository, Transaction
from skillswap.schemas.swap import SwapCreate, SwapRespond
from skillswap.services.guard import AuthorizationGuard, Caller
from skillswap.services.notifications import Event, NotificationSink, emit_safely
from skillswap.services.pagination import PageRequest, PageResult

logger = logging.getLogger(__name__)

# Allowed transitions: from_status -> {to_status, ...}
ALLOWED: dict[SwapStatus, set[SwapStatus]] = {
    SwapStatus.PENDING: {SwapStatus.ACCEPTED, SwapStatus.REJECTED, SwapStatus.CANCELLED},
    SwapStatus.ACCEPTED: {SwapStatus.COMPLETED},
    SwapStatus.REJECTED: set(),
    SwapStatus.CANCELLED: set(),
    SwapStatus.COMPLETED: set(),
}

TERMINAL = frozenset(status for status, targets in ALLOWED.items() if not targets)

RESPONSES = {SwapStatus.ACCEPTED, SwapStatus.REJECTED}

LIST_KINDS = ("all", "sent", "received")


def can_transition(current: SwapStatus, to_status: SwapStatus) -> bool:
    return to_status in ALLOWED.get(current, set())


class SwapLifecycle:
    def __init__(
        self,
        repository: Repository,
        notifier: NotificationSink,
        guard: AuthorizationGuard | None = None,
        max_page_size: int = 100,
    ) -> None:
        self._repository = repository
        self._notifier = notifier
        self._guard = guard or AuthorizationGuard()
        self._max_page_size = max_page_size

    async def create(self, caller: Caller, body: SwapCreate) -> Swap:
        """Propose a swap to another user. Starts in PENDING; notifies the recipient."""
        requester_skill = (body.requester_skill or "").strip()
        recipient_skill = (body.recipient_skill or "").strip()
        if body.recipient_id is None or not requester_skill or not recipient_skill:
            raise ValidationError("Recipient ID, requester skill, and recipient skill are required")
        if body.recipient_id == caller.id:
            raise ValidationError("Cannot create swap request with yourself")

        async with self._repository.transaction() as tx:
            recipient = await tx.users.get_by_id(body.recipient_id)
            self._guard.require_active_user(recipient, label="Recipient")
            duplicate = await tx.swaps.find_pending_duplicate(
                caller.id, body.recipient_id, requester_skill, recipient_skill
            )
            if duplicate is not None:
                raise ConflictError(
                    "A pending swap request already exists for these skills",
                    details={"swap_id": duplicate.id},
                )
            swap = await tx.swaps.insert(
                Swap(
                    requester_id=caller.id,
                    recipient_id=body.recipient_id,
                    requester_skill=requester_skill,
                    recipient_skill=recipient_skill,
                    status=SwapStatus.PENDING,
                    message=body.message,
                    scheduled_date=body.scheduled_date,
                    duration=body.duration,
                )
            )
        logger.info("Swap %s created by user %s for user %s", swap.id, caller.id, swap.recipient_id)
        emit_safely(
            self._notifier,
            Event(
                kind=NotificationType.SWAP_REQUEST,
                target_user_id=swap.recipient_id,
                message=f"{caller.name or 'Someone'} sent you a skill swap request for {swap.recipient_skill}",
                related_entity_id=swap.id,
            )
        )
        return swap

    async def respond(self, caller: Caller, swap_id: int, body: SwapRespond) -> Swap:
        """Recipient accepts or rejects a PENDING swap; notifies the requester."""
        if body.status not in RESPONSES:
            raise ValidationError('Invalid status. Must be "accepted" or "rejected"')
        async with self._repository.transaction() as tx:
            swap = await self._load(tx, swap_id)
            self._guard.require_recipient(caller, swap)
            self._require_transition(swap, body.status, "Only pending swaps can be accepted or rejected")
            swap = await tx.swaps.update_status(swap.id, swap.status, body.status, notes=body.notes)
        logger.info("Swap %s %s by user %s", swap.id, body.status.value, caller.id)
        accepted = body.status == SwapStatus.ACCEPTED
        emit_safely(
            self._notifier,
            Event(
                kind=NotificationType.SWAP_ACCEPTED if accepted else NotificationType.SWAP_REJECTED,
                target_user_id=swap.requester_id,
                message=f"{caller.name or 'Someone'} {'accepted' if accepted else 'rejected'} your skill swap request",
                related_entity_id=swap.id,
            )
        )
        return swap

    async def cancel(self, caller: Caller, swap_id: int) -> Swap:
        """Requester withdraws a PENDING swap."""
        async with self._repository.transaction() as tx:
            swap = await self._load(tx, swap_id)
            self._guard.require_requester(caller, swap)
            self._require_transition(swap, SwapStatus.CANCELLED, "Only pending swaps can be cancelled")
            swap = await tx.swaps.update_status(swap.id, swap.status, SwapStatus.CANCELLED)
        logger.info("Swap %s cancelled by user %s", swap.id, caller.id)
        emit_safely(
            self._notifier,
            Event(
                kind=NotificationType.SWAP_CANCELLED,
                target_user_id=swap.recipient_id,
                message=f"{caller.name or 'Someone'} cancelled their skill swap request",
                related_entity_id=swap.id,
            )
        )
        return swap

    async def complete(self, caller: Caller, swap_id: int) -> Swap:
        """Either participant marks an ACCEPTED swap as done. A second call fails: it is already COMPLETED."""
        async with self._repository.transaction() as tx:
            swap = await self._load(tx, swap_id)
            self._guard.require_participant(caller, swap)
            self._require_transition(swap, SwapStatus.COMPLETED, "Only accepted swaps can be marked as completed")
            swap = await tx.swaps.update_status(swap.id, swap.status, SwapStatus.COMPLETED)
        logger.info("Swap %s completed by user %s", swap.id, caller.id)
        emit_safely(
            self._notifier,
            Event(
                kind=NotificationType.SWAP_COMPLETED,
                target_user_id=swap.other_participant(caller.id),
                message=f"{caller.name or 'Someone'} marked your skill swap as completed. You can now leave feedback",
                related_entity_id=swap.id,
            )
        )
        return swap

    async def get(self, caller: Caller, swap_id: int) -> Swap:
        async with self._repository.transaction() as tx:
            swap = await self._load(tx, swap_id)
            self._guard.require_participant_or_admin(caller, swap)
        return swap

    async def list_for_caller(
        self,
        caller: Caller,
        kind: str = "all",
        status: SwapStatus | None = None,
        page: PageRequest | None = None,
    ) -> PageResult[Swap]:
        """Swaps the caller sent, received, or both; newest first."""
        if kind not in LIST_KINDS:
            raise ValidationError(f"type must be one of {', '.join(LIST_KINDS)}", details={"type": kind})
        page = (page or PageRequest()).validated(self._max_page_size)
        async with self._repository.transaction() as tx:
            swaps, total = await tx.swaps.list_for_user(caller.id, kind, status, page.offset, page.limit)
        return PageResult(items=swaps, total=total, page=page.page, limit=page.limit)

    async def list_all(
        self,
        caller: Caller,
        status: SwapStatus | None = None,
        page: PageRequest | None = None,
    ) -> PageResult[Swap]:
        self._guard.require_admin(caller)
        page = (page or PageRequest(limit=20)).validated(self._max_page_size)
        async with self._repository.transaction() as tx:
            swaps, total = await tx.swaps.list_all(status, page.offset, page.limit)
        return PageResult(items=swaps, total=total, page=page.page, limit=page.limit)

    async def _load(self, tx: Transaction, swap_id: int) -> Swap:
        swap = await tx.swaps.get_by_id(swap_id)
        if swap is None:
            raise NotFoundError("Swap not found", details={"swap_id": swap_id})
        return swap

    @staticmethod
    def _require_transition(swap: Swap, to_status: SwapStatus, message: str) -> None:
        if not can_transition(swap.status, to_status):
            logger.warning("Rejected transition on swap %s: status is %s", swap.id, swap.status.value)
            raise ConflictError(message, details={"swap_id": swap.id, "status": swap.status.value})
