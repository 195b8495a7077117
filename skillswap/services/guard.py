"""Caller identity and the single place where relationship/role checks live."""
from dataclasses import dataclass

from skillswap.errors import AuthorizationError, NotFoundError
from skillswap.models.feedback import Feedback
from skillswap.models.swap import Swap
from skillswap.models.user import User


@dataclass(frozen=True)
class Caller:
    """Authenticated identity handed to the core by the auth layer. Trusted as-is."""

    id: int
    name: str = ""
    is_admin: bool = False

    @classmethod
    def from_user(cls, user: User) -> "Caller":
        return cls(id=user.id, name=user.name, is_admin=user.is_admin)


class AuthorizationGuard:
    def require_admin(self, caller: Caller) -> None:
        if not caller.is_admin:
            raise AuthorizationError("Admin access required")

    def require_self_or_admin(self, caller: Caller, user_id: int) -> None:
        if caller.id != user_id and not caller.is_admin:
            raise AuthorizationError("Access denied")

    def require_participant(self, caller: Caller, swap: Swap, message: str = "Access denied") -> None:
        if not swap.is_participant(caller.id):
            raise AuthorizationError(message)

    def require_participant_or_admin(self, caller: Caller, swap: Swap) -> None:
        if not swap.is_participant(caller.id) and not caller.is_admin:
            raise AuthorizationError("Access denied")

    def require_recipient(self, caller: Caller, swap: Swap) -> None:
        if caller.id != swap.recipient_id:
            raise AuthorizationError("Only the recipient can accept or reject this swap")

    def require_requester(self, caller: Caller, swap: Swap) -> None:
        if caller.id != swap.requester_id:
            raise AuthorizationError("Only the requester can cancel this swap")

    def require_rater(self, caller: Caller, feedback: Feedback) -> None:
        if caller.id != feedback.rater_id:
            raise AuthorizationError("You can only update your own feedback")

    def require_rater_or_admin(self, caller: Caller, feedback: Feedback) -> None:
        if caller.id != feedback.rater_id and not caller.is_admin:
            raise AuthorizationError("Access denied")

    def require_active_user(self, user: User | None, label: str = "User") -> User:
        """Banned accounts are indistinguishable from missing ones to other users."""
        if user is None or user.is_banned:
            raise NotFoundError(f"{label} not found")
        return user
