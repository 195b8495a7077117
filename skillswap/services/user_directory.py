"""Public profiles and admin moderation of accounts."""
import logging

from skillswap.errors import AuthorizationError, NotFoundError, ValidationError
from skillswap.models.user import User
from skillswap.repository.base import Repository
from skillswap.services.guard import AuthorizationGuard, Caller

logger = logging.getLogger(__name__)

RECENT_USERS_LIMIT = 5


class UserDirectory:
    def __init__(self, repository: Repository, guard: AuthorizationGuard | None = None) -> None:
        self._repository = repository
        self._guard = guard or AuthorizationGuard()

    async def get_profile(self, caller: Caller | None, user_id: int) -> User:
        """
        Banned accounts look missing to everyone but admins. Private profiles
        are only visible to their owner and admins.
        """
        async with self._repository.transaction() as tx:
            user = await tx.users.get_by_id(user_id)
        is_admin = caller is not None and caller.is_admin
        if user is None or (user.is_banned and not is_admin):
            raise NotFoundError("User not found", details={"user_id": user_id})
        if not user.is_public and not is_admin and (caller is None or caller.id != user.id):
            raise AuthorizationError("This profile is private")
        return user

    async def set_banned(self, caller: Caller, user_id: int, banned: bool) -> User:
        self._guard.require_admin(caller)
        if user_id == caller.id:
            raise ValidationError("You cannot ban yourself")
        async with self._repository.transaction() as tx:
            user = await tx.users.get_by_id(user_id)
            if user is None:
                raise NotFoundError("User not found", details={"user_id": user_id})
            if user.is_admin:
                raise AuthorizationError("Cannot ban admin users")
            user = await tx.users.set_banned(user_id, banned)
        logger.info("User %s %s by admin %s", user_id, "banned" if banned else "unbanned", caller.id)
        return user

    async def stats(self, caller: Caller) -> dict:
        self._guard.require_admin(caller)
        async with self._repository.transaction() as tx:
            counts = await tx.users.counts()
            recent = await tx.users.recent(RECENT_USERS_LIMIT)
        return {"stats": counts, "recent_users": list(recent)}
