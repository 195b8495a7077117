"""Shared dependencies: get_current_user / caller identity, repository, services."""
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from skillswap.auth.tokens import user_id_from_token
from skillswap.config import settings
from skillswap.models.user import User
from skillswap.repository.base import Repository
from skillswap.services.feedback_ledger import FeedbackLedger
from skillswap.services.guard import Caller
from skillswap.services.notifications import NotificationSink
from skillswap.services.swap_lifecycle import SwapLifecycle
from skillswap.services.user_directory import UserDirectory

security = HTTPBearer(auto_error=False)


def get_repository(request: Request) -> Repository:
    return request.app.state.repository


def get_notifier(request: Request) -> NotificationSink:
    return request.app.state.notifier


async def _user_from_credentials(
    credentials: HTTPAuthorizationCredentials | None, repository: Repository
) -> User | None:
    if not credentials:
        return None
    user_id = user_id_from_token(credentials.credentials)
    if user_id is None:
        return None
    # Short transaction: the handler opens its own.
    async with repository.transaction() as tx:
        return await tx.users.get_by_id(user_id)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    repository: Annotated[Repository, Depends(get_repository)],
) -> User:
    """Validate JWT from Authorization: Bearer <token> and return the User. 401 if missing/invalid, 403 if banned."""
    if not credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Access token required")
    user = await _user_from_credentials(credentials, repository)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
    if user.is_banned:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account has been banned")
    return user


async def get_caller(current_user: Annotated[User, Depends(get_current_user)]) -> Caller:
    return Caller.from_user(current_user)


async def get_optional_caller(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    repository: Annotated[Repository, Depends(get_repository)],
) -> Caller | None:
    """Like get_caller, but anonymous (None) instead of 401 for missing or bad tokens."""
    user = await _user_from_credentials(credentials, repository)
    if user is None or user.is_banned:
        return None
    return Caller.from_user(user)


def get_swap_lifecycle(
    repository: Annotated[Repository, Depends(get_repository)],
    notifier: Annotated[NotificationSink, Depends(get_notifier)],
) -> SwapLifecycle:
    return SwapLifecycle(repository, notifier, max_page_size=settings.MAX_PAGE_SIZE)


def get_feedback_ledger(
    repository: Annotated[Repository, Depends(get_repository)],
    notifier: Annotated[NotificationSink, Depends(get_notifier)],
) -> FeedbackLedger:
    return FeedbackLedger(repository, notifier, max_page_size=settings.MAX_PAGE_SIZE)


def get_user_directory(repository: Annotated[Repository, Depends(get_repository)]) -> UserDirectory:
    return UserDirectory(repository)
