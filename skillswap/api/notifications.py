"""Notification routes: list mine, unread count, mark one / all as read, delete."""
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from skillswap.config import settings
from skillswap.deps import get_caller, get_repository
from skillswap.errors import NotFoundError
from skillswap.repository.base import Repository
from skillswap.schemas.common import ApiResponse, Pagination, ok
from skillswap.schemas.notification import NotificationResponse
from skillswap.services.guard import Caller
from skillswap.services.pagination import PageRequest, PageResult

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=ApiResponse, response_model_exclude_none=True)
async def list_notifications(
    caller: Annotated[Caller, Depends(get_caller)],
    repository: Annotated[Repository, Depends(get_repository)],
    unread_only: bool = Query(default=False),
    page: int = Query(default=1),
    limit: int = Query(default=20),
):
    req = PageRequest(page=page, limit=limit).validated(settings.MAX_PAGE_SIZE)
    async with repository.transaction() as tx:
        items, total = await tx.notifications.list_for_user(caller.id, unread_only, req.offset, req.limit)
    result = PageResult(items=items, total=total, page=req.page, limit=req.limit)
    return ok(
        {
            "notifications": [NotificationResponse.model_validate(n) for n in items],
            "pagination": Pagination.from_result(result),
        }
    )


@router.get("/unread-count", response_model=ApiResponse, response_model_exclude_none=True)
async def unread_count(
    caller: Annotated[Caller, Depends(get_caller)],
    repository: Annotated[Repository, Depends(get_repository)],
):
    async with repository.transaction() as tx:
        count = await tx.notifications.count_unread(caller.id)
    return ok({"unread_count": count})


# Declared before /{notification_id}/read so the literal path wins.
@router.put("/mark-all-read", response_model=ApiResponse, response_model_exclude_none=True)
async def mark_all_read(
    caller: Annotated[Caller, Depends(get_caller)],
    repository: Annotated[Repository, Depends(get_repository)],
):
    async with repository.transaction() as tx:
        updated = await tx.notifications.mark_all_read(caller.id)
    return ok({"updated": updated}, "All notifications marked as read")


@router.put("/{notification_id}/read", response_model=ApiResponse, response_model_exclude_none=True)
async def mark_read(
    notification_id: int,
    caller: Annotated[Caller, Depends(get_caller)],
    repository: Annotated[Repository, Depends(get_repository)],
):
    async with repository.transaction() as tx:
        notification = await tx.notifications.mark_read(notification_id, caller.id)
        if notification is None:
            raise NotFoundError("Notification not found")
    return ok({"notification": NotificationResponse.model_validate(notification)}, "Notification marked as read")


@router.delete("/{notification_id}", response_model=ApiResponse, response_model_exclude_none=True)
async def delete_notification(
    notification_id: int,
    caller: Annotated[Caller, Depends(get_caller)],
    repository: Annotated[Repository, Depends(get_repository)],
):
    async with repository.transaction() as tx:
        deleted = await tx.notifications.delete(notification_id, caller.id)
        if not deleted:
            raise NotFoundError("Notification not found")
    return ok(message="Notification deleted successfully")
