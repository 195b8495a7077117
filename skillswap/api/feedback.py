"""Feedback routes: leave, list received / given, edit, delete, admin stats."""
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from skillswap.config import settings
from skillswap.deps import get_caller, get_feedback_ledger, get_optional_caller
from skillswap.models.feedback import Feedback
from skillswap.schemas.common import ApiResponse, Pagination, ok
from skillswap.schemas.feedback import FeedbackCreate, FeedbackResponse, FeedbackUpdate, RatingSummary
from skillswap.services.feedback_ledger import FeedbackLedger
from skillswap.services.guard import Caller
from skillswap.services.pagination import PageRequest, PageResult

router = APIRouter(prefix="/feedback", tags=["feedback"])

Ledger = Annotated[FeedbackLedger, Depends(get_feedback_ledger)]
CurrentCaller = Annotated[Caller, Depends(get_caller)]


def _items(result: PageResult[Feedback]) -> list[FeedbackResponse]:
    return [FeedbackResponse.model_validate(f) for f in result.items]


@router.post("", response_model=ApiResponse, response_model_exclude_none=True, status_code=status.HTTP_201_CREATED)
async def create_feedback(body: FeedbackCreate, caller: CurrentCaller, ledger: Ledger):
    """Rate the other participant of a completed swap (once per swap)."""
    feedback = await ledger.create(caller, body)
    return ok({"feedback": FeedbackResponse.model_validate(feedback)}, "Feedback created successfully")


@router.get("/user/{user_id}", response_model=ApiResponse, response_model_exclude_none=True)
async def list_user_feedback(
    user_id: int,
    ledger: Ledger,
    caller: Annotated[Caller | None, Depends(get_optional_caller)],
    page: int = Query(default=1),
    limit: int = Query(default=settings.DEFAULT_PAGE_SIZE),
):
    """Public feedback a user received, with rating histogram. Private entries are shown to the user and admins."""
    public_only = caller is None or (caller.id != user_id and not caller.is_admin)
    result = await ledger.list_for_user(user_id, PageRequest(page=page, limit=limit), public_only=public_only)
    return ok(
        {
            "feedback": _items(result),
            "rating_distribution": result.extra["rating_distribution"],
            "user_rating": RatingSummary(**result.extra["user_rating"]),
            "pagination": Pagination.from_result(result),
        }
    )


@router.get("/by-user/{user_id}", response_model=ApiResponse, response_model_exclude_none=True)
async def list_feedback_given(
    user_id: int,
    caller: CurrentCaller,
    ledger: Ledger,
    page: int = Query(default=1),
    limit: int = Query(default=settings.DEFAULT_PAGE_SIZE),
):
    """Feedback a user has given (self or admin)."""
    result = await ledger.list_given_by(caller, user_id, PageRequest(page=page, limit=limit))
    return ok({"feedback": _items(result), "pagination": Pagination.from_result(result)})


@router.get("/admin/stats", response_model=ApiResponse, response_model_exclude_none=True)
async def feedback_stats(caller: CurrentCaller, ledger: Ledger):
    return ok({"stats": await ledger.stats(caller)})


@router.put("/{feedback_id}", response_model=ApiResponse, response_model_exclude_none=True)
async def update_feedback(feedback_id: int, body: FeedbackUpdate, caller: CurrentCaller, ledger: Ledger):
    feedback = await ledger.update(caller, feedback_id, body)
    return ok({"feedback": FeedbackResponse.model_validate(feedback)}, "Feedback updated successfully")


@router.delete("/{feedback_id}", response_model=ApiResponse, response_model_exclude_none=True)
async def delete_feedback(feedback_id: int, caller: CurrentCaller, ledger: Ledger):
    await ledger.delete(caller, feedback_id)
    return ok(message="Feedback deleted successfully")
