"""Swap routes: create, list mine, get, respond, cancel, complete, admin listing."""
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from skillswap.config import settings
from skillswap.deps import get_caller, get_swap_lifecycle
from skillswap.models.swap import Swap, SwapStatus
from skillswap.schemas.common import ApiResponse, Pagination, ok
from skillswap.schemas.swap import SwapCreate, SwapRespond, SwapResponse
from skillswap.services.guard import Caller
from skillswap.services.pagination import PageRequest, PageResult
from skillswap.services.swap_lifecycle import SwapLifecycle

router = APIRouter(prefix="/swaps", tags=["swaps"])

Lifecycle = Annotated[SwapLifecycle, Depends(get_swap_lifecycle)]
CurrentCaller = Annotated[Caller, Depends(get_caller)]


def _swap_data(swap: Swap) -> dict:
    return {"swap": SwapResponse.model_validate(swap)}


def _page_data(result: PageResult[Swap]) -> dict:
    return {
        "swaps": [SwapResponse.model_validate(s) for s in result.items],
        "pagination": Pagination.from_result(result),
    }


@router.post("", response_model=ApiResponse, response_model_exclude_none=True, status_code=status.HTTP_201_CREATED)
async def create_swap(body: SwapCreate, caller: CurrentCaller, lifecycle: Lifecycle):
    """Propose a swap to another user (starts pending)."""
    swap = await lifecycle.create(caller, body)
    return ok(_swap_data(swap), "Swap request created successfully")


@router.get("/my-swaps", response_model=ApiResponse, response_model_exclude_none=True)
async def list_my_swaps(
    caller: CurrentCaller,
    lifecycle: Lifecycle,
    type: str = Query(default="all"),
    status: SwapStatus | None = Query(default=None),
    page: int = Query(default=1),
    limit: int = Query(default=settings.DEFAULT_PAGE_SIZE),
):
    """Swaps I sent, received, or both (type=sent|received|all), optionally filtered by status."""
    result = await lifecycle.list_for_caller(caller, type, status, PageRequest(page=page, limit=limit))
    return ok(_page_data(result))


@router.get("/admin/all", response_model=ApiResponse, response_model_exclude_none=True)
async def list_all_swaps(
    caller: CurrentCaller,
    lifecycle: Lifecycle,
    status: SwapStatus | None = Query(default=None),
    page: int = Query(default=1),
    limit: int = Query(default=20),
):
    """Every swap on the platform (admin only)."""
    result = await lifecycle.list_all(caller, status, PageRequest(page=page, limit=limit))
    return ok(_page_data(result))


@router.get("/{swap_id}", response_model=ApiResponse, response_model_exclude_none=True)
async def get_swap(swap_id: int, caller: CurrentCaller, lifecycle: Lifecycle):
    swap = await lifecycle.get(caller, swap_id)
    return ok(_swap_data(swap))


@router.put("/{swap_id}/status", response_model=ApiResponse, response_model_exclude_none=True)
async def respond_to_swap(swap_id: int, body: SwapRespond, caller: CurrentCaller, lifecycle: Lifecycle):
    """Recipient accepts or rejects a pending swap."""
    swap = await lifecycle.respond(caller, swap_id, body)
    return ok(_swap_data(swap), f"Swap {swap.status.value} successfully")


@router.put("/{swap_id}/cancel", response_model=ApiResponse, response_model_exclude_none=True)
async def cancel_swap(swap_id: int, caller: CurrentCaller, lifecycle: Lifecycle):
    """Requester cancels a pending swap."""
    swap = await lifecycle.cancel(caller, swap_id)
    return ok(_swap_data(swap), "Swap cancelled successfully")


@router.put("/{swap_id}/complete", response_model=ApiResponse, response_model_exclude_none=True)
async def complete_swap(swap_id: int, caller: CurrentCaller, lifecycle: Lifecycle):
    """Either participant marks an accepted swap as completed."""
    swap = await lifecycle.complete(caller, swap_id)
    return ok(_swap_data(swap), "Swap marked as completed")
