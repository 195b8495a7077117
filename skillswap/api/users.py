"""User routes: public profile, admin ban toggle and user stats."""
from typing import Annotated

from fastapi import APIRouter, Depends

from skillswap.deps import get_caller, get_optional_caller, get_user_directory
from skillswap.schemas.common import ApiResponse, ok
from skillswap.schemas.user import UserBan, UserResponse, UserSummary
from skillswap.services.guard import Caller
from skillswap.services.user_directory import UserDirectory

router = APIRouter(prefix="/users", tags=["users"])

Directory = Annotated[UserDirectory, Depends(get_user_directory)]


@router.get("/admin/stats", response_model=ApiResponse, response_model_exclude_none=True)
async def user_stats(caller: Annotated[Caller, Depends(get_caller)], directory: Directory):
    result = await directory.stats(caller)
    return ok(
        {
            "stats": result["stats"],
            "recent_users": [UserSummary.model_validate(u) for u in result["recent_users"]],
        }
    )


@router.get("/{user_id}", response_model=ApiResponse, response_model_exclude_none=True)
async def get_user(
    user_id: int,
    directory: Directory,
    caller: Annotated[Caller | None, Depends(get_optional_caller)],
):
    """Public profile with the rating aggregate. Private profiles need the owner or an admin."""
    user = await directory.get_profile(caller, user_id)
    return ok({"user": UserResponse.model_validate(user)})


@router.put("/{user_id}/ban", response_model=ApiResponse, response_model_exclude_none=True)
async def toggle_ban(
    user_id: int,
    body: UserBan,
    caller: Annotated[Caller, Depends(get_caller)],
    directory: Directory,
):
    user = await directory.set_banned(caller, user_id, body.banned)
    action = "banned" if user.is_banned else "unbanned"
    return ok(
        {
            "user": UserResponse.model_validate(user),
            "is_banned": user.is_banned,
            "action": action,
            "reason": body.reason,
        },
        f"User {action} successfully",
    )
