"""Auth routes: register, login, profile (GET/PATCH /me)."""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from skillswap.auth.passwords import hash_password, verify_password
from skillswap.auth.tokens import issue_token
from skillswap.deps import get_current_user, get_repository
from skillswap.errors import ConflictError, NotFoundError
from skillswap.models.user import User
from skillswap.repository.base import Repository
from skillswap.schemas.common import ApiResponse, ok
from skillswap.schemas.user import LoginRequest, Token, UserCreate, UserResponse, UserUpdate

router = APIRouter(prefix="/auth", tags=["auth"])

Repo = Annotated[Repository, Depends(get_repository)]


def _clean_skills(skills: list[str]) -> list[str]:
    """Strip, drop empties and de-duplicate while keeping order."""
    seen: dict[str, None] = {}
    for skill in skills:
        skill = skill.strip()
        if skill:
            seen.setdefault(skill, None)
    return list(seen)


@router.post("/register", response_model=ApiResponse, response_model_exclude_none=True, status_code=201)
async def register(body: UserCreate, repository: Repo):
    """Create a new user. Returns user (no password) and a token."""
    email = body.email.lower()
    async with repository.transaction() as tx:
        if await tx.users.get_by_email(email):
            raise ConflictError("Email already registered")
        user = await tx.users.insert(
            User(
                email=email,
                hashed_password=hash_password(body.password),
                name=body.name.strip(),
                location=body.location,
                skills_offered=_clean_skills(body.skills_offered),
                skills_wanted=_clean_skills(body.skills_wanted),
            )
        )
    return ok(
        {"user": UserResponse.model_validate(user), "token": Token(access_token=issue_token(user.id))},
        "User registered successfully",
    )


@router.post("/login", response_model=ApiResponse, response_model_exclude_none=True)
async def login(body: LoginRequest, repository: Repo):
    """Login with email + password; returns JWT access_token."""
    async with repository.transaction() as tx:
        user = await tx.users.get_by_email(body.email.lower())
    if not user or not verify_password(body.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    if user.is_banned:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account has been banned")
    return ok({"token": Token(access_token=issue_token(user.id)), "user": UserResponse.model_validate(user)})


@router.get("/me", response_model=ApiResponse, response_model_exclude_none=True)
async def me(current_user: User = Depends(get_current_user)):
    """Return the currently authenticated user (requires Bearer token)."""
    return ok({"user": UserResponse.model_validate(current_user)})


@router.patch("/me", response_model=ApiResponse, response_model_exclude_none=True)
async def update_me(body: UserUpdate, repository: Repo, current_user: User = Depends(get_current_user)):
    """Update current user profile. Only fields present in the body change."""
    changes = body.model_dump(exclude_unset=True)
    for field in ("skills_offered", "skills_wanted"):
        if field in changes:
            changes[field] = _clean_skills(changes[field] or [])
    if "name" in changes:
        if not changes["name"] or not changes["name"].strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Name cannot be empty")
        changes["name"] = changes["name"].strip()
    if "is_public" in changes and changes["is_public"] is None:
        changes.pop("is_public")
    async with repository.transaction() as tx:
        user = await tx.users.get_by_id(current_user.id)
        if user is None:
            raise NotFoundError("User not found")
        user = await tx.users.update_profile(user, changes)
    return ok({"user": UserResponse.model_validate(user)}, "Profile updated successfully")
