"""Pydantic schemas for auth and profiles: register, login, user response, profile update, moderation."""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, EmailStr, Field, field_validator


class UserCreate(BaseModel):
    """Request body for POST /auth/register."""
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=2, max_length=100)
    location: str | None = Field(default=None, max_length=255)
    skills_offered: list[str] = Field(default_factory=list)
    skills_wanted: list[str] = Field(default_factory=list)

    class Config:
        extra = "forbid"


class UserResponse(BaseModel):
    """User in API responses (no password, no moderation flags)."""
    id: int
    email: str
    name: str
    location: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    skills_offered: list[str] = []
    skills_wanted: list[str] = []
    availability: str | None = None
    is_public: bool = True
    rating: float = 0.0
    total_ratings: int = 0

    class Config:
        from_attributes = True

    @field_validator("rating", mode="before")
    @classmethod
    def _decimal_rating(cls, value):
        return float(value) if isinstance(value, Decimal) else value


class UserUpdate(BaseModel):
    """Request body for PATCH /auth/me. Only profile fields; rating, ban and admin flags are not settable."""
    name: str | None = Field(default=None, min_length=2, max_length=100)
    location: str | None = Field(default=None, max_length=255)
    bio: str | None = Field(default=None, max_length=2000)
    avatar_url: str | None = Field(default=None, max_length=512)
    skills_offered: list[str] | None = None
    skills_wanted: list[str] | None = None
    availability: str | None = Field(default=None, max_length=255)
    is_public: bool | None = None

    class Config:
        extra = "forbid"


class Token(BaseModel):
    """Response for login: access_token and type."""
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""
    email: EmailStr
    password: str


class UserBan(BaseModel):
    """Request body for PUT /users/{id}/ban."""
    banned: bool
    reason: str | None = Field(default=None, max_length=500)

    class Config:
        extra = "forbid"


class UserSummary(BaseModel):
    id: int
    name: str
    email: str
    created_at: datetime

    class Config:
        from_attributes = True
