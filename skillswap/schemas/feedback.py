"""Pydantic schemas for feedback: create, partial update, response."""
from datetime import datetime

from pydantic import BaseModel, Field


class FeedbackCreate(BaseModel):
    """Request body for POST /feedback. Rating range is enforced by the ledger."""
    swap_id: int
    rating: int
    comment: str | None = Field(default=None, max_length=2000)
    is_public: bool = True

    class Config:
        extra = "forbid"


class FeedbackUpdate(BaseModel):
    """Request body for PUT /feedback/{id}. Omitted fields stay unchanged; unknown fields are rejected."""
    rating: int | None = None
    comment: str | None = Field(default=None, max_length=2000)
    is_public: bool | None = None

    class Config:
        extra = "forbid"


class FeedbackResponse(BaseModel):
    id: int
    swap_id: int
    rater_id: int
    rated_user_id: int
    rating: int
    comment: str | None = None
    is_public: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RatingSummary(BaseModel):
    average: float
    total: int
