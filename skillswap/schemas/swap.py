"""Pydantic schemas for swaps: create, respond, response."""
from datetime import datetime

from pydantic import BaseModel, Field

from skillswap.models.swap import SwapStatus


class SwapCreate(BaseModel):
    """Request body for POST /swaps. Presence/emptiness checks are the lifecycle's job."""
    recipient_id: int | None = None
    requester_skill: str | None = Field(default=None, max_length=255)
    recipient_skill: str | None = Field(default=None, max_length=255)
    message: str | None = Field(default=None, max_length=1000)
    scheduled_date: datetime | None = None
    duration: int | None = Field(default=None, ge=1, le=24 * 60)  # minutes

    class Config:
        extra = "forbid"


class SwapRespond(BaseModel):
    """Request body for PUT /swaps/{id}/status. Only status and notes are settable here."""
    status: SwapStatus
    notes: str | None = Field(default=None, max_length=1000)

    class Config:
        extra = "forbid"


class SwapResponse(BaseModel):
    id: int
    requester_id: int
    recipient_id: int
    requester_skill: str
    recipient_skill: str
    status: SwapStatus
    message: str | None = None
    scheduled_date: datetime | None = None
    duration: int | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
