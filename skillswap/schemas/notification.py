"""Pydantic schemas for notifications."""
from datetime import datetime

from pydantic import BaseModel

from skillswap.models.notification import NotificationType


class NotificationResponse(BaseModel):
    id: int
    type: NotificationType
    message: str
    related_id: int | None = None
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True
