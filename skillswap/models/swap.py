"""Swap model: a proposed skill exchange between two users, driven by a status state machine."""
import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Index, Integer, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column

from skillswap.models.base import Base


class SwapStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Swap(Base):
    __tablename__ = "swaps"
    __table_args__ = (
        CheckConstraint("requester_id <> recipient_id", name="ck_swaps_distinct_participants"),
        CheckConstraint("duration IS NULL OR duration > 0", name="ck_swaps_positive_duration"),
        # At most one pending swap per exact (requester, recipient, skills) tuple.
        Index(
            "uq_swaps_pending_tuple",
            "requester_id",
            "recipient_id",
            "requester_skill",
            "recipient_skill",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    requester_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    recipient_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    requester_skill: Mapped[str] = mapped_column(String(255), nullable=False)
    recipient_skill: Mapped[str] = mapped_column(String(255), nullable=False)
    # Stored as the lowercase value so the partial index predicate matches.
    status: Mapped[SwapStatus] = mapped_column(
        Enum(SwapStatus, name="swap_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=SwapStatus.PENDING,
        index=True,
    )
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    scheduled_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # minutes
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def is_participant(self, user_id: int) -> bool:
        return user_id in (self.requester_id, self.recipient_id)

    def other_participant(self, user_id: int) -> int:
        return self.recipient_id if user_id == self.requester_id else self.requester_id
