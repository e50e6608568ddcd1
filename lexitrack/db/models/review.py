"""
Review State Store Models.

SQLAlchemy models for the review-scheduling core:
- Reviewable items (flashcards, video progress records, video reviews)
- One scheduling state row per item, guarded by an optimistic version
- Review event log for history and analytics

Timestamps are stored as naive UTC.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class ReviewableItemRow(Base):
    """An entity eligible for spaced review."""

    __tablename__ = "reviewable_items"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)  # 'flashcard', 'video-progress', 'video-review'
    title: Mapped[str | None] = mapped_column(Text)
    channel_id: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Relationships
    state: Mapped[ReviewStateRow | None] = relationship(
        back_populates="item", cascade="all, delete-orphan", passive_deletes=True
    )
    events: Mapped[list[ReviewEventRow]] = relationship(
        back_populates="item", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index("idx_reviewable_items_kind", "kind"),
        Index("idx_reviewable_items_channel", "channel_id"),
    )

    def __repr__(self) -> str:
        return f"<ReviewableItemRow {self.id} kind={self.kind}>"


class ReviewStateRow(Base):
    """Current scheduling state of one item."""

    __tablename__ = "review_states"

    item_id: Mapped[str] = mapped_column(
        ForeignKey("reviewable_items.id", ondelete="CASCADE"), primary_key=True
    )
    policy_type: Mapped[str] = mapped_column(String(32), nullable=False)

    # Continuous-quality
    ease_factor: Mapped[float] = mapped_column(Float, nullable=False, default=2.5)
    interval_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    repetition_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Scheduling
    next_review_at: Mapped[datetime | None] = mapped_column(DateTime)
    last_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime)

    # Aggregates
    total_review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_review_duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Binary-comprehension
    in_low_priority_pool: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="unwatched")

    # Optimistic concurrency token, bumped on every write
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    item: Mapped[ReviewableItemRow] = relationship(back_populates="state")

    __table_args__ = (
        Index("idx_review_states_next_review", "next_review_at"),
        Index("idx_review_states_policy", "policy_type"),
    )

    def __repr__(self) -> str:
        return (
            f"<ReviewStateRow {self.item_id} policy={self.policy_type} "
            f"next={self.next_review_at} v{self.version}>"
        )


class ReviewEventRow(Base):
    """
    Log entry for a single recorded outcome.

    Captures the outcome payload and the scheduling change it caused.
    """

    __tablename__ = "review_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_id: Mapped[str] = mapped_column(
        ForeignKey("reviewable_items.id", ondelete="CASCADE"), nullable=False
    )
    policy_type: Mapped[str] = mapped_column(String(32), nullable=False)
    reviewed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    outcome: Mapped[dict] = mapped_column(JSON, nullable=False)
    session_duration_seconds: Mapped[int | None] = mapped_column(Integer)

    # State before / after
    next_review_before: Mapped[datetime | None] = mapped_column(DateTime)
    next_review_after: Mapped[datetime | None] = mapped_column(DateTime)
    repetition_before: Mapped[int | None] = mapped_column(Integer)
    repetition_after: Mapped[int] = mapped_column(Integer, nullable=False)

    item: Mapped[ReviewableItemRow] = relationship(back_populates="events")

    __table_args__ = (
        Index("idx_review_events_item", "item_id"),
        Index("idx_review_events_reviewed_at", "reviewed_at"),
    )

    def __repr__(self) -> str:
        return f"<ReviewEventRow id={self.id} {self.item_id} at={self.reviewed_at}>"
