"""
Per-learner progress models.

Implements:
- UserProgress: one row per (user, page); completion awards the page's XP once
- UserXPTotal: cached XP aggregate, always recomputed from UserProgress
- QuizAttempt: append-only quiz submissions numbered 1, 2, 3, ... per (user, quiz)
- QuizAttemptCounter: per (user, quiz) lock row serializing attempt numbering
- Reflection: one free-text note per (user, page)

User ids come from the external identity provider and are stored as opaque text.
"""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base

PROGRESS_STATUSES = ("not_started", "in_progress", "completed")


def _new_id() -> str:
    return str(uuid4())


class UserProgress(Base):
    """Completion state of a page for one learner."""

    __tablename__ = "user_progress"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    page_id: Mapped[str] = mapped_column(
        ForeignKey("pages.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(Text, nullable=False, default="not_started")
    xp_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    started_at: Mapped[datetime | None] = mapped_column()
    completed_at: Mapped[datetime | None] = mapped_column()

    created_at: Mapped[datetime] = mapped_column(default=func.now())
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "page_id", name="uq_user_progress_user_page"),
        CheckConstraint(f"status IN {PROGRESS_STATUSES}", name="progress_status"),
        Index("idx_user_progress_user_status", "user_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<UserProgress user={self.user_id} page={self.page_id} status={self.status}>"

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"


class UserXPTotal(Base):
    """
    Cached XP aggregate for a learner.

    Never incremented in place: the completion flow recomputes it from the
    learner's completed UserProgress rows. The row doubles as the per-user
    lock that serializes completions.
    """

    __tablename__ = "user_xp_totals"

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)
    total_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<UserXPTotal user={self.user_id} total={self.total_xp}>"


class QuizAttempt(Base):
    """A single quiz submission. Rows are never updated or deleted."""

    __tablename__ = "quiz_attempts"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    page_id: Mapped[str] = mapped_column(
        ForeignKey("pages.id", ondelete="CASCADE"), nullable=False
    )
    quiz_content_id: Mapped[str] = mapped_column(
        ForeignKey("content_items.id", ondelete="CASCADE"), nullable=False
    )
    selected_option_id: Mapped[str] = mapped_column(Text, nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=func.now())

    __table_args__ = (
        UniqueConstraint(
            "user_id", "quiz_content_id", "attempt_number", name="uq_quiz_attempt_sequence"
        ),
        CheckConstraint("attempt_number > 0", name="attempt_number_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"<QuizAttempt user={self.user_id} quiz={self.quiz_content_id} "
            f"#{self.attempt_number} correct={self.is_correct}>"
        )


class QuizAttemptCounter(Base):
    """
    Last attempt number handed out per (user, quiz).

    Submissions lock this row before numbering, so concurrent answers to the
    same quiz queue up instead of racing for the same number.
    """

    __tablename__ = "quiz_attempt_counters"

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)
    quiz_content_id: Mapped[str] = mapped_column(
        ForeignKey("content_items.id", ondelete="CASCADE"), primary_key=True
    )
    last_attempt_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return (
            f"<QuizAttemptCounter user={self.user_id} quiz={self.quiz_content_id} "
            f"last={self.last_attempt_number}>"
        )


class Reflection(Base):
    """Free-text learner note on a page. Overwritten on save, no history."""

    __tablename__ = "reflections"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    page_id: Mapped[str] = mapped_column(
        ForeignKey("pages.id", ondelete="CASCADE"), nullable=False
    )
    text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    word_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(default=func.now())
    updated_at: Mapped[datetime] = mapped_column(default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "page_id", name="uq_reflection_user_page"),
    )

    def __repr__(self) -> str:
        return f"<Reflection user={self.user_id} page={self.page_id} words={self.word_count}>"
