"""
Quiz attempt sequencer.

Judges a quiz answer against the catalog and appends a numbered attempt.
Attempt numbers for a (user, quiz) pair run 1, 2, 3, ... with no gaps or
repeats. Each submission locks the pair's quiz_attempt_counters row, then
reads MAX + 1 and inserts in the same transaction, so submissions for one
pair take numbers one at a time. Only first-ever submissions racing to
create the counter row can collide; each loser gets one unique violation and
retries against the now-existing row.
UNIQUE(user_id, quiz_content_id, attempt_number) backs the numbering.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from loguru import logger
from sqlalchemy import select, text
from sqlalchemy.orm import Session

from progression.catalog.repository import CatalogRepository
from progression.core.errors import ContentError, NotFoundError
from progression.db.database import session_scope
from progression.db.models import ContentItem, QuizAttempt, QuizAttemptCounter
from progression.db.queries import NEXT_ATTEMPT_NUMBER
from progression.services.transactions import run_in_transaction

MIN_QUIZ_OPTIONS = 2


@dataclass
class SubmissionResult:
    """Outcome of a quiz submission."""

    is_correct: bool
    correct_option_id: str
    explanation: str | None
    attempt_number: int


def _is_marked_correct(option: dict[str, Any]) -> bool:
    return bool(option.get("correct") or option.get("is_correct"))


def find_correct_option(item: ContentItem) -> dict[str, Any]:
    """
    Return the option marked correct in a quiz item.

    Raises:
        ContentError: the item is not a quiz, has fewer than two options, or
            does not have exactly one option marked correct
    """
    if not item.is_quiz:
        raise ContentError(item.id, f"expected kind 'quiz', got '{item.kind}'")

    options = (item.payload or {}).get("options")
    if not isinstance(options, list) or len(options) < MIN_QUIZ_OPTIONS:
        raise ContentError(item.id, f"quiz needs at least {MIN_QUIZ_OPTIONS} options")
    if any(not isinstance(option, dict) or "id" not in option for option in options):
        raise ContentError(item.id, "every option needs an id")

    correct = [option for option in options if _is_marked_correct(option)]
    if not correct:
        raise ContentError(item.id, "no option is marked correct")
    if len(correct) > 1:
        raise ContentError(item.id, "more than one option is marked correct")
    return correct[0]


def lock_attempt_counter(
    session: Session, user_id: str, quiz_content_id: str
) -> QuizAttemptCounter:
    """Fetch the (user, quiz) counter row with a row lock, creating it if needed."""
    stmt = (
        select(QuizAttemptCounter)
        .where(
            QuizAttemptCounter.user_id == user_id,
            QuizAttemptCounter.quiz_content_id == quiz_content_id,
        )
        .with_for_update()
    )
    counter = session.scalars(stmt).first()
    if counter is None:
        counter = QuizAttemptCounter(
            user_id=user_id, quiz_content_id=quiz_content_id, last_attempt_number=0
        )
        session.add(counter)
        session.flush()
    return counter


def quiz_explanation(item: ContentItem, correct_option: dict[str, Any]) -> str | None:
    """Quiz-level explanation, falling back to the correct option's own."""
    return (item.payload or {}).get("explanation") or correct_option.get("explanation")


class QuizAttemptSequencer:
    """Owns every write to quiz_attempts."""

    def submit_answer(
        self,
        user_id: str,
        page_id: str,
        quiz_content_id: str,
        selected_option_id: str,
    ) -> SubmissionResult:
        """
        Judge an answer and record it as the learner's next attempt.

        Raises:
            NotFoundError: the quiz content item does not exist
            ContentError: the item is not a well-formed quiz on this page
            ConcurrencyConflict: conflicts persisted past the retry budget
        """
        return run_in_transaction(
            "submit_answer",
            lambda session: self._submit_answer(
                session, user_id, page_id, quiz_content_id, selected_option_id
            ),
        )

    def list_attempts(self, user_id: str, quiz_content_id: str) -> list[QuizAttempt]:
        """A learner's attempts on a quiz, oldest first."""
        with session_scope() as session:
            stmt = (
                select(QuizAttempt)
                .where(
                    QuizAttempt.user_id == user_id,
                    QuizAttempt.quiz_content_id == quiz_content_id,
                )
                .order_by(QuizAttempt.attempt_number)
            )
            return list(session.scalars(stmt))

    def _submit_answer(
        self,
        session: Session,
        user_id: str,
        page_id: str,
        quiz_content_id: str,
        selected_option_id: str,
    ) -> SubmissionResult:
        item = CatalogRepository(session).get_content_item(quiz_content_id)
        if item is None:
            raise NotFoundError("quiz", quiz_content_id)
        if item.page_id != page_id:
            raise ContentError(quiz_content_id, f"quiz does not belong to page {page_id}")

        correct_option = find_correct_option(item)
        correct_option_id = str(correct_option["id"])
        is_correct = str(selected_option_id) == correct_option_id

        counter = lock_attempt_counter(session, user_id, quiz_content_id)
        attempt_number = int(
            session.execute(
                text(NEXT_ATTEMPT_NUMBER),
                {"user_id": user_id, "quiz_content_id": quiz_content_id},
            ).scalar_one()
        )
        session.add(
            QuizAttempt(
                user_id=user_id,
                page_id=page_id,
                quiz_content_id=quiz_content_id,
                selected_option_id=str(selected_option_id),
                is_correct=is_correct,
                attempt_number=attempt_number,
            )
        )
        counter.last_attempt_number = attempt_number
        session.flush()

        logger.info(
            f"{user_id} answered quiz {quiz_content_id} "
            f"(attempt {attempt_number}, {'correct' if is_correct else 'incorrect'})"
        )
        return SubmissionResult(
            is_correct=is_correct,
            correct_option_id=correct_option_id,
            explanation=quiz_explanation(item, correct_option),
            attempt_number=attempt_number,
        )
