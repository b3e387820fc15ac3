"""
Quiz router.

Endpoints for:
- Answer submission (judged against the catalog, numbered per learner)
- Attempt history
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from pydantic import BaseModel, Field

from progression.api.deps import get_current_user_id, get_quiz_sequencer
from progression.core.errors import ProgressionError
from progression.services import QuizAttemptSequencer

router = APIRouter()


# ========================================
# Request/Response Models
# ========================================


class AnswerRequest(BaseModel):
    """Request model for a quiz answer."""

    selected_option_id: str = Field(..., min_length=1, description="Id of the chosen option")


class AnswerResponse(BaseModel):
    """Response model for a judged answer."""

    is_correct: bool
    correct_option_id: str
    explanation: Optional[str]
    attempt_number: int


class AttemptResponse(BaseModel):
    """Response model for a recorded attempt."""

    attempt_number: int
    selected_option_id: str
    is_correct: bool
    created_at: datetime


# ========================================
# Endpoints
# ========================================


@router.post(
    "/pages/{page_id}/quizzes/{quiz_content_id}/answer", response_model=AnswerResponse
)
def submit_answer(
    page_id: str,
    quiz_content_id: str,
    request: AnswerRequest,
    user_id: str = Depends(get_current_user_id),
    sequencer: QuizAttemptSequencer = Depends(get_quiz_sequencer),
) -> AnswerResponse:
    """Judge an answer and record it as the caller's next attempt."""
    try:
        result = sequencer.submit_answer(
            user_id, page_id, quiz_content_id, request.selected_option_id
        )
    except ProgressionError:
        raise
    except Exception as exc:
        logger.exception(f"Failed to submit answer for quiz {quiz_content_id}")
        raise HTTPException(status_code=500, detail=str(exc))

    return AnswerResponse(
        is_correct=result.is_correct,
        correct_option_id=result.correct_option_id,
        explanation=result.explanation,
        attempt_number=result.attempt_number,
    )


@router.get("/quizzes/{quiz_content_id}/attempts", response_model=List[AttemptResponse])
def list_attempts(
    quiz_content_id: str,
    user_id: str = Depends(get_current_user_id),
    sequencer: QuizAttemptSequencer = Depends(get_quiz_sequencer),
) -> List[AttemptResponse]:
    """The caller's attempts on a quiz, oldest first."""
    return [
        AttemptResponse(
            attempt_number=attempt.attempt_number,
            selected_option_id=attempt.selected_option_id,
            is_correct=attempt.is_correct,
            created_at=attempt.created_at,
        )
        for attempt in sequencer.list_attempts(user_id, quiz_content_id)
    ]
