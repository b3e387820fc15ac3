"""Request dependencies shared by the routers."""

from __future__ import annotations

from fastapi import HTTPException, Request

from config import get_settings
from progression.services import (
    CompletionCoordinator,
    DashboardService,
    QuizAttemptSequencer,
    ReflectionStore,
)


def get_current_user_id(request: Request) -> str:
    """The authenticated user id forwarded by the identity provider."""
    header = get_settings().user_id_header
    user_id = (request.headers.get(header) or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail=f"Missing {header} header")
    return user_id


def get_completion_coordinator() -> CompletionCoordinator:
    return CompletionCoordinator()


def get_dashboard_service() -> DashboardService:
    return DashboardService()


def get_quiz_sequencer() -> QuizAttemptSequencer:
    return QuizAttemptSequencer()


def get_reflection_store() -> ReflectionStore:
    return ReflectionStore()
