"""API routers for the progression engine."""

from progression.api.routers import (
    progress_router,
    quiz_router,
    reflection_router,
)

__all__ = [
    "progress_router",
    "quiz_router",
    "reflection_router",
]
