# SQLAlchemy models
from .base import Base
from .catalog import (
    CONTENT_KINDS,
    UNLOCK_POLICIES,
    ContentItem,
    Module,
    Page,
    Topic,
)
from .progress import (
    PROGRESS_STATUSES,
    QuizAttempt,
    QuizAttemptCounter,
    Reflection,
    UserProgress,
    UserXPTotal,
)

__all__ = [
    # Base
    "Base",
    # Catalog
    "Topic",
    "Module",
    "Page",
    "ContentItem",
    "UNLOCK_POLICIES",
    "CONTENT_KINDS",
    # Progress
    "UserProgress",
    "UserXPTotal",
    "QuizAttempt",
    "QuizAttemptCounter",
    "Reflection",
    "PROGRESS_STATUSES",
]
