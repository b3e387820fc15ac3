"""Core utilities shared across the progression engine."""

from progression.core.errors import (
    ConcurrencyConflict,
    ContentError,
    NotFoundError,
    ProgressionError,
)

__all__ = [
    "ProgressionError",
    "NotFoundError",
    "ContentError",
    "ConcurrencyConflict",
]
