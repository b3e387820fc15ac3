"""
Error taxonomy for the progression engine.

- NotFoundError: a referenced page, module, topic or quiz does not exist
- ContentError: catalog data violates the quiz shape (authoring defect)
- ConcurrencyConflict: a transaction kept conflicting after all retries

Conflicts are normally retried inside the transaction helper and never reach
callers; the exception only escapes once retries are exhausted.
"""

from __future__ import annotations


class ProgressionError(Exception):
    """Base class for progression engine errors."""


class NotFoundError(ProgressionError):
    """Raised when a referenced catalog node does not exist."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class ContentError(ProgressionError):
    """Raised when quiz content is malformed."""

    def __init__(self, content_id: str, reason: str):
        self.content_id = content_id
        self.reason = reason
        super().__init__(f"Invalid content {content_id}: {reason}")


class ConcurrencyConflict(ProgressionError):
    """Raised when a transaction could not be applied after retrying."""

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(f"{operation} conflicted {attempts} times; giving up")
