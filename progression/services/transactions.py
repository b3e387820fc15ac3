"""
Transaction helper with conflict retry.

Every mutating operation runs its whole read-check-write inside one database
transaction. When the database reports a conflict (unique violation from a
lost race, serialization failure, deadlock, lock timeout) the transaction is
rolled back and the operation re-run from scratch. Callers only see
ConcurrencyConflict once the configured attempts are used up.
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable
from typing import TypeVar

from loguru import logger
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from config import get_settings
from progression.core.errors import ConcurrencyConflict
from progression.db.database import session_scope

T = TypeVar("T")

# unique_violation, serialization_failure, deadlock_detected, lock_not_available
_PG_CONFLICT_CODES = {"23505", "40001", "40P01", "55P03"}

_CONFLICT_MESSAGES = (
    "database is locked",
    "database table is locked",
    "deadlock",
    "could not serialize",
    "unique constraint",
    "duplicate key",
)


def is_conflict(exc: DBAPIError) -> bool:
    """Whether a database error means "another transaction got there first"."""
    pgcode = getattr(exc.orig, "pgcode", None)
    if pgcode is not None:
        return pgcode in _PG_CONFLICT_CODES
    message = str(exc.orig).lower()
    if isinstance(exc, IntegrityError):
        return "unique" in message or "duplicate" in message
    return any(marker in message for marker in _CONFLICT_MESSAGES)


def run_in_transaction(
    operation: str,
    work: Callable[[Session], T],
    max_retries: int | None = None,
) -> T:
    """
    Run `work` in its own transaction, retrying on conflicts.

    Args:
        operation: Name used in log lines and in ConcurrencyConflict
        work: Callable receiving the session; must be safe to re-run
        max_retries: Attempts before giving up (defaults to settings)

    Returns:
        Whatever `work` returns from the committed attempt
    """
    config = get_settings().get_transaction_config()
    attempts = max_retries or config["max_retries"]
    backoff_ms = config["backoff_ms"]

    last_error: DBAPIError | None = None
    for attempt in range(1, attempts + 1):
        try:
            with session_scope(write=True) as session:
                return work(session)
        except DBAPIError as exc:
            if not is_conflict(exc):
                raise
            last_error = exc
            logger.warning(f"{operation}: conflict on attempt {attempt}/{attempts}: {exc.orig}")
            if attempt < attempts and backoff_ms:
                time.sleep(backoff_ms * attempt * random.uniform(0.5, 1.5) / 1000)

    raise ConcurrencyConflict(operation, attempts) from last_error
