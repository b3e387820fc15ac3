"""
Completion coordinator.

Records page completions, keeps the learner's XP aggregate in step with the
progress rows and reports threshold modules that came within reach.

Flow of complete_page (one transaction, retried on conflict):
1. Fetch the page (NotFoundError if absent)
2. Lock the learner's user_xp_totals row; completions per learner serialize here
3. Move the progress row to completed only if it is not completed already,
   awarding the page's XP exactly once
4. On a new award, recompute the XP total from all completed rows and store
   it; a repeat leaves the stored total untouched
5. Collect XP-threshold modules that are now reachable and untouched

"Untouched" means the learner has no progress row on any page of the module.
Prerequisite and sequential modules that just opened are not reported, nor
are threshold modules the learner already started.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from loguru import logger
from sqlalchemy import select, text, update
from sqlalchemy.orm import Session

from progression.catalog.repository import CatalogRepository
from progression.db.models import UserProgress, UserXPTotal
from progression.db.queries import FIND_UNTOUCHED_THRESHOLD_MODULES, SUM_COMPLETED_XP
from progression.services.transactions import run_in_transaction


@dataclass
class CompletionResult:
    """Outcome of a completion request."""

    xp_earned: int
    new_total_xp: int
    unlocked_module_ids: list[str] = field(default_factory=list)
    # False when the page was already completed and nothing changed
    awarded: bool = True


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def lock_xp_total(session: Session, user_id: str) -> UserXPTotal:
    """
    Fetch the learner's XP aggregate row with a row lock, creating it if needed.

    Two first-ever completions racing to create the row end with one unique
    violation, which the transaction helper retries.
    """
    stmt = select(UserXPTotal).where(UserXPTotal.user_id == user_id).with_for_update()
    total = session.scalars(stmt).first()
    if total is None:
        total = UserXPTotal(user_id=user_id, total_xp=0)
        session.add(total)
        session.flush()
    return total


def recompute_total_xp(session: Session, user_id: str) -> int:
    """Sum xp_earned over the learner's completed rows."""
    session.flush()
    return int(session.execute(text(SUM_COMPLETED_XP), {"user_id": user_id}).scalar_one())


class CompletionCoordinator:
    """Owns every write to user_progress and user_xp_totals."""

    def complete_page(self, user_id: str, page_id: str) -> CompletionResult:
        """
        Mark a page completed for a learner.

        Idempotent: completing an already-completed page returns the XP recorded
        the first time and leaves every row unchanged.

        Raises:
            NotFoundError: the page does not exist
            ConcurrencyConflict: conflicts persisted past the retry budget
        """
        return run_in_transaction(
            "complete_page", lambda session: self._complete_page(session, user_id, page_id)
        )

    def start_page(self, user_id: str, page_id: str) -> UserProgress:
        """
        Mark a page in progress for a learner.

        Never downgrades a completed page and never touches XP.

        Raises:
            NotFoundError: the page does not exist
        """
        return run_in_transaction(
            "start_page", lambda session: self._start_page(session, user_id, page_id)
        )

    # ========================================
    # Transaction bodies
    # ========================================

    def _complete_page(self, session: Session, user_id: str, page_id: str) -> CompletionResult:
        page = CatalogRepository(session).require_page(page_id)
        xp_total = lock_xp_total(session, user_id)

        progress = self._get_progress(session, user_id, page_id, for_update=True)
        now = _utcnow()
        awarded = False

        if progress is None:
            progress = UserProgress(
                user_id=user_id,
                page_id=page_id,
                status="completed",
                xp_earned=page.xp_value,
                started_at=now,
                completed_at=now,
            )
            session.add(progress)
            session.flush()
            awarded = True
        elif not progress.is_completed:
            # Conditional transition: only one writer can move the row to completed
            result = session.execute(
                update(UserProgress)
                .where(UserProgress.id == progress.id)
                .where(UserProgress.status != "completed")
                .values(
                    status="completed",
                    xp_earned=page.xp_value,
                    started_at=progress.started_at or now,
                    completed_at=now,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            awarded = result.rowcount == 1
            session.refresh(progress)

        if awarded:
            xp_earned = page.xp_value
            new_total = recompute_total_xp(session, user_id)
            xp_total.total_xp = new_total
            xp_total.updated_at = now
            session.flush()
        else:
            xp_earned = progress.xp_earned
            new_total = xp_total.total_xp
            logger.debug(f"Page {page_id} already completed by {user_id}; no XP awarded")

        unlocked = [
            row[0]
            for row in session.execute(
                text(FIND_UNTOUCHED_THRESHOLD_MODULES),
                {"user_id": user_id, "total_xp": new_total},
            )
        ]

        if awarded:
            logger.info(
                f"{user_id} completed page {page_id}: +{xp_earned} XP (total {new_total})"
            )
        if unlocked:
            logger.info(f"{user_id} reached XP for modules: {', '.join(unlocked)}")

        return CompletionResult(
            xp_earned=xp_earned,
            new_total_xp=new_total,
            unlocked_module_ids=unlocked,
            awarded=awarded,
        )

    def _start_page(self, session: Session, user_id: str, page_id: str) -> UserProgress:
        CatalogRepository(session).require_page(page_id)
        progress = self._get_progress(session, user_id, page_id, for_update=True)
        now = _utcnow()

        if progress is None:
            progress = UserProgress(
                user_id=user_id,
                page_id=page_id,
                status="in_progress",
                xp_earned=0,
                started_at=now,
            )
            session.add(progress)
            session.flush()
            logger.debug(f"{user_id} started page {page_id}")
        elif progress.status == "not_started":
            progress.status = "in_progress"
            progress.started_at = progress.started_at or now
            progress.updated_at = now
            session.flush()
        return progress

    @staticmethod
    def _get_progress(
        session: Session, user_id: str, page_id: str, for_update: bool = False
    ) -> UserProgress | None:
        stmt = select(UserProgress).where(
            UserProgress.user_id == user_id, UserProgress.page_id == page_id
        )
        if for_update:
            stmt = stmt.with_for_update()
        return session.scalars(stmt).first()
