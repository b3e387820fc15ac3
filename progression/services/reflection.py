"""Reflection store: one free-text note per (user, page), overwritten on save."""

from __future__ import annotations

from datetime import datetime, timezone

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from progression.catalog.repository import CatalogRepository
from progression.core.errors import NotFoundError
from progression.db.database import session_scope
from progression.db.models import Reflection
from progression.services.transactions import run_in_transaction


def count_words(text: str) -> int:
    """Number of whitespace-delimited tokens after trimming."""
    return len(text.strip().split()) if text else 0


class ReflectionStore:
    """Owns every write to reflections."""

    def save_reflection(self, user_id: str, page_id: str, text: str) -> Reflection:
        """
        Create or overwrite the learner's reflection on a page.

        Raises:
            NotFoundError: the page does not exist
        """
        return run_in_transaction(
            "save_reflection", lambda session: self._save(session, user_id, page_id, text)
        )

    def get_reflection(self, user_id: str, page_id: str) -> Reflection:
        """
        Fetch the learner's reflection on a page.

        Raises:
            NotFoundError: no reflection saved for this page
        """
        with session_scope() as session:
            reflection = self._find(session, user_id, page_id)
            if reflection is None:
                raise NotFoundError("reflection", f"{user_id}/{page_id}")
            return reflection

    def _save(self, session: Session, user_id: str, page_id: str, text: str) -> Reflection:
        CatalogRepository(session).require_page(page_id)
        now = datetime.now(timezone.utc)
        word_count = count_words(text)

        reflection = self._find(session, user_id, page_id, for_update=True)
        if reflection is None:
            reflection = Reflection(
                user_id=user_id,
                page_id=page_id,
                text=text,
                word_count=word_count,
                created_at=now,
                updated_at=now,
            )
            session.add(reflection)
        else:
            reflection.text = text
            reflection.word_count = word_count
            reflection.updated_at = now
        session.flush()

        logger.info(f"{user_id} saved reflection on page {page_id} ({word_count} words)")
        return reflection

    @staticmethod
    def _find(
        session: Session, user_id: str, page_id: str, for_update: bool = False
    ) -> Reflection | None:
        stmt = select(Reflection).where(
            Reflection.user_id == user_id, Reflection.page_id == page_id
        )
        if for_update:
            stmt = stmt.with_for_update()
        return session.scalars(stmt).first()
