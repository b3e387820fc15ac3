"""
Read-only progress queries: unlock checks and module/XP dashboards.

None of these lock anything; they read whatever the progress store holds at
the time and may trail a completion that is still committing.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy import select, text
from sqlalchemy.orm import Session

from progression.catalog.repository import CatalogRepository
from progression.db.database import session_scope
from progression.db.models import Module, Topic, UserProgress, UserXPTotal
from progression.db.queries import MODULE_PROGRESS, SUM_COMPLETED_XP
from progression.unlock import UnlockNode, UserSnapshot, dependency_ids, is_unlocked


@dataclass
class ModuleProgress:
    """Dashboard numbers for one module."""

    module_id: str
    total_pages: int
    completed_pages: int
    # None for a module without pages
    percent: float | None
    xp_available: int
    xp_earned: int
    is_complete: bool


@dataclass
class ModuleUnlockState:
    """A module's position, lock state and progress within its topic."""

    module_id: str
    title: str
    sort_order: int
    unlock_policy: str
    is_unlocked: bool
    progress: ModuleProgress


def completed_page_ids(session: Session, user_id: str) -> frozenset[str]:
    stmt = select(UserProgress.page_id).where(
        UserProgress.user_id == user_id, UserProgress.status == "completed"
    )
    return frozenset(session.scalars(stmt))


def sum_completed_xp(session: Session, user_id: str) -> int:
    return int(session.execute(text(SUM_COMPLETED_XP), {"user_id": user_id}).scalar_one())


def build_snapshot(
    session: Session,
    user_id: str,
    node: UnlockNode,
    exists: Callable[[str], bool],
    page_ids_for: Callable[[str], frozenset[str]],
) -> UserSnapshot:
    """
    Collect the learner history `node` depends on.

    Dependencies missing from the catalog are left out of the snapshot, so
    the resolver treats them as never completed.
    """
    pages_by_node = {
        node_id: page_ids_for(node_id) for node_id in dependency_ids(node) if exists(node_id)
    }
    return UserSnapshot(
        total_xp=sum_completed_xp(session, user_id),
        completed_page_ids=completed_page_ids(session, user_id),
        pages_by_node=pages_by_node,
    )


def _module_unlocked(session: Session, catalog: CatalogRepository, user_id: str, module: Module) -> bool:
    node = catalog.module_node(module)
    snapshot = build_snapshot(
        session,
        user_id,
        node,
        exists=lambda node_id: catalog.get_module(node_id) is not None,
        page_ids_for=catalog.page_ids_for_module,
    )
    return is_unlocked(node, snapshot)


def _topic_unlocked(session: Session, catalog: CatalogRepository, user_id: str, topic: Topic) -> bool:
    node = catalog.topic_node(topic)
    snapshot = build_snapshot(
        session,
        user_id,
        node,
        exists=lambda node_id: catalog.get_topic(node_id) is not None,
        page_ids_for=catalog.page_ids_for_topic,
    )
    return is_unlocked(node, snapshot)


def _module_progress(session: Session, user_id: str, module_id: str) -> ModuleProgress:
    row = session.execute(
        text(MODULE_PROGRESS), {"user_id": user_id, "module_id": module_id}
    ).one()
    total = int(row.total_pages)
    completed = int(row.completed_pages)
    return ModuleProgress(
        module_id=module_id,
        total_pages=total,
        completed_pages=completed,
        percent=round(completed / total * 100, 1) if total else None,
        xp_available=int(row.xp_available),
        xp_earned=int(row.xp_earned),
        is_complete=total > 0 and completed == total,
    )


class DashboardService:
    """Unlock checks and progress summaries for a learner."""

    def is_module_unlocked(self, user_id: str, module_id: str) -> bool:
        """Unknown modules report locked."""
        with session_scope() as session:
            catalog = CatalogRepository(session)
            module = catalog.get_module(module_id)
            if module is None:
                return False
            return _module_unlocked(session, catalog, user_id, module)

    def is_topic_unlocked(self, user_id: str, topic_id: str) -> bool:
        """Unknown topics report locked."""
        with session_scope() as session:
            catalog = CatalogRepository(session)
            topic = catalog.get_topic(topic_id)
            if topic is None:
                return False
            return _topic_unlocked(session, catalog, user_id, topic)

    def get_module_progress(self, user_id: str, module_id: str) -> ModuleProgress:
        """Page and XP counts for a module. Unknown modules read as empty."""
        with session_scope() as session:
            return _module_progress(session, user_id, module_id)

    def get_topic_unlock_states(self, user_id: str, topic_id: str) -> list[ModuleUnlockState]:
        """
        Every module of a topic in sort order with its lock state and progress.

        Raises:
            NotFoundError: the topic does not exist
        """
        with session_scope() as session:
            catalog = CatalogRepository(session)
            catalog.require_topic(topic_id)
            return [
                ModuleUnlockState(
                    module_id=module.id,
                    title=module.title,
                    sort_order=module.sort_order,
                    unlock_policy=module.unlock_policy,
                    is_unlocked=_module_unlocked(session, catalog, user_id, module),
                    progress=_module_progress(session, user_id, module.id),
                )
                for module in catalog.modules_for_topic(topic_id)
            ]

    def get_user_total_xp(self, user_id: str) -> int:
        """XP summed from the learner's completed progress rows."""
        with session_scope() as session:
            return sum_completed_xp(session, user_id)

    def get_cached_total_xp(self, user_id: str) -> int:
        """The stored aggregate; 0 before the learner's first completion."""
        with session_scope() as session:
            total = session.get(UserXPTotal, user_id)
            return total.total_xp if total else 0
