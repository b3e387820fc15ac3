"""
Read-only access to the content catalog.

Every lookup returns ORM rows or plain ids in stable sort order. Nothing here
writes; catalog edits go through the loader.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from progression.core.errors import NotFoundError
from progression.db.models import ContentItem, Module, Page, Topic
from progression.unlock import UnlockNode, parse_policy


class CatalogRepository:
    """Catalog lookups bound to a session."""

    def __init__(self, session: Session):
        self.session = session

    # ========================================
    # Node lookups
    # ========================================

    def get_topic(self, topic_id: str) -> Topic | None:
        return self.session.get(Topic, topic_id)

    def get_module(self, module_id: str) -> Module | None:
        return self.session.get(Module, module_id)

    def get_page(self, page_id: str) -> Page | None:
        return self.session.get(Page, page_id)

    def get_content_item(self, content_id: str) -> ContentItem | None:
        return self.session.get(ContentItem, content_id)

    def require_page(self, page_id: str) -> Page:
        """Get a page or raise NotFoundError."""
        page = self.get_page(page_id)
        if page is None:
            raise NotFoundError("page", page_id)
        return page

    def require_topic(self, topic_id: str) -> Topic:
        """Get a topic or raise NotFoundError."""
        topic = self.get_topic(topic_id)
        if topic is None:
            raise NotFoundError("topic", topic_id)
        return topic

    # ========================================
    # Children
    # ========================================

    def list_topics(self) -> list[Topic]:
        stmt = select(Topic).order_by(Topic.sort_order, Topic.id)
        return list(self.session.scalars(stmt))

    def modules_for_topic(self, topic_id: str) -> list[Module]:
        stmt = (
            select(Module)
            .where(Module.topic_id == topic_id)
            .order_by(Module.sort_order, Module.id)
        )
        return list(self.session.scalars(stmt))

    def pages_for_module(self, module_id: str) -> list[Page]:
        stmt = select(Page).where(Page.module_id == module_id).order_by(Page.sort_order, Page.id)
        return list(self.session.scalars(stmt))

    def page_ids_for_module(self, module_id: str) -> frozenset[str]:
        stmt = select(Page.id).where(Page.module_id == module_id)
        return frozenset(self.session.scalars(stmt))

    def page_ids_for_topic(self, topic_id: str) -> frozenset[str]:
        stmt = select(Page.id).join(Module, Module.id == Page.module_id).where(
            Module.topic_id == topic_id
        )
        return frozenset(self.session.scalars(stmt))

    # ========================================
    # Siblings
    # ========================================

    def previous_module(self, module: Module) -> Module | None:
        """The module at sort_order - 1 in the same topic, if any."""
        stmt = (
            select(Module)
            .where(Module.topic_id == module.topic_id)
            .where(Module.sort_order == module.sort_order - 1)
            .order_by(Module.id)
            .limit(1)
        )
        return self.session.scalars(stmt).first()

    def previous_topic(self, topic: Topic) -> Topic | None:
        """The topic at sort_order - 1, if any."""
        stmt = (
            select(Topic)
            .where(Topic.sort_order == topic.sort_order - 1)
            .order_by(Topic.id)
            .limit(1)
        )
        return self.session.scalars(stmt).first()

    # ========================================
    # Resolver adapters
    # ========================================

    def module_node(self, module: Module) -> UnlockNode:
        """Build the resolver view of a module."""
        previous = self.previous_module(module)
        return UnlockNode(
            id=module.id,
            policy=parse_policy(
                module.unlock_policy, module.unlock_value, module.prerequisite_module_id
            ),
            previous_sibling_id=previous.id if previous else None,
        )

    def topic_node(self, topic: Topic) -> UnlockNode:
        """Build the resolver view of a topic."""
        previous = self.previous_topic(topic)
        return UnlockNode(
            id=topic.id,
            policy=parse_policy(
                topic.unlock_policy, topic.unlock_value, topic.prerequisite_topic_id
            ),
            previous_sibling_id=previous.id if previous else None,
        )
