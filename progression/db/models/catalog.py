"""
Content catalog models.

The catalog is an ordered tree that the progression core only reads:

    Topic -> Module -> Page -> ContentItem

Topics and modules carry an unlock policy:
- free: always open
- xp_threshold: open once the learner's total XP reaches unlock_value
- prerequisite: open once every page of the prerequisite node is completed
- sequential: open once every page of the previous sibling is completed

Pages carry the XP awarded on completion. Content items hold the page body;
quiz items hold their options (exactly one marked correct) in ``payload``.
"""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import JSON, CheckConstraint, ForeignKey, Index, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

UNLOCK_POLICIES = ("free", "xp_threshold", "prerequisite", "sequential")
CONTENT_KINDS = ("scene", "takeaway", "code", "quiz", "concept")


def _new_id() -> str:
    return str(uuid4())


class Topic(Base):
    """Root of the content tree."""

    __tablename__ = "topics"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_new_id)
    slug: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    description: Mapped[str | None] = mapped_column(Text)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Unlock policy
    unlock_policy: Mapped[str] = mapped_column(Text, nullable=False, default="free")
    unlock_value: Mapped[int | None] = mapped_column(Integer)
    prerequisite_topic_id: Mapped[str | None] = mapped_column(
        ForeignKey("topics.id", ondelete="SET NULL")
    )

    created_at: Mapped[datetime] = mapped_column(default=func.now())
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    # Relationships
    modules: Mapped[list[Module]] = relationship(
        back_populates="topic", order_by="Module.sort_order", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Topic(slug={self.slug}, policy={self.unlock_policy})>"


class Module(Base):
    """Ordered group of pages within a topic."""

    __tablename__ = "modules"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_new_id)
    topic_id: Mapped[str] = mapped_column(
        ForeignKey("topics.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Unlock policy
    unlock_policy: Mapped[str] = mapped_column(Text, nullable=False, default="free")
    unlock_value: Mapped[int | None] = mapped_column(Integer)
    prerequisite_module_id: Mapped[str | None] = mapped_column(
        ForeignKey("modules.id", ondelete="SET NULL")
    )

    created_at: Mapped[datetime] = mapped_column(default=func.now())
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    # Relationships
    topic: Mapped[Topic] = relationship(back_populates="modules")
    pages: Mapped[list[Page]] = relationship(
        back_populates="module", order_by="Page.sort_order", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("idx_modules_topic_order", "topic_id", "sort_order"),)

    def __repr__(self) -> str:
        return f"<Module(id={self.id}, order={self.sort_order}, policy={self.unlock_policy})>"


class Page(Base):
    """Unit of completion. XP is fixed when the catalog is edited."""

    __tablename__ = "pages"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_new_id)
    module_id: Mapped[str] = mapped_column(
        ForeignKey("modules.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    xp_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(default=func.now())
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    # Relationships
    module: Mapped[Module] = relationship(back_populates="pages")
    items: Mapped[list[ContentItem]] = relationship(
        back_populates="page", order_by="ContentItem.sort_order", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_pages_module_order", "module_id", "sort_order"),
        CheckConstraint("xp_value >= 0", name="xp_value_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Page(id={self.id}, order={self.sort_order}, xp={self.xp_value})>"


class ContentItem(Base):
    """
    A block of page content.

    The payload JSON structure varies by kind. Quiz:
        {
            "question": "Which layer handles routing?",
            "options": [
                {"id": "a", "text": "Network", "correct": true},
                {"id": "b", "text": "Physical"}
            ],
            "explanation": "Routing happens at layer 3."
        }
    """

    __tablename__ = "content_items"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_new_id)
    page_id: Mapped[str] = mapped_column(
        ForeignKey("pages.id", ondelete="CASCADE"), nullable=False
    )
    kind: Mapped[str] = mapped_column(Text, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(default=func.now())

    # Relationships
    page: Mapped[Page] = relationship(back_populates="items")

    __table_args__ = (
        CheckConstraint(f"kind IN {CONTENT_KINDS}", name="content_kind"),
        Index("idx_content_items_page_order", "page_id", "sort_order"),
    )

    def __repr__(self) -> str:
        return f"<ContentItem(id={self.id}, kind={self.kind})>"

    @property
    def is_quiz(self) -> bool:
        return self.kind == "quiz"
