"""
Catalog loader for JSON catalog documents.

Loads a topic tree into the catalog tables, merging by id so the same file can
be loaded repeatedly. Only the document shape is checked here; quiz content is
judged when answers are submitted.

Document layout:
    {
        "topics": [
            {
                "id": "networking", "slug": "networking", "sort_order": 0,
                "unlock_policy": "free",
                "modules": [
                    {
                        "id": "net-1", "sort_order": 0, "unlock_policy": "sequential",
                        "pages": [
                            {"id": "net-1-p1", "sort_order": 0, "xp_value": 10,
                             "items": [{"id": "q1", "kind": "quiz", "payload": {...}}]}
                        ]
                    }
                ]
            }
        ]
    }
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from progression.db.models import ContentItem, Module, Page, Topic

PolicyName = Literal["free", "xp_threshold", "prerequisite", "sequential"]
ContentKind = Literal["scene", "takeaway", "code", "quiz", "concept"]


class ContentItemSpec(BaseModel):
    id: str
    kind: ContentKind
    sort_order: int = 0
    payload: dict[str, Any] = Field(default_factory=dict)


class PageSpec(BaseModel):
    id: str
    title: str = ""
    sort_order: int = 0
    xp_value: int = Field(0, ge=0)
    items: list[ContentItemSpec] = Field(default_factory=list)


class ModuleSpec(BaseModel):
    id: str
    title: str = ""
    sort_order: int = 0
    unlock_policy: PolicyName = "free"
    unlock_value: int | None = None
    prerequisite_module_id: str | None = None
    pages: list[PageSpec] = Field(default_factory=list)


class TopicSpec(BaseModel):
    id: str
    slug: str
    title: str = ""
    description: str | None = None
    sort_order: int = 0
    unlock_policy: PolicyName = "free"
    unlock_value: int | None = None
    prerequisite_topic_id: str | None = None
    modules: list[ModuleSpec] = Field(default_factory=list)


class CatalogSpec(BaseModel):
    topics: list[TopicSpec] = Field(default_factory=list)


class CatalogLoader:
    """Write a catalog document into the database."""

    def __init__(self, session: Session):
        self.session = session

    def load_file(self, path: Path | str) -> dict[str, int]:
        """Load a catalog JSON file. Returns counts per entity."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Catalog file not found: {path}")
        data = json.loads(path.read_text(encoding="utf-8"))
        logger.info(f"Loading catalog from {path}")
        return self.load(data)

    def load(self, data: dict[str, Any] | CatalogSpec) -> dict[str, int]:
        """Load a parsed catalog document. Returns counts per entity."""
        catalog = data if isinstance(data, CatalogSpec) else CatalogSpec.model_validate(data)
        counts = {"topics": 0, "modules": 0, "pages": 0, "items": 0}

        # Nodes first, self-references after, so prerequisites may point forward
        for topic in catalog.topics:
            self.session.merge(
                Topic(
                    id=topic.id,
                    slug=topic.slug,
                    title=topic.title,
                    description=topic.description,
                    sort_order=topic.sort_order,
                    unlock_policy=topic.unlock_policy,
                    unlock_value=topic.unlock_value,
                )
            )
            counts["topics"] += 1
            for module in topic.modules:
                self.session.merge(
                    Module(
                        id=module.id,
                        topic_id=topic.id,
                        title=module.title,
                        sort_order=module.sort_order,
                        unlock_policy=module.unlock_policy,
                        unlock_value=module.unlock_value,
                    )
                )
                counts["modules"] += 1
                for page in module.pages:
                    self.session.merge(
                        Page(
                            id=page.id,
                            module_id=module.id,
                            title=page.title,
                            sort_order=page.sort_order,
                            xp_value=page.xp_value,
                        )
                    )
                    counts["pages"] += 1
                    for item in page.items:
                        self.session.merge(
                            ContentItem(
                                id=item.id,
                                page_id=page.id,
                                kind=item.kind,
                                sort_order=item.sort_order,
                                payload=item.payload,
                            )
                        )
                        counts["items"] += 1
        self.session.flush()

        for topic in catalog.topics:
            self.session.get(Topic, topic.id).prerequisite_topic_id = topic.prerequisite_topic_id
            for module in topic.modules:
                self.session.get(Module, module.id).prerequisite_module_id = (
                    module.prerequisite_module_id
                )
        self.session.flush()

        logger.info(
            f"Catalog loaded: {counts['topics']} topics, {counts['modules']} modules, "
            f"{counts['pages']} pages, {counts['items']} items"
        )
        return counts
