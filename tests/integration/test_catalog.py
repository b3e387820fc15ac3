"""
Integration tests for the catalog loader and repository.
"""
import json

import pytest
from pydantic import ValidationError

from progression.catalog import CatalogLoader, CatalogRepository
from progression.core.errors import NotFoundError
from progression.db.database import session_scope
from progression.unlock import Prerequisite, Sequential, XPThreshold


class TestCatalogLoader:
    """Tests for loading catalog documents."""

    def test_counts(self, database, sample_catalog):
        with session_scope() as session:
            counts = CatalogLoader(session).load(sample_catalog)

        assert counts == {"topics": 2, "modules": 7, "pages": 7, "items": 4}

    def test_reload_merges_by_id(self, catalog, sample_catalog):
        sample_catalog["topics"][0]["modules"][0]["pages"][0]["xp_value"] = 99
        with session_scope() as session:
            CatalogLoader(session).load(sample_catalog)

        with session_scope() as session:
            repo = CatalogRepository(session)
            assert len(repo.list_topics()) == 2
            assert repo.get_page("p-intro-1").xp_value == 99

    def test_forward_prerequisite_reference(self, database):
        document = {
            "topics": [
                {
                    "id": "t",
                    "slug": "t",
                    "modules": [
                        {
                            "id": "m-a",
                            "sort_order": 0,
                            "unlock_policy": "prerequisite",
                            "prerequisite_module_id": "m-b",
                        },
                        {"id": "m-b", "sort_order": 1},
                    ],
                }
            ]
        }
        with session_scope() as session:
            CatalogLoader(session).load(document)

        with session_scope() as session:
            assert CatalogRepository(session).get_module("m-a").prerequisite_module_id == "m-b"

    def test_unknown_policy_rejected(self, database):
        document = {"topics": [{"id": "t", "slug": "t", "unlock_policy": "mastery"}]}

        with pytest.raises(ValidationError):
            with session_scope() as session:
                CatalogLoader(session).load(document)

    def test_negative_xp_rejected(self, database):
        document = {
            "topics": [
                {
                    "id": "t",
                    "slug": "t",
                    "modules": [{"id": "m", "pages": [{"id": "p", "xp_value": -5}]}],
                }
            ]
        }

        with pytest.raises(ValidationError):
            with session_scope() as session:
                CatalogLoader(session).load(document)

    def test_load_file(self, database, sample_catalog, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps(sample_catalog), encoding="utf-8")

        with session_scope() as session:
            counts = CatalogLoader(session).load_file(path)

        assert counts["modules"] == 7

    def test_load_missing_file(self, database, tmp_path):
        with pytest.raises(FileNotFoundError):
            with session_scope() as session:
                CatalogLoader(session).load_file(tmp_path / "missing.json")


class TestCatalogRepository:
    """Tests for ordered lookups and resolver adapters."""

    def test_modules_in_sort_order(self, catalog):
        with session_scope() as session:
            ids = [m.id for m in CatalogRepository(session).modules_for_topic("basics")]

        assert ids == ["m-intro", "m-next", "m-bonus", "m-gated", "m-quiz", "m-empty"]

    def test_page_ids_for_topic(self, catalog):
        with session_scope() as session:
            pages = CatalogRepository(session).page_ids_for_topic("advanced")

        assert pages == frozenset({"p-far-1"})

    def test_require_page_raises(self, catalog):
        with session_scope() as session:
            with pytest.raises(NotFoundError):
                CatalogRepository(session).require_page("missing")

    def test_module_nodes(self, catalog):
        with session_scope() as session:
            repo = CatalogRepository(session)
            intro = repo.module_node(repo.get_module("m-intro"))
            following = repo.module_node(repo.get_module("m-next"))
            bonus = repo.module_node(repo.get_module("m-bonus"))
            gated = repo.module_node(repo.get_module("m-gated"))

        assert intro.policy == Sequential()
        assert intro.previous_sibling_id is None
        assert following.previous_sibling_id == "m-intro"
        assert bonus.policy == XPThreshold(value=15)
        assert gated.policy == Prerequisite(prerequisite_id="m-intro")

    def test_topic_node_previous_sibling(self, catalog):
        with session_scope() as session:
            repo = CatalogRepository(session)
            node = repo.topic_node(repo.get_topic("advanced"))

        assert node.previous_sibling_id == "basics"
