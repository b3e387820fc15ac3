"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
Integration tests run against a throwaway SQLite file per test.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (use a database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(autouse=True)
def setup_logging():
    """Keep loguru quiet unless something goes wrong."""
    from loguru import logger

    logger.remove()
    logger.add(sys.stderr, level="WARNING")
    yield


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def sample_catalog():
    """
    A two-topic catalog exercising every unlock policy.

    basics (free, sort 0)
      m-intro   sort 0 sequential   p-intro-1 (15 XP), p-intro-2 (10 XP)
      m-next    sort 1 sequential   p-next-1 (20 XP)
      m-bonus   sort 2 xp>=15       p-bonus-1 (5 XP)
      m-gated   sort 3 prereq m-intro  p-gated-1 (5 XP)
      m-quiz    sort 4 free         p-quiz-1 (10 XP) with quizzes
      m-empty   sort 5 free         no pages
    advanced (sequential, sort 1)
      m-far     sort 0 xp>=1000     p-far-1 (50 XP)
    """
    return {
        "topics": [
            {
                "id": "basics",
                "slug": "basics",
                "title": "Basics",
                "sort_order": 0,
                "unlock_policy": "free",
                "modules": [
                    {
                        "id": "m-intro",
                        "title": "Intro",
                        "sort_order": 0,
                        "unlock_policy": "sequential",
                        "pages": [
                            {"id": "p-intro-1", "sort_order": 0, "xp_value": 15},
                            {"id": "p-intro-2", "sort_order": 1, "xp_value": 10},
                        ],
                    },
                    {
                        "id": "m-next",
                        "title": "Next",
                        "sort_order": 1,
                        "unlock_policy": "sequential",
                        "pages": [{"id": "p-next-1", "sort_order": 0, "xp_value": 20}],
                    },
                    {
                        "id": "m-bonus",
                        "title": "Bonus",
                        "sort_order": 2,
                        "unlock_policy": "xp_threshold",
                        "unlock_value": 15,
                        "pages": [{"id": "p-bonus-1", "sort_order": 0, "xp_value": 5}],
                    },
                    {
                        "id": "m-gated",
                        "title": "Gated",
                        "sort_order": 3,
                        "unlock_policy": "prerequisite",
                        "prerequisite_module_id": "m-intro",
                        "pages": [{"id": "p-gated-1", "sort_order": 0, "xp_value": 5}],
                    },
                    {
                        "id": "m-quiz",
                        "title": "Quiz",
                        "sort_order": 4,
                        "unlock_policy": "free",
                        "pages": [
                            {
                                "id": "p-quiz-1",
                                "sort_order": 0,
                                "xp_value": 10,
                                "items": [
                                    {
                                        "id": "scene-1",
                                        "kind": "scene",
                                        "sort_order": 0,
                                        "payload": {"text": "Packets travel."},
                                    },
                                    {
                                        "id": "quiz-1",
                                        "kind": "quiz",
                                        "sort_order": 1,
                                        "payload": {
                                            "question": "Which layer routes packets?",
                                            "options": [
                                                {"id": "a", "text": "Network", "correct": True},
                                                {"id": "b", "text": "Physical"},
                                            ],
                                            "explanation": "Routing is a layer 3 job.",
                                        },
                                    },
                                    {
                                        "id": "quiz-no-answer",
                                        "kind": "quiz",
                                        "sort_order": 2,
                                        "payload": {
                                            "options": [{"id": "a"}, {"id": "b"}],
                                        },
                                    },
                                    {
                                        "id": "quiz-one-option",
                                        "kind": "quiz",
                                        "sort_order": 3,
                                        "payload": {
                                            "options": [{"id": "a", "correct": True}],
                                        },
                                    },
                                ],
                            }
                        ],
                    },
                    {
                        "id": "m-empty",
                        "title": "Empty",
                        "sort_order": 5,
                        "unlock_policy": "free",
                    },
                ],
            },
            {
                "id": "advanced",
                "slug": "advanced",
                "title": "Advanced",
                "sort_order": 1,
                "unlock_policy": "sequential",
                "modules": [
                    {
                        "id": "m-far",
                        "title": "Far",
                        "sort_order": 0,
                        "unlock_policy": "xp_threshold",
                        "unlock_value": 1000,
                        "pages": [{"id": "p-far-1", "sort_order": 0, "xp_value": 50}],
                    }
                ],
            },
        ]
    }


@pytest.fixture
def database(tmp_path):
    """Point the engine at a fresh SQLite file and create the schema."""
    from progression.db.database import configure_database, get_engine, init_db

    configure_database(f"sqlite:///{tmp_path / 'progression.db'}")
    init_db()
    yield get_engine()
    get_engine().dispose()


@pytest.fixture
def catalog(database, sample_catalog):
    """Database loaded with the sample catalog."""
    from progression.catalog import CatalogLoader
    from progression.db.database import session_scope

    with session_scope() as session:
        CatalogLoader(session).load(sample_catalog)
    return sample_catalog


@pytest.fixture
def coordinator():
    from progression.services import CompletionCoordinator

    return CompletionCoordinator()


@pytest.fixture
def dashboard():
    from progression.services import DashboardService

    return DashboardService()


@pytest.fixture
def sequencer():
    from progression.services import QuizAttemptSequencer

    return QuizAttemptSequencer()


@pytest.fixture
def reflections():
    from progression.services import ReflectionStore

    return ReflectionStore()
