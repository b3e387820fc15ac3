"""
Integration tests for page completion and XP bookkeeping.
"""
import pytest
from sqlalchemy import func, select

from progression.core.errors import NotFoundError
from progression.db.database import session_scope, validate_xp_totals
from progression.db.models import UserProgress, UserXPTotal


def progress_rows(user_id):
    with session_scope() as session:
        return list(
            session.scalars(select(UserProgress).where(UserProgress.user_id == user_id))
        )


class TestCompletePage:
    """Tests for CompletionCoordinator.complete_page."""

    def test_first_completion_awards_page_xp(self, catalog, coordinator):
        result = coordinator.complete_page("alice", "p-intro-1")

        assert result.awarded is True
        assert result.xp_earned == 15
        assert result.new_total_xp == 15

    def test_reaching_threshold_reports_untouched_module(self, catalog, coordinator):
        result = coordinator.complete_page("alice", "p-intro-1")

        assert result.unlocked_module_ids == ["m-bonus"]

    def test_below_threshold_reports_nothing(self, catalog, coordinator):
        result = coordinator.complete_page("alice", "p-intro-2")

        assert result.new_total_xp == 10
        assert result.unlocked_module_ids == []

    def test_repeat_completion_is_idempotent(self, catalog, coordinator):
        first = coordinator.complete_page("alice", "p-intro-1")
        second = coordinator.complete_page("alice", "p-intro-1")

        assert second.awarded is False
        assert second.xp_earned == first.xp_earned == 15
        assert second.new_total_xp == 15
        assert second.unlocked_module_ids == first.unlocked_module_ids

        rows = progress_rows("alice")
        assert len(rows) == 1
        assert rows[0].status == "completed"

    def test_touched_threshold_module_not_reported(self, catalog, coordinator):
        coordinator.start_page("alice", "p-bonus-1")
        result = coordinator.complete_page("alice", "p-intro-1")

        assert result.unlocked_module_ids == []

    def test_xp_accumulates_across_pages(self, catalog, coordinator):
        coordinator.complete_page("alice", "p-intro-1")
        result = coordinator.complete_page("alice", "p-intro-2")

        assert result.new_total_xp == 25

    def test_learners_are_independent(self, catalog, coordinator):
        coordinator.complete_page("alice", "p-intro-1")
        result = coordinator.complete_page("bob", "p-intro-1")

        assert result.awarded is True
        assert result.new_total_xp == 15

    def test_completing_started_page_awards_xp(self, catalog, coordinator):
        coordinator.start_page("alice", "p-next-1")
        result = coordinator.complete_page("alice", "p-next-1")

        assert result.awarded is True
        assert result.xp_earned == 20
        row = progress_rows("alice")[0]
        assert row.status == "completed"
        assert row.started_at is not None
        assert row.completed_at is not None

    def test_unknown_page_raises_not_found(self, catalog, coordinator):
        with pytest.raises(NotFoundError) as excinfo:
            coordinator.complete_page("alice", "no-such-page")

        assert excinfo.value.entity == "page"
        assert progress_rows("alice") == []

    def test_cached_total_matches_progress_rows(self, catalog, coordinator, dashboard):
        for page_id in ("p-intro-1", "p-intro-2", "p-intro-1", "p-quiz-1"):
            coordinator.complete_page("alice", page_id)

        assert dashboard.get_cached_total_xp("alice") == 35
        assert dashboard.get_user_total_xp("alice") == 35
        assert validate_xp_totals() == {"valid": True, "mismatches": []}

    def test_single_total_row_per_learner(self, catalog, coordinator):
        coordinator.complete_page("alice", "p-intro-1")
        coordinator.complete_page("alice", "p-intro-2")

        with session_scope() as session:
            count = session.scalar(
                select(func.count()).select_from(UserXPTotal).where(UserXPTotal.user_id == "alice")
            )
        assert count == 1


class TestStartPage:
    """Tests for CompletionCoordinator.start_page."""

    def test_start_creates_in_progress_row(self, catalog, coordinator):
        progress = coordinator.start_page("alice", "p-intro-1")

        assert progress.status == "in_progress"
        assert progress.xp_earned == 0
        assert progress.started_at is not None

    def test_start_never_downgrades_completed(self, catalog, coordinator):
        coordinator.complete_page("alice", "p-intro-1")
        progress = coordinator.start_page("alice", "p-intro-1")

        assert progress.status == "completed"
        assert progress.xp_earned == 15

    def test_start_twice_keeps_one_row(self, catalog, coordinator):
        coordinator.start_page("alice", "p-intro-1")
        coordinator.start_page("alice", "p-intro-1")

        assert len(progress_rows("alice")) == 1

    def test_start_does_not_touch_xp(self, catalog, coordinator, dashboard):
        coordinator.start_page("alice", "p-intro-1")

        assert dashboard.get_user_total_xp("alice") == 0

    def test_start_unknown_page_raises(self, catalog, coordinator):
        with pytest.raises(NotFoundError):
            coordinator.start_page("alice", "missing")


class TestDriftDetection:
    def test_tampered_total_is_reported(self, catalog, coordinator):
        coordinator.complete_page("alice", "p-intro-1")
        with session_scope() as session:
            session.get(UserXPTotal, "alice").total_xp = 999

        report = validate_xp_totals()

        assert report["valid"] is False
        assert report["mismatches"] == [{"user_id": "alice", "cached": 999, "actual": 15}]

    def test_repeat_completion_leaves_stored_total_untouched(self, catalog, coordinator):
        coordinator.complete_page("alice", "p-intro-1")
        with session_scope() as session:
            total = session.get(UserXPTotal, "alice")
            total.total_xp = 999
        with session_scope() as session:
            stamped = session.get(UserXPTotal, "alice").updated_at

        result = coordinator.complete_page("alice", "p-intro-1")

        assert result.awarded is False
        assert result.new_total_xp == 999
        with session_scope() as session:
            total = session.get(UserXPTotal, "alice")
            assert total.total_xp == 999
            assert total.updated_at == stamped
