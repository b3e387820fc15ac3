"""
Integration tests for quiz answer judging and attempt numbering.
"""
import pytest

from progression.core.errors import ContentError, NotFoundError
from progression.db.database import session_scope
from progression.db.models import QuizAttemptCounter


class TestSubmitAnswer:
    """Tests for QuizAttemptSequencer.submit_answer."""

    def test_wrong_answer_then_right_answer(self, catalog, sequencer):
        first = sequencer.submit_answer("alice", "p-quiz-1", "quiz-1", "b")

        assert first.is_correct is False
        assert first.correct_option_id == "a"
        assert first.explanation == "Routing is a layer 3 job."
        assert first.attempt_number == 1

        second = sequencer.submit_answer("alice", "p-quiz-1", "quiz-1", "a")

        assert second.is_correct is True
        assert second.attempt_number == 2

    def test_attempt_numbers_are_per_learner(self, catalog, sequencer):
        sequencer.submit_answer("alice", "p-quiz-1", "quiz-1", "a")
        sequencer.submit_answer("alice", "p-quiz-1", "quiz-1", "a")
        result = sequencer.submit_answer("bob", "p-quiz-1", "quiz-1", "a")

        assert result.attempt_number == 1

    def test_unknown_option_recorded_as_incorrect(self, catalog, sequencer):
        result = sequencer.submit_answer("alice", "p-quiz-1", "quiz-1", "zzz")

        assert result.is_correct is False
        assert result.attempt_number == 1
        assert sequencer.list_attempts("alice", "quiz-1")[0].selected_option_id == "zzz"

    def test_quiz_without_correct_option(self, catalog, sequencer):
        with pytest.raises(ContentError) as excinfo:
            sequencer.submit_answer("alice", "p-quiz-1", "quiz-no-answer", "a")

        assert excinfo.value.content_id == "quiz-no-answer"
        assert sequencer.list_attempts("alice", "quiz-no-answer") == []

    def test_quiz_with_one_option(self, catalog, sequencer):
        with pytest.raises(ContentError):
            sequencer.submit_answer("alice", "p-quiz-1", "quiz-one-option", "a")

    def test_non_quiz_item(self, catalog, sequencer):
        with pytest.raises(ContentError):
            sequencer.submit_answer("alice", "p-quiz-1", "scene-1", "a")

    def test_quiz_on_other_page(self, catalog, sequencer):
        with pytest.raises(ContentError):
            sequencer.submit_answer("alice", "p-intro-1", "quiz-1", "a")

    def test_unknown_quiz(self, catalog, sequencer):
        with pytest.raises(NotFoundError) as excinfo:
            sequencer.submit_answer("alice", "p-quiz-1", "missing", "a")

        assert excinfo.value.entity == "quiz"

    def test_failed_submission_does_not_consume_a_number(self, catalog, sequencer):
        with pytest.raises(ContentError):
            sequencer.submit_answer("alice", "p-intro-1", "quiz-1", "a")

        assert sequencer.submit_answer("alice", "p-quiz-1", "quiz-1", "a").attempt_number == 1


class TestListAttempts:
    def test_oldest_first(self, catalog, sequencer):
        for option in ("b", "zzz", "a"):
            sequencer.submit_answer("alice", "p-quiz-1", "quiz-1", option)

        attempts = sequencer.list_attempts("alice", "quiz-1")

        assert [a.attempt_number for a in attempts] == [1, 2, 3]
        assert [a.selected_option_id for a in attempts] == ["b", "zzz", "a"]
        assert [a.is_correct for a in attempts] == [False, False, True]

    def test_empty_for_new_learner(self, catalog, sequencer):
        assert sequencer.list_attempts("nobody", "quiz-1") == []


class TestAttemptCounter:
    """The per-learner counter row that numbering locks."""

    def test_counter_tracks_last_number(self, catalog, sequencer):
        for option in ("b", "a", "a"):
            sequencer.submit_answer("alice", "p-quiz-1", "quiz-1", option)

        with session_scope() as session:
            counter = session.get(QuizAttemptCounter, ("alice", "quiz-1"))
            assert counter.last_attempt_number == 3
            assert session.get(QuizAttemptCounter, ("bob", "quiz-1")) is None

    def test_rejected_submission_creates_no_counter(self, catalog, sequencer):
        with pytest.raises(ContentError):
            sequencer.submit_answer("alice", "p-quiz-1", "quiz-no-answer", "a")

        with session_scope() as session:
            assert session.get(QuizAttemptCounter, ("alice", "quiz-no-answer")) is None
