"""Progression services: the operations callers invoke."""

from progression.services.completion import CompletionCoordinator, CompletionResult
from progression.services.dashboard import DashboardService, ModuleProgress, ModuleUnlockState
from progression.services.quiz import QuizAttemptSequencer, SubmissionResult
from progression.services.reflection import ReflectionStore, count_words
from progression.services.transactions import run_in_transaction

__all__ = [
    "CompletionCoordinator",
    "CompletionResult",
    "DashboardService",
    "ModuleProgress",
    "ModuleUnlockState",
    "QuizAttemptSequencer",
    "SubmissionResult",
    "ReflectionStore",
    "count_words",
    "run_in_transaction",
]
