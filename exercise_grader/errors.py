"""Engine-level errors surfaced to callers.

Judge failures live in ``exercise_grader.judge.models``; they are recovered
inside a run and never escape it.
"""
from typing import List, Optional


class GradingEngineError(Exception):
    """Base class for every error the engine raises to its caller."""


class ExerciseValidationError(GradingEngineError):
    """Raised when an exercise definition is malformed."""

    def __init__(self, errors: List[str], exercise_id: Optional[str] = None):
        self.errors = list(errors)
        self.exercise_id = exercise_id
        prefix = f"Exercise '{exercise_id}' is invalid" if exercise_id else "Exercise is invalid"
        super().__init__(prefix + ":\n  " + "\n  ".join(self.errors))


class FeatureDisabled(GradingEngineError):
    """Raised when code execution is requested on an exercise that forbids it."""


class SubmissionNotEvaluated(GradingEngineError):
    """Raised when submitting code that no run has produced results for."""


class SubmissionLocked(GradingEngineError):
    """Raised on an illegal status transition; the submission is left unchanged."""


class SubmissionBusy(GradingEngineError):
    """Raised when a run or submit is already in flight for the same submission."""


class RunCancelled(GradingEngineError):
    """Raised when the caller abandons a run before its results were joined."""


class HintNotAvailable(GradingEngineError):
    """Raised when revealing an unknown hint or one that is still locked."""


class ReadOnlyMode(GradingEngineError):
    """Raised when a mutation is attempted in read-only review mode."""
