import logging
import threading
from typing import Any, Dict, Optional, Protocol, Tuple

from exercise_grader.exercises.models import Exercise
from exercise_grader.submissions.models import Submission

logger = logging.getLogger(__name__)


def _preview(val: Any, limit: int = 30) -> str:
    if val is None:
        return "None"
    s = val if isinstance(val, str) else repr(val)
    return (s[:limit] + f"...(len={len(s)})") if len(s) > limit else s


class ExerciseStore(Protocol):
    def load_exercise(self, exercise_id: str) -> Exercise:
        """Return the exercise or raise KeyError."""


class SubmissionStore(Protocol):
    def load_submission(self, exercise_id: str, student_id: str) -> Optional[Submission]:
        """Return the live submission for the pair, or None if there is none yet."""

    def save_submission(self, submission: Submission) -> None:
        ...


class InMemoryExerciseStore:
    def __init__(self, exercises=()):
        self._exercises: Dict[str, Exercise] = {e.id: e for e in exercises}

    def add(self, exercise: Exercise) -> None:
        self._exercises[exercise.id] = exercise

    def load_exercise(self, exercise_id: str) -> Exercise:
        try:
            return self._exercises[exercise_id]
        except KeyError:
            logger.error(f"Exercise with id {exercise_id} does not exist")
            raise KeyError(f"Exercise with id {exercise_id} does not exist")


class InMemorySubmissionStore:
    """Keeps one submission per (exercise, student); hands out copies only."""

    def __init__(self):
        self._submissions: Dict[Tuple[str, str], Submission] = {}
        self._lock = threading.Lock()

    def load_submission(self, exercise_id: str, student_id: str) -> Optional[Submission]:
        with self._lock:
            stored = self._submissions.get((exercise_id, student_id))
            return stored.model_copy(deep=True) if stored is not None else None

    def save_submission(self, submission: Submission) -> None:
        with self._lock:
            self._submissions[(submission.exercise_id, submission.student_id)] = submission.model_copy(deep=True)
        logger.info(
            f"ID: {submission.id} | Exercise ID: {submission.exercise_id} | "
            f"Student ID: {submission.student_id} | Status: {submission.status.value} | "
            f"Attempts: {submission.attempts} | Code: {_preview(submission.code)}"
        )
