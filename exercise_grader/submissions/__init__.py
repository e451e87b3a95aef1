from .manager import SubmissionManager
from .models import ScoreSummary, Submission, SubmissionStatus, TestResult
from .utils.db_utils import InMemoryExerciseStore, InMemorySubmissionStore

__all__ = [
    "InMemoryExerciseStore",
    "InMemorySubmissionStore",
    "ScoreSummary",
    "Submission",
    "SubmissionManager",
    "SubmissionStatus",
    "TestResult",
]
