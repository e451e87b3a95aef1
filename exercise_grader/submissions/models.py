from datetime import datetime, timezone
from enum import Enum
import hashlib
from typing import List, Optional
import uuid

from pydantic import BaseModel, Field

from exercise_grader.exercises.models import Language
from exercise_grader.judge.models import JudgeFailureKind


class SubmissionStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    GRADED = "GRADED"
    PASSED = "PASSED"
    FAILED = "FAILED"


GRADED_STATUSES = frozenset({SubmissionStatus.GRADED, SubmissionStatus.PASSED, SubmissionStatus.FAILED})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def code_fingerprint(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


class TestResult(BaseModel):
    __test__ = False  # keep pytest from collecting this model

    test_case_id: str
    input: str
    expected_output: str
    actual_output: str = ""
    passed: bool = False
    execution_time_ms: float = 0.0
    memory_usage_bytes: int = 0
    error_message: Optional[str] = None
    failure_kind: Optional[JudgeFailureKind] = None
    points: int = 0
    is_hidden: bool = False


class ScoreSummary(BaseModel):
    score: int = 0
    max_score: int = 0
    passed_tests: int = 0
    total_tests: int = 0


class Submission(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    exercise_id: str
    student_id: str
    student_name: Optional[str] = None
    language: Language
    code: str = ""
    status: SubmissionStatus = SubmissionStatus.DRAFT
    attempts: int = Field(default=0, ge=0)
    hints_used: List[str] = Field(default_factory=list)
    test_results: List[TestResult] = Field(default_factory=list)
    evaluated_code_fingerprint: Optional[str] = None
    score: int = 0
    max_score: int = 0
    total_tests: int = 0
    passed_tests: int = 0
    execution_time_ms: float = 0.0
    memory_usage_bytes: int = 0
    is_late: bool = False
    submitted_at: Optional[datetime] = None
    feedback: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_graded(self) -> bool:
        return self.status in GRADED_STATUSES

    def has_results_for(self, code: str) -> bool:
        return bool(self.test_results) and self.evaluated_code_fingerprint == code_fingerprint(code)

    def apply_score(self, summary: ScoreSummary) -> None:
        self.score = summary.score
        self.max_score = summary.max_score
        self.passed_tests = summary.passed_tests
        self.total_tests = summary.total_tests
