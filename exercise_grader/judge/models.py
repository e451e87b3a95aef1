from enum import Enum
from typing import Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

from exercise_grader.exercises.models import Language


class JudgeFailureKind(str, Enum):
    COMPILE_ERROR = "COMPILE_ERROR"
    RUNTIME_ERROR = "RUNTIME_ERROR"
    TIME_LIMIT_EXCEEDED = "TIME_LIMIT_EXCEEDED"
    MEMORY_LIMIT_EXCEEDED = "MEMORY_LIMIT_EXCEEDED"
    INTERNAL_JUDGE_ERROR = "INTERNAL_JUDGE_ERROR"


class JudgeFailure(Exception):
    """A judge call that produced no usable output for its test case."""

    kind: JudgeFailureKind = JudgeFailureKind.INTERNAL_JUDGE_ERROR

    def __init__(self, message: str = "", execution_time_ms: float = 0.0, memory_usage_bytes: int = 0):
        self.message = message or self.kind.value.replace("_", " ").capitalize()
        self.execution_time_ms = execution_time_ms
        self.memory_usage_bytes = memory_usage_bytes
        super().__init__(self.message)


class CompileError(JudgeFailure):
    kind = JudgeFailureKind.COMPILE_ERROR


class JudgeRuntimeError(JudgeFailure):
    kind = JudgeFailureKind.RUNTIME_ERROR


class TimeLimitExceeded(JudgeFailure):
    kind = JudgeFailureKind.TIME_LIMIT_EXCEEDED


class MemoryLimitExceeded(JudgeFailure):
    kind = JudgeFailureKind.MEMORY_LIMIT_EXCEEDED


class InternalJudgeError(JudgeFailure):
    kind = JudgeFailureKind.INTERNAL_JUDGE_ERROR


FAILURES_BY_KIND = {
    cls.kind: cls
    for cls in (CompileError, JudgeRuntimeError, TimeLimitExceeded, MemoryLimitExceeded, InternalJudgeError)
}


def failure_from_kind(kind: str, message: str = "", **kwargs) -> JudgeFailure:
    """Build the typed failure for a kind name; unknown kinds become internal errors."""
    try:
        cls = FAILURES_BY_KIND[JudgeFailureKind(kind)]
    except ValueError:
        return InternalJudgeError(f"Unknown judge failure kind '{kind}': {message}", **kwargs)
    return cls(message, **kwargs)


class JudgeRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    language: Language
    test_case_input: str
    time_limit_seconds: int = Field(..., gt=0)
    memory_limit_mb: int = Field(..., gt=0)


class ExecutionOutcome(BaseModel):
    actual_output: str
    execution_time_ms: float = Field(default=0.0, ge=0)
    memory_usage_bytes: int = Field(default=0, ge=0)


class JudgeClient(Protocol):
    """Executes code against one test case input.

    Returns an ExecutionOutcome or raises a JudgeFailure subclass. Calls may
    be slow and are issued from several threads at once.
    """

    def execute(self, request: JudgeRequest) -> ExecutionOutcome:
        ...


class CallOutcome(BaseModel):
    """What the fan-out produced for one request: an outcome or a failure."""

    outcome: Optional[ExecutionOutcome] = None
    failure_kind: Optional[JudgeFailureKind] = None
    error_message: Optional[str] = None
    execution_time_ms: float = 0.0
    memory_usage_bytes: int = 0

    @classmethod
    def from_failure(cls, failure: JudgeFailure) -> "CallOutcome":
        return cls(
            failure_kind=failure.kind,
            error_message=failure.message,
            execution_time_ms=failure.execution_time_ms,
            memory_usage_bytes=failure.memory_usage_bytes,
        )

    @classmethod
    def from_outcome(cls, outcome: ExecutionOutcome) -> "CallOutcome":
        return cls(
            outcome=outcome,
            execution_time_ms=outcome.execution_time_ms,
            memory_usage_bytes=outcome.memory_usage_bytes,
        )
