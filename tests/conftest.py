import threading
import time
from typing import Dict, Optional

import pytest

from exercise_grader.exercises.models import Exercise, Hint, Language, TestCase
from exercise_grader.judge.models import ExecutionOutcome, JudgeFailure, JudgeRequest
from exercise_grader.submissions import InMemoryExerciseStore, InMemorySubmissionStore, SubmissionManager
from exercise_grader.user_customizable_configs.platform.loader import PlatformLimits


class FakeJudge:
    """Deterministic judge: ``outputs`` maps an input to the output printed for it.

    ``failures`` maps an input to a JudgeFailure to raise, ``delays`` to
    seconds to sleep first. Inputs with no entry echo themselves.
    """

    def __init__(self, outputs=None, failures=None, delays=None):
        self.outputs: Dict[str, str] = dict(outputs or {})
        self.failures: Dict[str, JudgeFailure] = dict(failures or {})
        self.delays: Dict[str, float] = dict(delays or {})
        self.calls = []
        self._lock = threading.Lock()

    def execute(self, request: JudgeRequest) -> ExecutionOutcome:
        with self._lock:
            self.calls.append(request)
        delay = self.delays.get(request.test_case_input)
        if delay:
            time.sleep(delay)
        failure = self.failures.get(request.test_case_input)
        if failure is not None:
            raise failure
        return ExecutionOutcome(
            actual_output=self.outputs.get(request.test_case_input, request.test_case_input),
            execution_time_ms=1.0,
            memory_usage_bytes=1024,
        )


def make_exercise(
    exercise_id: str = "ex1",
    test_cases=None,
    hints=None,
    **overrides,
) -> Exercise:
    if test_cases is None:
        test_cases = [
            TestCase(id="t1", input="a", expected_output="A", points=1),
            TestCase(id="t2", input="b", expected_output="B", points=2),
        ]
    data = dict(
        id=exercise_id,
        title="Uppercase",
        instructions="Print the input in upper case.",
        language=Language.PYTHON,
        starter_code="print(input())",
        solution_code="print(input().upper())",
        test_cases=test_cases,
        hints=hints or [],
        time_limit_seconds=5,
        memory_limit_mb=64,
        points=10,
    )
    data.update(overrides)
    return Exercise(**data)


@pytest.fixture
def limits() -> PlatformLimits:
    return PlatformLimits(max_parallel_judge_calls=4, judge_grace_seconds=0.2)


@pytest.fixture
def judge() -> FakeJudge:
    return FakeJudge(outputs={"a": "A", "b": "B"})


@pytest.fixture
def exercise_store() -> InMemoryExerciseStore:
    return InMemoryExerciseStore()


@pytest.fixture
def submission_store() -> InMemorySubmissionStore:
    return InMemorySubmissionStore()


@pytest.fixture
def make_manager(exercise_store, submission_store, limits):
    def _make(judge, *exercises: Exercise, limits_override: Optional[PlatformLimits] = None) -> SubmissionManager:
        for exercise in exercises:
            exercise_store.add(exercise)
        return SubmissionManager(exercise_store, submission_store, judge, limits=limits_override or limits)

    return _make


@pytest.fixture
def hint_exercise() -> Exercise:
    return make_exercise(
        hints=[
            Hint(id="hint1", content="Use str.upper()", order=1, reveal_after_attempts=2),
        ]
    )
