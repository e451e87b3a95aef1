from typing import Any, Dict, List, Sequence

from exercise_grader.exercises.models import Exercise
from exercise_grader.submissions.models import Submission, TestResult
from exercise_grader.submissions.utils.hint_utils import (
    available_hints,
    locked_hint_count,
    revealed_hints,
)


def _serialize_result(result: TestResult) -> Dict[str, Any]:
    return {
        "test_case_id": result.test_case_id,
        "input": result.input,
        "expected_output": result.expected_output,
        "actual_output": result.actual_output,
        "passed": result.passed,
        "execution_time_ms": round(result.execution_time_ms, 3),
        "memory_usage_bytes": result.memory_usage_bytes,
        "error_message": result.error_message,
        "failure_kind": result.failure_kind.value if result.failure_kind else None,
        "points": result.points,
        "is_hidden": result.is_hidden,
    }


def summarize_run(test_results: Sequence[TestResult], reveal_hidden: bool) -> List[str]:
    """One line per test, hidden cases without their data unless revealed."""
    lines = []
    for r in test_results:
        if r.is_hidden and not reveal_hidden:
            lines.append("✓ Hidden test passed" if r.passed else "✗ Hidden test failed")
        elif r.passed:
            lines.append(f"✓ Test passed: {r.expected_output.strip()}")
        elif r.error_message:
            lines.append(f"✗ Test failed: {r.error_message}")
        else:
            lines.append(
                f"✗ Test failed: Expected {r.expected_output.strip()}, got {r.actual_output.strip()}"
            )
    return lines


def serialize_submission_for_student(submission: Submission, exercise: Exercise) -> Dict[str, Any]:
    """
    Everything a student may see about their submission.

    Before the submission is graded, hidden test results are left out and
    only counted; the reference solution is included only when the exercise
    shows it or the submission is graded.
    """
    graded = submission.is_graded
    visible = [r for r in submission.test_results if graded or not r.is_hidden]
    hidden = [r for r in submission.test_results if r.is_hidden]

    data: Dict[str, Any] = {
        "id": submission.id,
        "exercise_id": submission.exercise_id,
        "student_id": submission.student_id,
        "language": submission.language.value,
        "code": submission.code,
        "status": submission.status.value,
        "attempts": submission.attempts,
        "score": submission.score,
        "max_score": submission.max_score,
        "passed_tests": submission.passed_tests,
        "total_tests": submission.total_tests,
        "execution_time_ms": round(submission.execution_time_ms, 3),
        "memory_usage_bytes": submission.memory_usage_bytes,
        "is_late": submission.is_late,
        "submitted_at": submission.submitted_at.isoformat() if submission.submitted_at else None,
        "feedback": submission.feedback,
        "test_results": [_serialize_result(r) for r in visible],
        "run_summary": summarize_run(submission.test_results, reveal_hidden=graded),
        "hints": {
            "available": [
                {"id": h.id, "order": h.order, "revealed": h.id in submission.hints_used}
                for h in available_hints(exercise.hints, submission.attempts)
            ],
            "revealed": [
                {"id": h.id, "order": h.order, "content": h.content}
                for h in revealed_hints(exercise.hints, submission.hints_used)
            ],
            "locked_count": locked_hint_count(exercise.hints, submission.attempts),
        },
    }
    if not graded:
        data["hidden_tests"] = {
            "total": len(hidden),
            "passed": sum(1 for r in hidden if r.passed),
        }
    if exercise.show_solution or graded:
        data["solution_code"] = exercise.solution_code
    return data
