from typing import Sequence

from exercise_grader.submissions.models import ScoreSummary, SubmissionStatus, TestResult


def score_results(test_results: Sequence[TestResult]) -> ScoreSummary:
    """
    Aggregate per-test results.

    max_score sums the points of every evaluated test case, hidden or not;
    score sums the points of the passed ones. Zero-point cases still count
    toward passed_tests / total_tests.
    """
    return ScoreSummary(
        score=sum(r.points for r in test_results if r.passed),
        max_score=sum(r.points for r in test_results),
        passed_tests=sum(1 for r in test_results if r.passed),
        total_tests=len(test_results),
    )


def verdict(summary: ScoreSummary) -> SubmissionStatus:
    if summary.total_tests > 0 and summary.passed_tests == summary.total_tests:
        return SubmissionStatus.PASSED
    return SubmissionStatus.FAILED


def outputs_match(actual: str, expected: str, mode: str = "trim") -> bool:
    """Compare program output with the expected output.

    ``exact`` compares verbatim. ``trim`` ignores trailing whitespace on each
    line and blank lines at either end.
    """
    if mode == "exact":
        return actual == expected
    return _normalize(actual) == _normalize(expected)


def _normalize(text: str) -> str:
    lines = [line.rstrip() for line in text.replace("\r\n", "\n").split("\n")]
    return "\n".join(lines).strip("\n")
