"""Legal status transitions of a submission.

DRAFT -> SUBMITTED -> GRADED -> PASSED | FAILED

DRAFT is re-entrant. A graded submission (GRADED, PASSED or FAILED) only
goes back to DRAFT when its exercise allows multiple submissions.
"""
import logging
from typing import Dict, FrozenSet

from exercise_grader.errors import SubmissionLocked
from exercise_grader.submissions.models import GRADED_STATUSES, Submission, SubmissionStatus

logger = logging.getLogger(__name__)

S = SubmissionStatus

TRANSITIONS: Dict[SubmissionStatus, FrozenSet[SubmissionStatus]] = {
    S.DRAFT: frozenset({S.DRAFT, S.SUBMITTED}),
    S.SUBMITTED: frozenset({S.GRADED}),
    S.GRADED: frozenset({S.PASSED, S.FAILED}),
    S.PASSED: frozenset(),
    S.FAILED: frozenset(),
}


def can_transition(current: SubmissionStatus, target: SubmissionStatus, allow_multiple_submissions: bool) -> bool:
    if target in TRANSITIONS[current]:
        return True
    return current in GRADED_STATUSES and target == S.DRAFT and allow_multiple_submissions


def check_transition(submission: Submission, target: SubmissionStatus, allow_multiple_submissions: bool) -> None:
    if not can_transition(submission.status, target, allow_multiple_submissions):
        logger.warning(
            f"Rejected transition {submission.status.value} -> {target.value} "
            f"for submission {submission.id}"
        )
        raise SubmissionLocked(
            f"Submission {submission.id} cannot go from {submission.status.value} to {target.value}"
        )


def transition(submission: Submission, target: SubmissionStatus, allow_multiple_submissions: bool) -> Submission:
    """Move the submission to ``target`` or raise SubmissionLocked leaving it untouched."""
    check_transition(submission, target, allow_multiple_submissions)
    submission.status = target
    return submission
