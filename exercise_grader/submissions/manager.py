import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple

from exercise_grader.errors import (
    FeatureDisabled,
    HintNotAvailable,
    ReadOnlyMode,
    SubmissionBusy,
    SubmissionLocked,
    SubmissionNotEvaluated,
)
from exercise_grader.exercises.models import Exercise, Hint
from exercise_grader.judge.models import CallOutcome, JudgeClient, JudgeRequest
from exercise_grader.judge.workers.fan_out import JudgeFanOut
from exercise_grader.submissions import state_machine
from exercise_grader.submissions.models import (
    Submission,
    SubmissionStatus,
    TestResult,
    code_fingerprint,
    utcnow,
)
from exercise_grader.submissions.serializers import serialize_submission_for_student
from exercise_grader.submissions.utils.db_utils import ExerciseStore, SubmissionStore, _preview
from exercise_grader.submissions.utils.hint_utils import available_hints, reveal
from exercise_grader.submissions.utils.scoring_utils import outputs_match, score_results, verdict
from exercise_grader.user_customizable_configs.platform.loader import (
    PlatformLimits,
    get_platform_limits,
)

logger = logging.getLogger(__name__)


def _aware(moment: datetime) -> datetime:
    # Naive datetimes are taken as UTC
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=timezone.utc)


class SubmissionManager:
    """
    Owns the mutable side of grading: drafts, runs, submissions and hints.

    Every operation works on a copy loaded from the submission store and
    saves it back only when it succeeds, so a rejected operation leaves the
    stored record unchanged. Operations on the same (exercise, student) pair
    are mutually exclusive; a second one arriving while the first is in
    flight is rejected with SubmissionBusy.

    Returned Submission objects carry hidden test results; anything shown to
    a student should go through ``student_view``.
    """

    def __init__(
        self,
        exercises: ExerciseStore,
        submissions: SubmissionStore,
        judge: JudgeClient,
        limits: Optional[PlatformLimits] = None,
    ):
        self.exercises = exercises
        self.submissions = submissions
        self.limits = limits or get_platform_limits()
        self.fan_out = JudgeFanOut(
            judge,
            max_workers=self.limits.max_parallel_judge_calls,
            grace_seconds=self.limits.judge_grace_seconds,
        )
        self._locks: Dict[Tuple[str, str], threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ------------------------------------------------------------------ helpers

    @contextmanager
    def _exclusive(self, exercise_id: str, student_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault((exercise_id, student_id), threading.Lock())
        if not lock.acquire(blocking=False):
            logger.warning(f"Rejected concurrent operation for exercise={exercise_id} student={student_id}")
            raise SubmissionBusy(
                f"Another run or submit is in progress for exercise={exercise_id} student={student_id}"
            )
        try:
            yield
        finally:
            lock.release()

    def _load_or_create(self, exercise: Exercise, student_id: str, student_name: Optional[str] = None) -> Submission:
        submission = self.submissions.load_submission(exercise.id, student_id)
        if submission is None:
            submission = Submission(
                exercise_id=exercise.id,
                student_id=student_id,
                student_name=student_name,
                language=exercise.language,
                code=exercise.starter_code,
            )
            logger.info(f"Created submission {submission.id} for exercise={exercise.id} student={student_id}")
        elif student_name and not submission.student_name:
            submission.student_name = student_name
        return submission

    def _reopen_if_graded(self, submission: Submission, exercise: Exercise) -> None:
        """Graded submissions go back to DRAFT only if the exercise allows resubmitting."""
        if submission.is_graded:
            state_machine.transition(submission, SubmissionStatus.DRAFT, exercise.allow_multiple_submissions)
            logger.info(f"Submission {submission.id} reopened for resubmission")

    def _save(self, submission: Submission) -> Submission:
        submission.updated_at = utcnow()
        self.submissions.save_submission(submission)
        return submission

    def _judge_request(self, exercise: Exercise, code: str, test_input: str) -> JudgeRequest:
        return JudgeRequest(
            code=code,
            language=exercise.language,
            test_case_input=test_input,
            time_limit_seconds=exercise.time_limit_seconds or self.limits.default_time_limit_seconds,
            memory_limit_mb=exercise.memory_limit_mb or self.limits.default_memory_limit_mb,
        )

    def _to_test_result(self, exercise: Exercise, index: int, call: CallOutcome) -> TestResult:
        test_case = exercise.test_cases[index]
        result = TestResult(
            test_case_id=test_case.id,
            input=test_case.input,
            expected_output=test_case.expected_output,
            execution_time_ms=call.execution_time_ms,
            memory_usage_bytes=call.memory_usage_bytes,
            points=test_case.points,
            is_hidden=test_case.is_hidden,
        )
        if call.outcome is not None:
            result.actual_output = call.outcome.actual_output
            result.passed = outputs_match(
                call.outcome.actual_output, test_case.expected_output, self.limits.output_comparison
            )
        else:
            result.failure_kind = call.failure_kind
            result.error_message = call.error_message
        return result

    def _evaluate(
        self,
        submission: Submission,
        exercise: Exercise,
        code: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> Submission:
        """Count the attempt, run every test case and replace the previous results."""
        submission.attempts += 1
        submission.code = code
        # The attempt sticks even if the caller abandons the run
        self._save(submission)

        logger.info(
            f"Run #{submission.attempts} started for submission {submission.id} "
            f"({len(exercise.test_cases)} test cases) | Code: {_preview(code)}"
        )
        requests = [self._judge_request(exercise, code, tc.input) for tc in exercise.test_cases]
        calls = self.fan_out.run(requests, cancel_event=cancel_event)

        results = [self._to_test_result(exercise, i, call) for i, call in enumerate(calls)]
        summary = score_results(results)
        submission.test_results = results
        submission.evaluated_code_fingerprint = code_fingerprint(code)
        submission.apply_score(summary)
        submission.execution_time_ms = sum(r.execution_time_ms for r in results)
        submission.memory_usage_bytes = max((r.memory_usage_bytes for r in results), default=0)
        logger.info(
            f"Run #{submission.attempts} finished for submission {submission.id}: "
            f"score={summary.score}/{summary.max_score} passed={summary.passed_tests}/{summary.total_tests}"
        )
        return submission

    # --------------------------------------------------------------- operations

    def save_draft(
        self,
        exercise_id: str,
        student_id: str,
        code: str,
        student_name: Optional[str] = None,
        read_only: bool = False,
    ) -> Submission:
        """Persist the code as a draft. The code itself is never checked."""
        if read_only:
            raise ReadOnlyMode("Drafts cannot be saved in read-only mode")
        exercise = self.exercises.load_exercise(exercise_id)
        with self._exclusive(exercise_id, student_id):
            submission = self._load_or_create(exercise, student_id, student_name)
            self._reopen_if_graded(submission, exercise)
            state_machine.transition(submission, SubmissionStatus.DRAFT, exercise.allow_multiple_submissions)
            submission.code = code
            return self._save(submission)

    def run(
        self,
        exercise_id: str,
        student_id: str,
        code: str,
        student_name: Optional[str] = None,
        read_only: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> Submission:
        """
        Run the code against every test case of the exercise.

        Judge failures end up as failing test results, never as exceptions.
        The attempt is counted even when every judge call fails or the run
        is cancelled; a cancelled run raises RunCancelled and keeps the
        previous results.
        """
        if read_only:
            raise ReadOnlyMode("Code cannot be run in read-only mode")
        exercise = self.exercises.load_exercise(exercise_id)
        if not exercise.allow_execution:
            logger.warning(f"Run rejected: execution disabled for exercise={exercise_id}")
            raise FeatureDisabled(f"Code execution is disabled for exercise {exercise_id}")

        with self._exclusive(exercise_id, student_id):
            submission = self._load_or_create(exercise, student_id, student_name)
            self._reopen_if_graded(submission, exercise)
            state_machine.transition(submission, SubmissionStatus.DRAFT, exercise.allow_multiple_submissions)
            self._evaluate(submission, exercise, code, cancel_event=cancel_event)
            return self._save(submission)

    def submit(
        self,
        exercise_id: str,
        student_id: str,
        code: str,
        deadline: Optional[datetime] = None,
        submitted_at: Optional[datetime] = None,
        read_only: bool = False,
    ) -> Submission:
        """
        Submit the code for grading.

        The code must have been run as-is beforehand (SubmissionNotEvaluated
        otherwise) unless the exercise allows blind submission, in which case
        it is evaluated here. Grading happens immediately: the submission
        passes through SUBMITTED and GRADED and ends PASSED or FAILED.
        ``is_late`` is fixed from ``deadline`` at this moment.
        """
        if read_only:
            raise ReadOnlyMode("Code cannot be submitted in read-only mode")
        exercise = self.exercises.load_exercise(exercise_id)

        with self._exclusive(exercise_id, student_id):
            submission = self.submissions.load_submission(exercise_id, student_id)
            if submission is None:
                if not exercise.allow_blind_submission:
                    raise SubmissionNotEvaluated(
                        f"Exercise {exercise_id} has no run for student {student_id}; run the code before submitting"
                    )
                submission = self._load_or_create(exercise, student_id)

            if submission.is_graded and not exercise.allow_multiple_submissions:
                logger.warning(f"Submit rejected: submission {submission.id} is already graded")
                raise SubmissionLocked(f"Submission {submission.id} is already graded")
            self._reopen_if_graded(submission, exercise)
            state_machine.check_transition(submission, SubmissionStatus.SUBMITTED, exercise.allow_multiple_submissions)

            if not submission.has_results_for(code):
                if not exercise.allow_blind_submission:
                    raise SubmissionNotEvaluated(
                        f"Submission {submission.id} has no test results for this code; run it before submitting"
                    )
                if not exercise.allow_execution:
                    raise FeatureDisabled(f"Code execution is disabled for exercise {exercise_id}")
                self._evaluate(submission, exercise, code)

            submission.code = code
            submission.submitted_at = _aware(submitted_at) if submitted_at else utcnow()
            submission.is_late = deadline is not None and submission.submitted_at > _aware(deadline)

            state_machine.transition(submission, SubmissionStatus.SUBMITTED, exercise.allow_multiple_submissions)
            summary = score_results(submission.test_results)
            submission.apply_score(summary)
            state_machine.transition(submission, SubmissionStatus.GRADED, exercise.allow_multiple_submissions)
            state_machine.transition(submission, verdict(summary), exercise.allow_multiple_submissions)

            logger.info(
                f"Submission {submission.id} graded {submission.status.value}: "
                f"score={submission.score}/{submission.max_score} late={submission.is_late}"
            )
            return self._save(submission)

    def resubmit(self, exercise_id: str, student_id: str) -> Submission:
        """Reopen a graded submission as a draft (only if multiple submissions are allowed)."""
        exercise = self.exercises.load_exercise(exercise_id)
        with self._exclusive(exercise_id, student_id):
            submission = self.submissions.load_submission(exercise_id, student_id)
            if submission is None:
                raise KeyError(f"No submission for exercise={exercise_id} student={student_id}")
            state_machine.transition(submission, SubmissionStatus.DRAFT, exercise.allow_multiple_submissions)
            return self._save(submission)

    def reset(self, exercise_id: str, student_id: str) -> Submission:
        """
        Put the starter code back and drop the test results.

        Identity, attempt count and revealed hints are kept.
        """
        exercise = self.exercises.load_exercise(exercise_id)
        with self._exclusive(exercise_id, student_id):
            submission = self._load_or_create(exercise, student_id)
            self._reopen_if_graded(submission, exercise)
            state_machine.transition(submission, SubmissionStatus.DRAFT, exercise.allow_multiple_submissions)
            submission.code = exercise.starter_code
            submission.test_results = []
            submission.evaluated_code_fingerprint = None
            submission.score = submission.max_score = 0
            submission.passed_tests = submission.total_tests = 0
            submission.execution_time_ms = 0.0
            submission.memory_usage_bytes = 0
            logger.info(
                f"Submission {submission.id} reset (attempts={submission.attempts}, "
                f"hints_used={submission.hints_used})"
            )
            return self._save(submission)

    def reveal_hint(self, exercise_id: str, student_id: str, hint_id: str) -> Submission:
        """Reveal an unlocked hint. Revealing an already revealed hint changes nothing."""
        exercise = self.exercises.load_exercise(exercise_id)
        try:
            hint = exercise.get_hint(hint_id)
        except KeyError:
            raise HintNotAvailable(f"Exercise {exercise_id} has no hint '{hint_id}'")

        with self._exclusive(exercise_id, student_id):
            submission = self._load_or_create(exercise, student_id)
            if hint.id in submission.hints_used:
                return submission
            if hint.reveal_after_attempts > submission.attempts:
                raise HintNotAvailable(
                    f"Hint '{hint_id}' unlocks after {hint.reveal_after_attempts} attempts, "
                    f"student has {submission.attempts}"
                )
            submission.hints_used = reveal(hint.id, submission.hints_used)
            logger.info(f"Hint '{hint_id}' revealed for submission {submission.id}")
            return self._save(submission)

    def available_hints(self, exercise_id: str, student_id: str) -> List[Hint]:
        exercise = self.exercises.load_exercise(exercise_id)
        submission = self.submissions.load_submission(exercise_id, student_id)
        return available_hints(exercise.hints, submission.attempts if submission else 0)

    def student_view(self, exercise_id: str, student_id: str) -> Dict[str, Any]:
        exercise = self.exercises.load_exercise(exercise_id)
        submission = self.submissions.load_submission(exercise_id, student_id)
        if submission is None:
            submission = Submission(
                exercise_id=exercise.id,
                student_id=student_id,
                language=exercise.language,
                code=exercise.starter_code,
            )
        return serialize_submission_for_student(submission, exercise)
