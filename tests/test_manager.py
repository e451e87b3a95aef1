from datetime import datetime, timedelta, timezone
import threading
import time

import pytest

from exercise_grader.errors import (
    FeatureDisabled,
    HintNotAvailable,
    ReadOnlyMode,
    RunCancelled,
    SubmissionBusy,
    SubmissionLocked,
    SubmissionNotEvaluated,
)
from exercise_grader.exercises.models import TestCase
from exercise_grader.judge.models import (
    CompileError,
    InternalJudgeError,
    JudgeFailureKind,
    TimeLimitExceeded,
)
from exercise_grader.submissions.models import SubmissionStatus

from conftest import FakeJudge, make_exercise

CODE = "print(input().upper())"


# Scenario A
def test_partial_pass_scores_only_passed_points(make_manager):
    judge = FakeJudge(outputs={"a": "A", "b": "wrong"})
    manager = make_manager(judge, make_exercise())

    manager.run("ex1", "s1", CODE)
    submission = manager.submit("ex1", "s1", CODE)

    assert submission.score == 1
    assert submission.max_score == 3
    assert submission.passed_tests == 1
    assert submission.total_tests == 2
    assert submission.status == SubmissionStatus.FAILED


def test_all_passing_submission_is_passed(make_manager, judge):
    manager = make_manager(judge, make_exercise())
    manager.run("ex1", "s1", CODE)
    submission = manager.submit("ex1", "s1", CODE)
    assert submission.status == SubmissionStatus.PASSED
    assert submission.score == submission.max_score == 3
    assert submission.submitted_at is not None


# Scenario B
def test_hint_unlocks_after_attempts_and_stays_revealed(make_manager, judge, hint_exercise):
    manager = make_manager(judge, hint_exercise)

    manager.run("ex1", "s1", "print(1)")
    assert manager.available_hints("ex1", "s1") == []
    with pytest.raises(HintNotAvailable):
        manager.reveal_hint("ex1", "s1", "hint1")

    manager.run("ex1", "s1", "print(2)")
    assert [h.id for h in manager.available_hints("ex1", "s1")] == ["hint1"]

    submission = manager.reveal_hint("ex1", "s1", "hint1")
    assert submission.hints_used == ["hint1"]

    submission = manager.run("ex1", "s1", "print(3)")
    assert submission.attempts == 3
    assert submission.hints_used == ["hint1"]


def test_revealed_hint_survives_reset(make_manager, judge, hint_exercise):
    manager = make_manager(judge, hint_exercise)
    manager.run("ex1", "s1", CODE)
    manager.run("ex1", "s1", CODE)
    manager.reveal_hint("ex1", "s1", "hint1")
    manager.reveal_hint("ex1", "s1", "hint1")

    submission = manager.reset("ex1", "s1")

    assert submission.hints_used == ["hint1"]
    assert submission.attempts == 2
    assert submission.test_results == []
    assert submission.code == hint_exercise.starter_code


def test_unknown_hint_is_rejected(make_manager, judge, hint_exercise):
    manager = make_manager(judge, hint_exercise)
    with pytest.raises(HintNotAvailable):
        manager.reveal_hint("ex1", "s1", "nope")


# Scenario C
def test_run_with_execution_disabled(make_manager, judge, submission_store):
    manager = make_manager(judge, make_exercise(allow_execution=False))
    manager.save_draft("ex1", "s1", CODE)

    with pytest.raises(FeatureDisabled):
        manager.run("ex1", "s1", CODE)

    assert submission_store.load_submission("ex1", "s1").attempts == 0
    assert judge.calls == []


# Scenario D
def test_second_submit_is_locked_when_multiple_submissions_disallowed(make_manager, judge, submission_store):
    manager = make_manager(judge, make_exercise(allow_multiple_submissions=False))
    manager.run("ex1", "s1", CODE)
    first = manager.submit("ex1", "s1", CODE)

    with pytest.raises(SubmissionLocked):
        manager.submit("ex1", "s1", CODE)
    with pytest.raises(SubmissionLocked):
        manager.run("ex1", "s1", "print('again')")
    with pytest.raises(SubmissionLocked):
        manager.save_draft("ex1", "s1", "print('again')")

    stored = submission_store.load_submission("ex1", "s1")
    assert stored == first


def test_multiple_submissions_last_submission_wins(make_manager, submission_store):
    judge = FakeJudge(outputs={"a": "A", "b": "B"})
    manager = make_manager(judge, make_exercise(allow_multiple_submissions=True))
    manager.run("ex1", "s1", CODE)
    manager.submit("ex1", "s1", CODE)

    judge.outputs["b"] = "nope"
    manager.run("ex1", "s1", "print('v2')")
    submission = manager.submit("ex1", "s1", "print('v2')")

    assert submission.status == SubmissionStatus.FAILED
    assert submission.code == "print('v2')"
    assert submission.attempts == 2


def test_explicit_resubmit(make_manager, judge):
    manager = make_manager(judge, make_exercise(allow_multiple_submissions=True))
    manager.run("ex1", "s1", CODE)
    manager.submit("ex1", "s1", CODE)

    assert manager.resubmit("ex1", "s1").status == SubmissionStatus.DRAFT


def test_resubmit_refused_when_single_submission(make_manager, judge):
    manager = make_manager(judge, make_exercise(allow_multiple_submissions=False))
    manager.run("ex1", "s1", CODE)
    manager.submit("ex1", "s1", CODE)
    with pytest.raises(SubmissionLocked):
        manager.resubmit("ex1", "s1")


def test_submit_without_run_is_rejected(make_manager, judge, submission_store):
    manager = make_manager(judge, make_exercise())
    with pytest.raises(SubmissionNotEvaluated):
        manager.submit("ex1", "s1", CODE)

    manager.save_draft("ex1", "s1", CODE)
    with pytest.raises(SubmissionNotEvaluated):
        manager.submit("ex1", "s1", CODE)
    assert submission_store.load_submission("ex1", "s1").status == SubmissionStatus.DRAFT


def test_submit_of_edited_code_needs_a_new_run(make_manager, judge):
    manager = make_manager(judge, make_exercise())
    manager.run("ex1", "s1", CODE)
    with pytest.raises(SubmissionNotEvaluated):
        manager.submit("ex1", "s1", CODE + "\n# edited")


def test_blind_submission_evaluates_on_submit(make_manager, judge):
    manager = make_manager(judge, make_exercise(allow_blind_submission=True))
    submission = manager.submit("ex1", "s1", CODE)
    assert submission.attempts == 1
    assert submission.status == SubmissionStatus.PASSED


def test_is_late_is_frozen_at_submit(make_manager, judge, submission_store):
    manager = make_manager(judge, make_exercise(allow_multiple_submissions=False))
    deadline = datetime(2026, 1, 1, tzinfo=timezone.utc)
    manager.run("ex1", "s1", CODE)
    submission = manager.submit("ex1", "s1", CODE, deadline=deadline, submitted_at=deadline + timedelta(minutes=1))
    assert submission.is_late is True

    with pytest.raises(SubmissionLocked):
        manager.submit("ex1", "s1", CODE, deadline=deadline + timedelta(days=1))
    assert submission_store.load_submission("ex1", "s1").is_late is True


def test_submit_before_deadline_is_not_late(make_manager, judge):
    manager = make_manager(judge, make_exercise())
    manager.run("ex1", "s1", CODE)
    submission = manager.submit(
        "ex1", "s1", CODE,
        deadline=datetime(2030, 1, 1),
        submitted_at=datetime(2029, 12, 31, tzinfo=timezone.utc),
    )
    assert submission.is_late is False


def test_judge_failures_become_failing_results(make_manager):
    judge = FakeJudge(
        outputs={"a": "A"},
        failures={"b": CompileError("SyntaxError: invalid syntax"), "c": InternalJudgeError("judge down")},
    )
    exercise = make_exercise(
        test_cases=[
            TestCase(id="t1", input="a", expected_output="A"),
            TestCase(id="t2", input="b", expected_output="B"),
            TestCase(id="t3", input="c", expected_output="C"),
        ]
    )
    manager = make_manager(judge, exercise)

    submission = manager.run("ex1", "s1", CODE)

    assert [r.passed for r in submission.test_results] == [True, False, False]
    assert submission.test_results[1].failure_kind == JudgeFailureKind.COMPILE_ERROR
    assert submission.test_results[1].error_message == "SyntaxError: invalid syntax"
    assert submission.test_results[2].failure_kind == JudgeFailureKind.INTERNAL_JUDGE_ERROR
    assert submission.attempts == 1
    assert submission.status == SubmissionStatus.DRAFT


def test_run_counts_attempt_even_when_every_call_fails(make_manager):
    judge = FakeJudge(failures={"a": TimeLimitExceeded(), "b": TimeLimitExceeded()})
    manager = make_manager(judge, make_exercise())
    submission = manager.run("ex1", "s1", CODE)
    assert submission.attempts == 1
    assert submission.score == 0
    assert submission.max_score == 3


def test_results_keep_test_case_order(make_manager):
    judge = FakeJudge(outputs={"a": "A", "b": "B"}, delays={"a": 0.3})
    manager = make_manager(judge, make_exercise())
    submission = manager.run("ex1", "s1", CODE)
    assert [r.test_case_id for r in submission.test_results] == ["t1", "t2"]


def test_rerun_with_deterministic_judge_is_stable(make_manager, judge):
    manager = make_manager(judge, make_exercise())
    first = manager.run("ex1", "s1", CODE)
    second = manager.run("ex1", "s1", CODE)
    assert first.test_results == second.test_results
    assert first.score == second.score


def test_hung_judge_call_times_out_without_blocking_others(make_manager, limits):
    judge = FakeJudge(outputs={"b": "B"}, delays={"a": 3})
    exercise = make_exercise(time_limit_seconds=1)
    manager = make_manager(judge, exercise)

    started = time.monotonic()
    submission = manager.run("ex1", "s1", CODE)

    assert time.monotonic() - started < 2.5
    assert submission.test_results[0].failure_kind == JudgeFailureKind.TIME_LIMIT_EXCEEDED
    assert submission.test_results[1].passed


def test_concurrent_operation_is_rejected(make_manager, submission_store):
    judge = FakeJudge(outputs={"a": "A", "b": "B"}, delays={"a": 0.5})
    manager = make_manager(judge, make_exercise())

    runner = threading.Thread(target=manager.run, args=("ex1", "s1", CODE))
    runner.start()
    time.sleep(0.1)
    with pytest.raises(SubmissionBusy):
        manager.run("ex1", "s1", CODE)
    with pytest.raises(SubmissionBusy):
        manager.submit("ex1", "s1", CODE)
    runner.join()

    assert submission_store.load_submission("ex1", "s1").attempts == 1


def test_other_students_are_not_blocked(make_manager):
    judge = FakeJudge(outputs={"a": "A", "b": "B"}, delays={"a": 0.3})
    manager = make_manager(judge, make_exercise())
    runner = threading.Thread(target=manager.run, args=("ex1", "s1", CODE))
    runner.start()
    time.sleep(0.05)
    assert manager.run("ex1", "s2", CODE).attempts == 1
    runner.join()


def test_cancelled_run_keeps_attempt_and_previous_results(make_manager, submission_store):
    judge = FakeJudge(outputs={"a": "A", "b": "B"})
    manager = make_manager(judge, make_exercise())
    previous = manager.run("ex1", "s1", CODE).test_results

    judge.delays["a"] = 1.0
    cancel = threading.Event()
    threading.Timer(0.1, cancel.set).start()
    with pytest.raises(RunCancelled):
        manager.run("ex1", "s1", "print('slow')", cancel_event=cancel)

    stored = submission_store.load_submission("ex1", "s1")
    assert stored.attempts == 2
    assert stored.test_results == previous
    with pytest.raises(SubmissionNotEvaluated):
        manager.submit("ex1", "s1", "print('slow')")


def test_read_only_mode_rejects_mutations(make_manager, judge):
    manager = make_manager(judge, make_exercise())
    with pytest.raises(ReadOnlyMode):
        manager.save_draft("ex1", "s1", CODE, read_only=True)
    with pytest.raises(ReadOnlyMode):
        manager.run("ex1", "s1", CODE, read_only=True)
    with pytest.raises(ReadOnlyMode):
        manager.submit("ex1", "s1", CODE, read_only=True)
    assert judge.calls == []


def test_save_draft_keeps_draft_status(make_manager, judge):
    manager = make_manager(judge, make_exercise())
    submission = manager.save_draft("ex1", "s1", "anything at all (", student_name="Ada")
    assert submission.status == SubmissionStatus.DRAFT
    assert submission.code == "anything at all ("
    assert submission.student_name == "Ada"
    assert submission.attempts == 0


def test_judge_receives_exercise_limits(make_manager, judge, limits):
    manager = make_manager(judge, make_exercise(time_limit_seconds=None, memory_limit_mb=128))
    manager.run("ex1", "s1", CODE)
    request = judge.calls[0]
    assert request.time_limit_seconds == limits.default_time_limit_seconds
    assert request.memory_limit_mb == 128


def test_attempts_never_decrease(make_manager, judge):
    manager = make_manager(judge, make_exercise(allow_multiple_submissions=True))
    seen = []
    seen.append(manager.run("ex1", "s1", CODE).attempts)
    seen.append(manager.save_draft("ex1", "s1", CODE).attempts)
    seen.append(manager.submit("ex1", "s1", CODE).attempts)
    seen.append(manager.reset("ex1", "s1").attempts)
    seen.append(manager.run("ex1", "s1", CODE).attempts)
    assert seen == sorted(seen)
    assert seen[-1] == 2
