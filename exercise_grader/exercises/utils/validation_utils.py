import logging
from collections import Counter
from typing import Any, List, Mapping, Optional

from pydantic import ValidationError

from exercise_grader.errors import ExerciseValidationError
from exercise_grader.exercises.models import Exercise
from exercise_grader.user_customizable_configs.platform.loader import (
    PlatformLimits,
    get_platform_limits,
)

logger = logging.getLogger(__name__)


def _duplicates(ids: List[str]) -> List[str]:
    return sorted(i for i, n in Counter(ids).items() if n > 1)


def collect_exercise_errors(exercise: Exercise, limits: PlatformLimits) -> List[str]:
    """Return every rule the exercise breaks (empty list when valid)."""
    errors: List[str] = []

    if not exercise.title.strip():
        errors.append("title must not be empty")

    if not limits.exercise_points.contains(exercise.points):
        errors.append(
            f"points must be between {limits.exercise_points.min} and "
            f"{limits.exercise_points.max}, got {exercise.points}"
        )

    if not exercise.test_cases:
        errors.append("at least one test case is required")
    else:
        for tc in exercise.test_cases:
            if not tc.expected_output.strip():
                errors.append(f"test case '{tc.id}' is missing an expected output")
        for dup in _duplicates([tc.id for tc in exercise.test_cases]):
            errors.append(f"duplicate test case id '{dup}'")
        if exercise.total_test_points <= 0:
            errors.append("test case points must sum to more than 0")

    for hint in exercise.hints:
        if not hint.content.strip():
            errors.append(f"hint '{hint.id}' has no content")
    for dup in _duplicates([h.id for h in exercise.hints]):
        errors.append(f"duplicate hint id '{dup}'")

    if exercise.allow_execution:
        if exercise.time_limit_seconds is not None and not limits.time_limit_seconds.contains(
            exercise.time_limit_seconds
        ):
            errors.append(
                f"time_limit_seconds must be between {limits.time_limit_seconds.min} and "
                f"{limits.time_limit_seconds.max}, got {exercise.time_limit_seconds}"
            )
        if exercise.memory_limit_mb is not None and not limits.memory_limit_mb.contains(
            exercise.memory_limit_mb
        ):
            errors.append(
                f"memory_limit_mb must be between {limits.memory_limit_mb.min} and "
                f"{limits.memory_limit_mb.max}, got {exercise.memory_limit_mb}"
            )

    return errors


def validate_exercise(exercise: Exercise, limits: Optional[PlatformLimits] = None) -> Exercise:
    """
    Check an exercise against the authoring rules and the platform limits.

    Returns the exercise unchanged when it is valid, raises
    ExerciseValidationError listing every problem otherwise.
    """
    limits = limits or get_platform_limits()
    errors = collect_exercise_errors(exercise, limits)
    if errors:
        logger.warning(f"Rejected exercise '{exercise.id}': {'; '.join(errors)}")
        raise ExerciseValidationError(errors, exercise_id=exercise.id)
    return exercise


def build_exercise(data: Mapping[str, Any], limits: Optional[PlatformLimits] = None) -> Exercise:
    """Parse a raw mapping into a validated Exercise."""
    try:
        exercise = Exercise(**data)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        ]
        raise ExerciseValidationError(errors, exercise_id=data.get("id")) from e
    return validate_exercise(exercise, limits)
