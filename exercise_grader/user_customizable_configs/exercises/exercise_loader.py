from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from natsort import natsorted
import yaml

from exercise_grader.errors import ExerciseValidationError
from exercise_grader.exercises.models import Exercise
from exercise_grader.exercises.utils.validation_utils import build_exercise
from exercise_grader.settings import EXERCISE_CATALOGUE, EXERCISE_TEST_CASES


REQUIRED_EXERCISE_FIELDS = {
    "title",
    "language",
}


class ExerciseCatalogueLoadError(RuntimeError):
    pass


def _discover_test_cases(spec: Any, test_case_dir: Path, exercise_id: str) -> List[Dict[str, Any]]:
    """
    Expand a ``test_case_files`` entry into test case mappings.

    The entry is either a glob string or a mapping with ``glob`` and the
    optional ``is_hidden`` / ``points`` applied to every match. Each matched
    ``<name>.in`` file is paired with ``<name>.out``; the test case id is
    ``<name>``.
    """
    if isinstance(spec, str):
        spec = {"glob": spec}
    if not isinstance(spec, dict) or "glob" not in spec:
        raise ExerciseCatalogueLoadError(
            f"Exercise '{exercise_id}': test_case_files must be a glob or a mapping with 'glob'."
        )

    cases = []
    for in_path in natsorted(test_case_dir.glob(spec["glob"])):
        out_path = in_path.with_suffix(".out")
        if not out_path.is_file():
            raise ExerciseCatalogueLoadError(
                f"Exercise '{exercise_id}': missing expected output {out_path}"
            )
        cases.append({
            "id": in_path.stem,
            "input": in_path.read_text(encoding="utf-8"),
            "expected_output": out_path.read_text(encoding="utf-8"),
            "is_hidden": bool(spec.get("is_hidden", False)),
            "points": spec.get("points", 1),
        })
    return cases


def _resolve_inline_files(case: Dict[str, Any], test_case_dir: Path, exercise_id: str) -> Dict[str, Any]:
    case = dict(case)
    for key in ("input", "expected_output"):
        file_key = f"{key}_file"
        if file_key in case:
            path = test_case_dir / case.pop(file_key)
            try:
                case[key] = path.read_text(encoding="utf-8")
            except OSError as e:
                raise ExerciseCatalogueLoadError(
                    f"Exercise '{exercise_id}': failed reading {path}: {e}"
                ) from e
    return case


def _parse_yaml(path: Path, test_case_dir: Path) -> Dict[str, Exercise]:
    with path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ExerciseCatalogueLoadError("Root YAML must be a mapping.")

    exercises_section = raw.get("exercises")
    if not isinstance(exercises_section, dict):
        raise ExerciseCatalogueLoadError("'exercises' key missing or not a mapping.")

    exercises: Dict[str, Exercise] = {}

    for exercise_id, data in exercises_section.items():
        if not isinstance(data, dict):
            raise ExerciseCatalogueLoadError(f"Exercise '{exercise_id}' must map to a dict.")

        missing = REQUIRED_EXERCISE_FIELDS - data.keys()
        if missing:
            raise ExerciseCatalogueLoadError(
                f"Exercise '{exercise_id}' missing required fields: {', '.join(sorted(missing))}"
            )

        data = dict(data)
        test_cases = [
            _resolve_inline_files(c, test_case_dir, exercise_id)
            for c in data.pop("test_cases", None) or []
        ]
        file_specs = data.pop("test_case_files", None) or []
        if not isinstance(file_specs, list):
            file_specs = [file_specs]
        for spec in file_specs:
            test_cases.extend(_discover_test_cases(spec, test_case_dir, exercise_id))

        try:
            exercises[str(exercise_id)] = build_exercise(
                {**data, "id": str(exercise_id), "test_cases": test_cases}
            )
        except ExerciseValidationError as e:
            raise ExerciseCatalogueLoadError(str(e)) from e

    return exercises


@lru_cache(maxsize=2)
def load_exercise_catalogue(
    path: Optional[Path] = None,
    test_case_dir: Optional[Path] = None,
) -> List[Exercise]:
    path = Path(path or EXERCISE_CATALOGUE).resolve()
    test_case_dir = Path(test_case_dir or EXERCISE_TEST_CASES)
    if not path.is_file():
        raise ExerciseCatalogueLoadError(f"Exercise catalogue not found: {path}")
    exercises = _parse_yaml(path, test_case_dir)
    return [exercises[k] for k in natsorted(exercises.keys())]


def reload_exercise_catalogue() -> None:
    load_exercise_catalogue.cache_clear()


def get_exercises() -> List[Exercise]:
    return load_exercise_catalogue()


def get_exercise(exercise_id: str) -> Exercise:
    for exercise in load_exercise_catalogue():
        if exercise.id == exercise_id:
            return exercise
    raise KeyError(f"Unknown exercise_id '{exercise_id}'")
