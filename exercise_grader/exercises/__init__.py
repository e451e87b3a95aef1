from .models import Difficulty, Exercise, Hint, Language, TestCase
from .utils.validation_utils import build_exercise, validate_exercise

__all__ = [
    "Difficulty",
    "Exercise",
    "Hint",
    "Language",
    "TestCase",
    "build_exercise",
    "validate_exercise",
]
