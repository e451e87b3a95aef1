from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, PositiveInt


class Language(str, Enum):
    JAVASCRIPT = "JAVASCRIPT"
    PYTHON = "PYTHON"
    JAVA = "JAVA"
    CPP = "CPP"
    HTML_CSS = "HTML_CSS"
    SQL = "SQL"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class TestCase(BaseModel):
    model_config = ConfigDict(frozen=True)
    __test__ = False  # keep pytest from collecting this model

    id: str = Field(..., description="Unique within the owning exercise.")
    input: str = ""
    expected_output: str = ""
    description: Optional[str] = None
    is_hidden: bool = Field(default=False, description="Only used for scoring, never shown before grading.")
    points: int = Field(default=1, ge=0)


class Hint(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    order: int = Field(..., description="Disclosure sequence; need not be contiguous.")
    reveal_after_attempts: int = Field(default=0, ge=0, description="0 means immediately eligible.")


class Exercise(BaseModel):
    """An interactive code exercise.

    Structural typing is enforced here; the rules that need the platform
    limits (at least one test case, limits within bounds, unique ids...) are
    checked by ``validate_exercise``. Instances are frozen: submission
    processing only ever reads them.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: Optional[str] = None
    instructions: str = ""
    language: Language
    starter_code: str = ""
    solution_code: Optional[str] = None
    test_cases: List[TestCase] = Field(default_factory=list)
    hints: List[Hint] = Field(default_factory=list)
    allow_execution: bool = True
    time_limit_seconds: Optional[int] = None
    memory_limit_mb: Optional[int] = None
    duration_minutes: Optional[int] = Field(default=None, ge=5)
    points: PositiveInt = 10
    difficulty: Difficulty = Difficulty.MEDIUM
    show_solution: bool = False
    allow_multiple_submissions: bool = True
    allow_blind_submission: bool = False
    important_concepts: List[str] = Field(default_factory=list)

    @property
    def total_test_points(self) -> int:
        return sum(tc.points for tc in self.test_cases)

    def get_test_case(self, test_case_id: str) -> TestCase:
        for tc in self.test_cases:
            if tc.id == test_case_id:
                return tc
        raise KeyError(f"Unknown test case '{test_case_id}' in exercise '{self.id}'")

    def get_hint(self, hint_id: str) -> Hint:
        for hint in self.hints:
            if hint.id == hint_id:
                return hint
        raise KeyError(f"Unknown hint '{hint_id}' in exercise '{self.id}'")
