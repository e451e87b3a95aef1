from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, PositiveInt, model_validator

from exercise_grader.settings import PLATFORM_CONFIGS


class PlatformConfigLoadError(RuntimeError):
    """Raised when the platform limits file cannot be loaded or validated."""


class Bounds(BaseModel):
    min: int = Field(..., ge=0)
    max: int = Field(..., ge=0)

    @model_validator(mode="after")
    def _ordered(self) -> "Bounds":
        if self.min > self.max:
            raise ValueError(f"min ({self.min}) must not exceed max ({self.max})")
        return self

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max


class PlatformLimits(BaseModel):
    """Platform-wide limits.

    The time/memory bounds only constrain exercises that allow execution;
    the defaults fill in judge limits the exercise leaves unset.
    """
    time_limit_seconds: Bounds = Bounds(min=5, max=300)
    memory_limit_mb: Bounds = Bounds(min=16, max=512)
    default_time_limit_seconds: PositiveInt = 10
    default_memory_limit_mb: PositiveInt = 256
    exercise_points: Bounds = Bounds(min=1, max=100)
    max_parallel_judge_calls: PositiveInt = 4
    judge_grace_seconds: float = Field(default=2.0, ge=0.0)
    output_comparison: Literal["exact", "trim"] = "trim"

    @model_validator(mode="after")
    def _defaults_within_bounds(self) -> "PlatformLimits":
        if not self.time_limit_seconds.contains(self.default_time_limit_seconds):
            raise ValueError("default_time_limit_seconds is outside time_limit_seconds bounds")
        if not self.memory_limit_mb.contains(self.default_memory_limit_mb):
            raise ValueError("default_memory_limit_mb is outside memory_limit_mb bounds")
        return self


@lru_cache(maxsize=1)
def load_platform_limits(path: Optional[Path] = None) -> PlatformLimits:
    """Load and validate the platform limits from YAML (cached).

    A missing file is not an error: the built-in defaults apply.
    """
    path = Path(path) if path is not None else PLATFORM_CONFIGS
    if not path.is_file():
        return PlatformLimits()
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except Exception as e:
        raise PlatformConfigLoadError(f"Failed to read platform limits: {e}") from e

    if not isinstance(data, dict):
        raise PlatformConfigLoadError("Root YAML must be a mapping.")

    try:
        return PlatformLimits(**data)
    except Exception as e:
        raise PlatformConfigLoadError(f"Invalid platform limits: {e}") from e


def reload_platform_limits() -> None:
    load_platform_limits.cache_clear()


def get_platform_limits() -> PlatformLimits:
    return load_platform_limits()
