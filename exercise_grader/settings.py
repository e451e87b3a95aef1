import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent

USER_CUSTOMIZABLE_CONFIGS = BASE_DIR / "user_customizable_configs"

PLATFORM_CONFIGS = Path(
    os.getenv(
        "EXERCISE_GRADER_PLATFORM_CONFIG",
        USER_CUSTOMIZABLE_CONFIGS / "platform" / "platform_limits.yaml",
    )
)

EXERCISE_CATALOGUE = Path(
    os.getenv(
        "EXERCISE_GRADER_EXERCISE_CATALOGUE",
        USER_CUSTOMIZABLE_CONFIGS / "exercises" / "exercises.yaml",
    )
)
EXERCISE_TEST_CASES = Path(
    os.getenv(
        "EXERCISE_GRADER_EXERCISE_TEST_CASES",
        USER_CUSTOMIZABLE_CONFIGS / "exercises" / "test_cases",
    )
)

# Remote judge (submit-then-poll)
JUDGE_EXECUTE_URL = os.getenv("JUDGE_EXECUTE_URL")
JUDGE_RESULT_URL = os.getenv("JUDGE_RESULT_URL")
JUDGE_POLL_INTERVAL = float(os.getenv("JUDGE_POLL_INTERVAL", "0.5"))
