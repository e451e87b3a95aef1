from .models import (
    CallOutcome,
    CompileError,
    ExecutionOutcome,
    InternalJudgeError,
    JudgeClient,
    JudgeFailure,
    JudgeFailureKind,
    JudgeRequest,
    JudgeRuntimeError,
    MemoryLimitExceeded,
    TimeLimitExceeded,
)
from .utils.http_judge_utils import HttpJudgeClient
from .utils.local_judge_utils import LocalPythonJudge
from .workers.fan_out import JudgeFanOut

__all__ = [
    "CallOutcome",
    "CompileError",
    "ExecutionOutcome",
    "HttpJudgeClient",
    "InternalJudgeError",
    "JudgeClient",
    "JudgeFailure",
    "JudgeFailureKind",
    "JudgeFanOut",
    "JudgeRequest",
    "JudgeRuntimeError",
    "LocalPythonJudge",
    "MemoryLimitExceeded",
    "TimeLimitExceeded",
]
