from pathlib import Path
import logging
import re
import subprocess
import sys
import tempfile
import time
from typing import Optional, Tuple

from exercise_grader.exercises.models import Language
from exercise_grader.judge.models import (
    CompileError,
    ExecutionOutcome,
    InternalJudgeError,
    JudgeRequest,
    JudgeRuntimeError,
    MemoryLimitExceeded,
    TimeLimitExceeded,
)

logger = logging.getLogger(__name__)

RUNNER_TEMPLATE_PATH = Path(__file__).resolve().parent.parent / "templates" / "python_runner.py"
PEAK_RSS_RE = re.compile(r"###PEAK_RSS_KB=(\d+)###")


def _sanitize_error_line(error_msg: str) -> str:
    """Return the last line of a traceback, i.e. the actual error message."""
    lines = [line for line in error_msg.strip().split("\n") if line.strip()]
    if not lines:
        return ""
    return lines[-1].strip()


def _split_peak_memory(stderr: str) -> Tuple[str, int]:
    """Strip the runner's memory report from stderr and return it in bytes."""
    m = PEAK_RSS_RE.search(stderr)
    if not m:
        return stderr, 0
    return PEAK_RSS_RE.sub("", stderr).strip(), int(m.group(1)) * 1024


class LocalPythonJudge:
    """
    Run PYTHON submissions in a local subprocess.

    The student's program is wrapped in a runner that applies the memory
    limit, blocks file writes and network access through audit hooks and
    reports its peak memory on exit. This is a convenience judge for
    development and tests, not a sandbox.
    """

    def __init__(self, python_bin: Optional[str] = None):
        self.python_bin = python_bin or sys.executable
        self.runner_template = RUNNER_TEMPLATE_PATH.read_text(encoding="utf-8")

    def _build_program(self, code: str, memory_limit_mb: int) -> str:
        return self.runner_template.replace(
            "###{{{ MEMORY_LIMIT_BYTES }}}###", str(memory_limit_mb * 1024 * 1024)
        ).replace(
            "###{{{ INPUT_PROGRAM }}}###", code
        )

    def execute(self, request: JudgeRequest) -> ExecutionOutcome:
        if request.language != Language.PYTHON:
            raise InternalJudgeError(f"Local judge cannot run {request.language.value} code")

        try:
            compile(request.code, "<student>", "exec")
        except SyntaxError as e:
            raise CompileError(f"{type(e).__name__}: {e.msg} (line {e.lineno})")

        with tempfile.TemporaryDirectory() as td:
            program_path = Path(td) / "main.py"
            program_path.write_text(self._build_program(request.code, request.memory_limit_mb), encoding="utf-8")

            started = time.perf_counter()
            try:
                proc = subprocess.run(
                    [self.python_bin, program_path.name],
                    cwd=td,
                    input=request.test_case_input.encode("utf-8"),
                    capture_output=True,
                    timeout=request.time_limit_seconds,
                )
            except subprocess.TimeoutExpired:
                elapsed_ms = (time.perf_counter() - started) * 1000
                raise TimeLimitExceeded(
                    f"Time limit exceeded ({request.time_limit_seconds}s)", execution_time_ms=elapsed_ms
                )
            except OSError as e:
                logger.exception("Failed to start the Python interpreter")
                raise InternalJudgeError(f"Failed to start interpreter: {e}") from e
            elapsed_ms = (time.perf_counter() - started) * 1000

        stderr, peak_bytes = _split_peak_memory(proc.stderr.decode("utf-8", errors="replace"))
        stdout = proc.stdout.decode("utf-8", errors="replace")

        if proc.returncode != 0:
            error_line = _sanitize_error_line(stderr) or f"Process exited with code {proc.returncode}"
            if error_line.startswith("MemoryError"):
                raise MemoryLimitExceeded(
                    f"Memory limit exceeded ({request.memory_limit_mb}MB)",
                    execution_time_ms=elapsed_ms,
                    memory_usage_bytes=peak_bytes,
                )
            raise JudgeRuntimeError(error_line, execution_time_ms=elapsed_ms, memory_usage_bytes=peak_bytes)

        logger.info(f"Local run finished in {elapsed_ms:.1f}ms, peak memory {peak_bytes} bytes")
        return ExecutionOutcome(
            actual_output=stdout,
            execution_time_ms=elapsed_ms,
            memory_usage_bytes=peak_bytes,
        )
