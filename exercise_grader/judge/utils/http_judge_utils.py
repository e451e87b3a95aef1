import logging
import time
from typing import Any, Dict, Optional

import requests

from exercise_grader.judge.models import (
    ExecutionOutcome,
    InternalJudgeError,
    JudgeRequest,
    TimeLimitExceeded,
    failure_from_kind,
)
from exercise_grader.settings import JUDGE_EXECUTE_URL, JUDGE_POLL_INTERVAL, JUDGE_RESULT_URL

logger = logging.getLogger(__name__)


class HttpJudgeClient:
    """
    Delegate execution to a remote judge service.

    1. POST the request to the execute endpoint, which answers with an
       ``execution_id``.
    2. Poll the result endpoint until ``job_finished`` is true, giving up
       once the time limit plus grace has elapsed.
    3. Map the finished payload to an ExecutionOutcome, or to the typed
       failure named by its ``error_kind``.
    """

    def __init__(
        self,
        execute_url: Optional[str] = None,
        result_url: Optional[str] = None,
        poll_interval: float = JUDGE_POLL_INTERVAL,
        grace_seconds: float = 2.0,
        session: Optional[requests.Session] = None,
    ):
        self.execute_url = execute_url or JUDGE_EXECUTE_URL
        self.result_url = result_url or JUDGE_RESULT_URL
        if not self.execute_url:
            raise ValueError("JUDGE_EXECUTE_URL not configured")
        if not self.result_url:
            raise ValueError("JUDGE_RESULT_URL not configured")
        self.poll_interval = poll_interval
        self.grace_seconds = grace_seconds
        self.session = session or requests.Session()

    def _post_execution(self, request: JudgeRequest) -> Any:
        payload = {
            "code": request.code,
            "language": request.language.value,
            "test_case_input": request.test_case_input,
            "time_limit_seconds": request.time_limit_seconds,
            "memory_limit_mb": request.memory_limit_mb,
        }
        try:
            resp = self.session.post(self.execute_url, json=payload, timeout=10)
        except requests.RequestException as e:
            logger.error(f"Network error submitting code to judge: {e}")
            raise InternalJudgeError(f"Network error: {e}") from e

        if resp.status_code != 200:
            try:
                err_json = resp.json()
                detail = err_json.get("detail") or err_json.get("error") or err_json
            except ValueError:
                detail = resp.text[:500]
            logger.error(f"Judge rejected execution request: status={resp.status_code}, detail={detail}")
            raise InternalJudgeError(f"Judge returned {resp.status_code}: {detail}")

        try:
            execution_id = resp.json().get("execution_id")
        except ValueError as e:
            logger.error(f"Error parsing judge response: {e}")
            raise InternalJudgeError(f"Invalid JSON response: {e}") from e
        if execution_id is None:
            raise InternalJudgeError("Judge response has no execution_id")
        return execution_id

    def _poll_result(self, execution_id: Any, deadline: float) -> Dict[str, Any]:
        while True:
            try:
                resp = self.session.get(self.result_url, params={"execution_id": execution_id}, timeout=10)
            except requests.RequestException as e:
                logger.error(f"Network error fetching judge result for execution_id={execution_id}: {e}")
                raise InternalJudgeError(f"Network error: {e}") from e
            if resp.status_code != 200:
                raise InternalJudgeError(f"Failed to get execution result, status code: {resp.status_code}")
            try:
                data = resp.json()
            except ValueError as e:
                raise InternalJudgeError(f"Invalid JSON response: {e}") from e
            if data.get("job_finished", False):
                return data
            if time.monotonic() >= deadline:
                raise TimeLimitExceeded(f"Judge did not finish execution_id={execution_id} in time")
            time.sleep(self.poll_interval)

    def execute(self, request: JudgeRequest) -> ExecutionOutcome:
        deadline = time.monotonic() + request.time_limit_seconds + self.grace_seconds
        execution_id = self._post_execution(request)
        data = self._poll_result(execution_id, deadline)

        execution_time_ms = float(data.get("execution_time_ms") or 0.0)
        memory_usage_bytes = int(data.get("memory_usage_bytes") or 0)

        if data.get("error_kind") or data.get("error"):
            kind = data.get("error_kind") or "INTERNAL_JUDGE_ERROR"
            logger.info(f"Judge reported {kind} for execution_id={execution_id}")
            raise failure_from_kind(
                kind,
                str(data.get("error") or ""),
                execution_time_ms=execution_time_ms,
                memory_usage_bytes=memory_usage_bytes,
            )

        if "actual_output" not in data:
            raise InternalJudgeError(f"Missing expected fields in response: {data}")

        return ExecutionOutcome(
            actual_output=str(data["actual_output"]),
            execution_time_ms=execution_time_ms,
            memory_usage_bytes=memory_usage_bytes,
        )
