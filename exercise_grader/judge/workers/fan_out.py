from collections import deque
import logging
import queue
import threading
import time
from typing import Dict, List, Optional, Sequence, Tuple

from exercise_grader.errors import RunCancelled
from exercise_grader.judge.models import (
    CallOutcome,
    InternalJudgeError,
    JudgeClient,
    JudgeFailure,
    JudgeRequest,
    TimeLimitExceeded,
)

logger = logging.getLogger(__name__)


class JudgeFanOut:
    """
    Issue one judge call per request, at most ``max_workers`` at a time.

    Every call gets its own thread. A call that has not answered within its
    time limit plus ``grace_seconds`` (measured from when it started) is
    abandoned as TimeLimitExceeded and its slot is handed to the next
    request, so a hung judge call never holds up the others. Whatever an
    abandoned call returns later is dropped.

    Results come back in request order, regardless of completion order.
    """

    def __init__(
        self,
        judge: JudgeClient,
        max_workers: int = 4,
        grace_seconds: float = 2.0,
        poll_interval: float = 0.05,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.judge = judge
        self.max_workers = max_workers
        self.grace_seconds = grace_seconds
        self.poll_interval = poll_interval

    def _call(self, index: int, request: JudgeRequest, completed: "queue.Queue[Tuple[int, CallOutcome]]") -> None:
        try:
            result = CallOutcome.from_outcome(self.judge.execute(request))
        except JudgeFailure as e:
            result = CallOutcome.from_failure(e)
        except Exception as e:
            logger.exception(f"Judge client crashed on request #{index}")
            result = CallOutcome.from_failure(InternalJudgeError(f"Judge client crashed: {e}"))
        completed.put((index, result))

    def run(
        self,
        requests: Sequence[JudgeRequest],
        cancel_event: Optional[threading.Event] = None,
    ) -> List[CallOutcome]:
        """Run every request and join the results; raises RunCancelled if ``cancel_event`` fires."""
        results: List[Optional[CallOutcome]] = [None] * len(requests)
        completed: "queue.Queue[Tuple[int, CallOutcome]]" = queue.Queue()
        pending = deque(range(len(requests)))
        active: Dict[int, float] = {}

        def launch() -> None:
            while pending and len(active) < self.max_workers:
                index = pending.popleft()
                active[index] = time.monotonic()
                threading.Thread(
                    target=self._call,
                    args=(index, requests[index], completed),
                    name=f"judge-call-{index}",
                    daemon=True,
                ).start()

        launch()
        while active:
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Run cancelled with {len(active)} judge call(s) in flight, results discarded")
                raise RunCancelled("Run was cancelled before all test cases finished")

            try:
                index, result = completed.get(timeout=self.poll_interval)
            except queue.Empty:
                pass
            else:
                # Calls abandoned on timeout are no longer active
                if index in active:
                    del active[index]
                    results[index] = result

            now = time.monotonic()
            for index, started_at in list(active.items()):
                budget = requests[index].time_limit_seconds + self.grace_seconds
                if now - started_at > budget:
                    logger.warning(f"Judge call #{index} gave no answer within {budget:.1f}s, abandoning it")
                    del active[index]
                    results[index] = CallOutcome.from_failure(
                        TimeLimitExceeded(
                            f"No judge response within {budget:.1f}s",
                            execution_time_ms=budget * 1000,
                        )
                    )
            launch()

        return results
