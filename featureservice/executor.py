from __future__ import annotations

import logging
import time
from typing import Optional

from .backoff import LinearBackoff
from .codec import parse_response
from .errors import RequestError
from .metrics import MetricsCollector
from .models import DEFAULT_OUT_SR, AttemptOutcome, AttemptRecord, FeaturePage, Task, TaskState
from .transport import BaseTransport

logger = logging.getLogger(__name__)

MAX_RETRIES = 3


class RequestExecutor:
    """Runs one attempt of a page request and decides what happens next.

    Every attempt ends in exactly one of three outcomes:
    - SUCCEEDED: the decoded page is attached.
    - RETRYING: task.attempt was incremented; the caller re-runs the same
      descriptor after outcome.delay seconds.
    - FAILED_TERMINAL: the retry budget is spent (attempt == MAX_RETRIES).
    """

    def __init__(
        self,
        transport: BaseTransport,
        query_url: str,
        backoff: Optional[LinearBackoff] = None,
        metrics: Optional[MetricsCollector] = None,
        out_sr: int = DEFAULT_OUT_SR,
        max_retries: int = MAX_RETRIES,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._transport = transport
        self._query_url = query_url
        self._backoff = backoff or LinearBackoff()
        self._metrics = metrics
        self._out_sr = out_sr
        self._max_retries = max_retries
        self._log = log or logger

    def execute(self, task: Task) -> AttemptOutcome:
        start_ms = self._now_ms()
        task.state = TaskState.IN_FLIGHT
        try:
            raw = self._transport.fetch(self._query_url, task.descriptor.query_params(self._out_sr))
            payload = parse_response(raw)
        except RequestError as exc:
            exc.url = exc.url or self._query_url
            self._record(task, start_ms, error_type=exc.kind)
            return self._handle_failure(task, exc)
        except Exception as exc:  # noqa: BLE001
            error = RequestError(f"Request for a page of features failed: {exc}", url=self._query_url, code=500)
            error.__cause__ = exc
            self._record(task, start_ms, error_type=type(exc).__name__)
            return self._handle_failure(task, error)

        self._record(task, start_ms, error_type=None)
        task.state = TaskState.SUCCEEDED
        return AttemptOutcome(
            index=task.index,
            state=TaskState.SUCCEEDED,
            page=FeaturePage(index=task.index, descriptor=task.descriptor, payload=payload),
        )

    def _handle_failure(self, task: Task, error: RequestError) -> AttemptOutcome:
        if task.attempt >= self._max_retries:
            task.state = TaskState.FAILED_TERMINAL
            self._log.error(
                "Page %s failed after %s attempts: %s", task.index, task.attempt + 1, error
            )
            return AttemptOutcome(index=task.index, state=TaskState.FAILED_TERMINAL, error=error)

        task.attempt += 1
        task.state = TaskState.RETRYING
        delay = self._backoff.get_sleep(task.attempt)
        self._log.info(
            "Re-requesting page %s attempt %s in %.2fs (%s)", task.index, task.attempt, delay, error
        )
        return AttemptOutcome(index=task.index, state=TaskState.RETRYING, error=error, delay=delay)

    def _record(self, task: Task, start_ms: int, error_type: Optional[str]) -> None:
        if not self._metrics:
            return
        self._metrics.record(
            AttemptRecord(
                index=task.index,
                attempt=task.attempt,
                success=error_type is None,
                latency_ms=self._now_ms() - start_ms,
                error_type=error_type,
            )
        )

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)
