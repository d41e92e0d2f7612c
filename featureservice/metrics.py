from __future__ import annotations

import time
from collections import deque
from dataclasses import asdict
from threading import Lock
from typing import Deque, Dict, List

from .models import AttemptRecord, FetchStats


class MetricsCollector:
    """Thread-safe collector of per-attempt page request outcomes.

    Worker threads record one AttemptRecord per request attempt;
    snapshot() aggregates everything recorded so far."""

    def __init__(self, maxlen: int = 100000) -> None:
        self._lock = Lock()
        self._events: Deque[tuple[float, AttemptRecord]] = deque(maxlen=maxlen)

    def record(self, record: AttemptRecord) -> None:
        with self._lock:
            self._events.append((time.time(), record))

    def snapshot(self) -> FetchStats:
        now = time.time()
        with self._lock:
            events: List[AttemptRecord] = [e for _, e in self._events]
        total = len(events)
        success_count = sum(1 for e in events if e.success)
        timeout_count = sum(1 for e in events if e.error_type == "timeout")
        retry_count = sum(1 for e in events if e.attempt > 0)
        avg_latency_ms = (sum(e.latency_ms for e in events) / total) if total else 0.0

        return FetchStats(
            total_attempts=total,
            success_count=success_count,
            failure_count=total - success_count,
            timeout_count=timeout_count,
            retry_count=retry_count,
            avg_latency_ms=avg_latency_ms,
            timestamp=now,
        )

    def export_json(self) -> List[Dict]:
        """Export all recorded attempts as a list of dictionaries."""
        with self._lock:
            return [{"timestamp": ts, **asdict(e)} for ts, e in self._events]
