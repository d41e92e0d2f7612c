from __future__ import annotations

import heapq
import itertools
import json
import logging
import threading
import time
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Deque, Iterable, Iterator, List, Optional, Set, Tuple

from .errors import PagingAborted
from .executor import RequestExecutor
from .models import AttemptOutcome, FeaturePage, PageDescriptor, Task, TaskState
from .throttle import ThrottleController

logger = logging.getLogger(__name__)


class _Run:
    """Bookkeeping for one submit() call. Only touched under the run's condition."""

    def __init__(self, tasks: List[Task]) -> None:
        self.tasks = tasks
        self.pending: Deque[Task] = deque(tasks)
        self.retrying: List[Tuple[float, int, Task]] = []
        self.completed: Deque[AttemptOutcome] = deque()
        self.in_flight = 0
        self.closed = False
        self.cv = threading.Condition(threading.Lock())
        self.futures: Set[Future] = set()
        self._seq = itertools.count()

    def schedule_retry(self, due: float, task: Task) -> None:
        heapq.heappush(self.retrying, (due, next(self._seq), task))

    def promote_due(self, now: float) -> None:
        while self.retrying and self.retrying[0][0] <= now:
            _, _, task = heapq.heappop(self.retrying)
            task.state = TaskState.PENDING
            self.pending.append(task)

    def next_due_in(self, now: float) -> Optional[float]:
        if not self.retrying:
            return None
        return max(0.0, self.retrying[0][0] - now)

    @property
    def drained(self) -> bool:
        return not self.pending and not self.retrying and not self.completed and self.in_flight == 0


class PageQueue:
    """Executes page descriptors on a thread pool whose live size follows the throttle.

    The thread iterating submit()'s generator is the single coordination
    point: it dispatches tasks, schedules retries and adjusts the throttle.
    Worker threads only run the executor and report the outcome back.
    Retries wait on a timer heap, not in a worker.
    """

    def __init__(
        self,
        executor: RequestExecutor,
        throttle: ThrottleController,
        log: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._executor = executor
        self._throttle = throttle
        self._log = log or logger
        self._clock = clock

    @property
    def throttle(self) -> ThrottleController:
        return self._throttle

    def submit(self, descriptors: Iterable[PageDescriptor]) -> Iterator[FeaturePage]:
        """Yield pages in completion order; raise PagingAborted if any page fails terminally."""
        tasks = [Task(descriptor=d, index=i) for i, d in enumerate(descriptors)]
        return self._run(_Run(tasks))

    def _run(self, run: _Run) -> Iterator[FeaturePage]:
        pool = ThreadPoolExecutor(max_workers=self._throttle.max, thread_name_prefix="featureservice-page")
        try:
            while True:
                page = self._next_page(run, pool)
                if page is None:
                    return
                yield page
        finally:
            self._close(run, pool)

    def _next_page(self, run: _Run, pool: ThreadPoolExecutor) -> Optional[FeaturePage]:
        with run.cv:
            while True:
                now = self._clock()
                run.promote_due(now)
                page = None
                # outcomes first: an abort must happen before anything else is dispatched
                if run.completed:
                    page = self._handle_outcome(run, run.completed.popleft(), now)
                    if page is None:
                        continue
                self._dispatch(run, pool)
                if page is not None:
                    return page
                if run.drained:
                    return None
                run.cv.wait(run.next_due_in(now))

    def _dispatch(self, run: _Run, pool: ThreadPoolExecutor) -> None:
        while run.pending and run.in_flight < self._throttle.limit:
            task = run.pending.popleft()
            task.state = TaskState.IN_FLIGHT
            run.in_flight += 1
            run.futures.add(pool.submit(self._work, run, task))

    def _work(self, run: _Run, task: Task) -> None:
        outcome: Optional[AttemptOutcome] = None
        try:
            outcome = self._executor.execute(task)
        finally:
            with run.cv:
                run.in_flight -= 1
                # results landing after an abort are dropped
                if outcome is not None and not run.closed:
                    run.completed.append(outcome)
                run.cv.notify_all()

    def _handle_outcome(self, run: _Run, outcome: AttemptOutcome, now: float) -> Optional[FeaturePage]:
        if outcome.state is TaskState.SUCCEEDED:
            self._throttle.on_success()
            return outcome.page

        self._throttle.on_failure()
        task = run.tasks[outcome.index]
        if outcome.state is TaskState.RETRYING:
            run.schedule_retry(now + outcome.delay, task)
            return None

        self._log.error(
            json.dumps(
                {
                    "event": "abort",
                    "page": outcome.index,
                    "attempts": task.attempt + 1,
                    "pending": len(run.pending) + len(run.retrying),
                    "in_flight": run.in_flight,
                    "error": str(outcome.error),
                },
                ensure_ascii=False,
            )
        )
        raise PagingAborted.from_error(outcome.error)

    @staticmethod
    def _close(run: _Run, pool: ThreadPoolExecutor) -> None:
        with run.cv:
            run.closed = True
            run.pending.clear()
            run.retrying.clear()
            run.completed.clear()
            futures = list(run.futures)
        for fut in futures:
            fut.cancel()
        pool.shutdown(wait=False, cancel_futures=True)
