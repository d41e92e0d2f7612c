from __future__ import annotations

import json
import logging
import math
from typing import Optional

from .models import ThrottleState

logger = logging.getLogger(__name__)

SUCCESS_INCREMENT = 0.1
FAILURE_DECREMENT = 0.5


class ThrottleController:
    """Adaptive concurrency ceiling for page requests.

    Climbs slowly on success and backs off fast on failure. Not thread-safe
    on its own: the page queue calls it under its condition lock."""

    def __init__(
        self,
        max_concurrency: int,
        increment: float = SUCCESS_INCREMENT,
        decrement: float = FAILURE_DECREMENT,
        log: Optional[logging.Logger] = None,
    ) -> None:
        max_concurrency = max(1, int(max_concurrency))
        self._state = ThrottleState(current=float(max_concurrency), max=max_concurrency)
        self._increment = increment
        self._decrement = decrement
        self._log = log or logger

    def on_success(self) -> None:
        self._adjust(self._increment)

    def on_failure(self) -> None:
        self._adjust(-self._decrement)

    def _adjust(self, delta: float) -> None:
        old_limit = self.limit
        self._state.current = min(float(self._state.max), max(1.0, self._state.current + delta))
        new_limit = self.limit
        if new_limit != old_limit:
            self._log.debug(
                json.dumps(
                    {"event": "throttle", "old_limit": old_limit, "new_limit": new_limit, "current": self._state.current},
                    ensure_ascii=False,
                )
            )

    @property
    def limit(self) -> int:
        """Live worker count: floor(current), never below 1."""
        return max(1, int(math.floor(self._state.current)))

    @property
    def current(self) -> float:
        return self._state.current

    @property
    def max(self) -> int:
        return self._state.max
