from __future__ import annotations


class LinearBackoff:
    """Retry delay that grows linearly with the attempt number.

    The n-th retry of a page waits n * unit seconds, so a page that fails
    every time is given up after unit * (1 + 2 + 3) seconds of waiting."""

    def __init__(self, unit_seconds: float = 1.0) -> None:
        if unit_seconds < 0:
            raise ValueError("unit_seconds must be >= 0")
        self._unit = unit_seconds

    def get_sleep(self, attempt: int) -> float:
        """Delay in seconds before running retry number `attempt` (1-based)."""
        return max(attempt, 0) * self._unit

    @property
    def unit(self) -> float:
        return self._unit
