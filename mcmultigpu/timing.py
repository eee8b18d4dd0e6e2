"""Monotonic stopwatch used for device and run timings."""
from __future__ import annotations

import time
from typing import Optional


class StopWatch:
    """Accumulating wall-clock timer in milliseconds."""

    def __init__(self) -> None:
        self._elapsed = 0.0
        self._started: Optional[float] = None

    @property
    def running(self) -> bool:
        return self._started is not None

    def reset(self) -> None:
        self._elapsed = 0.0
        self._started = None

    def start(self) -> None:
        if self._started is None:
            self._started = time.perf_counter()

    def stop(self) -> None:
        if self._started is not None:
            self._elapsed += time.perf_counter() - self._started
            self._started = None

    def elapsed_ms(self) -> float:
        elapsed = self._elapsed
        if self._started is not None:
            elapsed += time.perf_counter() - self._started
        return elapsed * 1000.0
