"""Per-run state shared by the execution strategies."""
from __future__ import annotations

from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Sequence

import torch

from .kernel import DEFAULT_MAX_SAMPLES
from .timing import StopWatch

RUN_TIMER = -1


@dataclass
class RunContext:
    """Owns the timers and worker handles of one pricing run."""

    dtype: torch.dtype = torch.float32
    rng_method: str = "normal"
    max_samples: int = DEFAULT_MAX_SAMPLES
    timers: dict[int, StopWatch] = field(default_factory=dict)
    workers: dict[int, Future] = field(default_factory=dict)

    def timer(self, key: int) -> StopWatch:
        if key not in self.timers:
            self.timers[key] = StopWatch()
        return self.timers[key]

    def run_timer(self) -> StopWatch:
        return self.timer(RUN_TIMER)

    def reset(self, device_indices: Sequence[int] = ()) -> None:
        """Clear worker handles and reset every timer before a run."""
        self.workers.clear()
        for index in device_indices:
            self.timer(index)
        self.run_timer()
        for timer in self.timers.values():
            timer.reset()
