"""Splitting an option batch into per-device plans."""
from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Iterator, Optional, Sequence

from .devices import DeviceInfo
from .errors import ConfigurationError
from .paths import spawn_seeds

logger = logging.getLogger(__name__)

SMALL_DEVICE_UNITS = 32
GRID_SIZE_MULTIPLIER = 40
SCALING_MODES: tuple[str, ...] = ("weak", "strong")


def adjust_problem_size(devices: Sequence[DeviceInfo], default_options: int, *, threshold: int = SMALL_DEVICE_UNITS) -> int:
    """Shrink the per-device option count when any device is small."""
    n_options = default_options
    for device in devices:
        if device.compute_units <= threshold:
            n_options = min(n_options, max(1, device.compute_units // 2))
    if n_options != default_options:
        logger.info("Reduced per-device problem size from %d to %d options", default_options, n_options)
    return n_options


def scale_problem_size(n_options: int, device_count: int, scaling: str) -> int:
    if scaling not in SCALING_MODES:
        raise ConfigurationError(f"Unknown scaling mode {scaling!r}; expected one of {SCALING_MODES}.")
    return n_options * device_count if scaling == "weak" else n_options


def adjust_grid_size(device: DeviceInfo, default_grid_size: int, *, multiplier: int = GRID_SIZE_MULTIPLIER) -> int:
    return min(default_grid_size, device.compute_units * multiplier)


@dataclass(frozen=True)
class OptionBatchPlan:
    """One device's contiguous share of the batch."""

    device: DeviceInfo
    offset: int
    option_count: int
    path_n: int
    grid_size: int
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if self.offset < 0:
            raise ConfigurationError("Plan offset must be non-negative.")
        if self.option_count < 0:
            raise ConfigurationError("Plan option count must be non-negative.")
        if self.path_n < 2:
            raise ConfigurationError("At least two paths per option are required.")
        if self.grid_size < 0:
            raise ConfigurationError("Grid size must be non-negative.")

    @property
    def stop(self) -> int:
        return self.offset + self.option_count

    @property
    def slice(self) -> slice:
        return slice(self.offset, self.stop)


@dataclass(frozen=True)
class WorkPartition:
    """Plans that together cover ``[0, total_options)`` exactly once."""

    plans: tuple[OptionBatchPlan, ...]
    total_options: int

    def __post_init__(self) -> None:
        if not self.plans:
            raise ConfigurationError("A partition needs at least one plan.")
        cursor = 0
        for position, plan in enumerate(self.plans):
            if plan.device.index != position:
                raise ConfigurationError("Plans must be ordered by device index.")
            if plan.offset != cursor:
                raise ConfigurationError(f"Plan for device #{plan.device.index} starts at {plan.offset}, expected {cursor}.")
            cursor = plan.stop
        if cursor != self.total_options:
            raise ConfigurationError(f"Plans cover {cursor} options, expected {self.total_options}.")

    def __iter__(self) -> Iterator[OptionBatchPlan]:
        return iter(self.plans)

    def __len__(self) -> int:
        return len(self.plans)


def partition_options(
    total_options: int,
    devices: Sequence[DeviceInfo],
    path_n: int,
    *,
    seed: Optional[int] = None,
    grid_multiplier: int = GRID_SIZE_MULTIPLIER,
) -> WorkPartition:
    """Split ``total_options`` evenly across ``devices``; low-index devices take the remainder."""
    if not devices:
        raise ConfigurationError("No compute devices available.")
    if total_options < 0:
        raise ConfigurationError("Total option count must be non-negative.")

    n_devices = len(devices)
    counts = [total_options // n_devices] * n_devices
    for index in range(total_options % n_devices):
        counts[index] += 1

    seeds = spawn_seeds(seed, n_devices)
    plans = []
    base = 0
    for device, count, plan_seed in zip(devices, counts, seeds):
        plans.append(
            OptionBatchPlan(
                device=device,
                offset=base,
                option_count=count,
                path_n=path_n,
                grid_size=adjust_grid_size(device, count, multiplier=grid_multiplier),
                seed=plan_seed,
            )
        )
        base += count
    return WorkPartition(plans=tuple(plans), total_options=total_options)
