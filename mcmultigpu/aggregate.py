"""Accuracy and throughput summaries for a completed run."""
from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Optional

import torch

from .analytic import black_scholes_call_batch
from .executor import ExecutionResult
from .options import CONFIDENCE, EXPECTED, OptionBatch

DELTA_THRESHOLD = 1e-6
RESERVE_PASS_LEVEL = 1.0


@dataclass
class AccuracyReport:
    l1_norm: float
    average_reserve: float
    option_count: int
    failed_count: int = 0

    @property
    def passed(self) -> bool:
        return self.average_reserve > RESERVE_PASS_LEVEL


@dataclass
class DeviceStatistics:
    device_index: int
    device_name: str
    option_count: int
    path_n: int
    elapsed_ms: Optional[float]
    options_per_second: Optional[float]
    error: Optional[str] = None


def compare_with_reference(batch: OptionBatch, reference: Optional[torch.Tensor] = None) -> AccuracyReport:
    """Compare Monte Carlo estimates against analytic prices across the batch.

    ``average_reserve`` is the sum of ``confidence / delta`` over options
    with ``delta > 1e-6`` divided by the total option count, not by the
    number of contributing options. Failed (NaN) options add nothing to the
    sums but still count in that divisor.
    """
    n_options = len(batch)
    if reference is None:
        reference = black_scholes_call_batch(batch.data)
    reference = reference.to(torch.float64)
    expected = batch.values[:, EXPECTED].to(torch.float64)
    confidence = batch.values[:, CONFIDENCE].to(torch.float64)

    valid = ~(torch.isnan(expected) | torch.isnan(confidence))
    delta = (reference - expected).abs()[valid]
    sum_delta = float(delta.sum())
    sum_ref = float(reference[valid].abs().sum())

    contributing = delta > DELTA_THRESHOLD
    sum_reserve = float((confidence[valid][contributing] / delta[contributing]).sum())

    l1_norm = sum_delta / sum_ref if sum_ref > 0 else math.nan
    average_reserve = sum_reserve / n_options if n_options else 0.0
    return AccuracyReport(
        l1_norm=l1_norm,
        average_reserve=average_reserve,
        option_count=n_options,
        failed_count=int((~valid).sum()),
    )


def device_statistics(result: ExecutionResult, total_options: int) -> list[DeviceStatistics]:
    """Per-plan statistics; throughput is total options over each elapsed time."""
    stats = []
    for outcome in result.outcomes:
        elapsed = outcome.elapsed_ms
        rate = total_options / (elapsed * 0.001) if elapsed else None
        stats.append(
            DeviceStatistics(
                device_index=outcome.plan.device.index,
                device_name=outcome.plan.device.name,
                option_count=outcome.plan.option_count,
                path_n=outcome.plan.path_n,
                elapsed_ms=elapsed,
                options_per_second=rate,
                error=None if outcome.ok else str(outcome.error),
            )
        )
    return stats
