"""Plots comparing Monte Carlo estimates with analytic prices."""
from __future__ import annotations

from typing import Tuple

import matplotlib.pyplot as plt
import numpy as np
import torch

from .executor import ExecutionResult
from .options import CONFIDENCE, EXPECTED, OptionBatch


__all__ = (
    "plot_price_comparison",
    "plot_device_timings",
)


def plot_price_comparison(
    batch: OptionBatch,
    reference: torch.Tensor,
    *,
    max_points: int = 2000,
    ax: plt.Axes | None = None,
) -> Tuple[plt.Figure, plt.Axes]:
    if ax is None:
        fig, ax = plt.subplots()
    else:
        fig = ax.figure

    count = min(max_points, len(batch))
    ref = reference[:count].detach().cpu().numpy()
    values = batch.values[:count].detach().cpu().numpy()
    mask = np.isfinite(values).all(axis=1)
    ax.errorbar(
        ref[mask],
        values[mask, EXPECTED],
        yerr=values[mask, CONFIDENCE],
        fmt="o",
        markersize=3,
        alpha=0.7,
        elinewidth=0.8,
        color="#1f77b4",
    )
    if mask.any():
        lo = float(min(ref[mask].min(), values[mask, EXPECTED].min()))
        hi = float(max(ref[mask].max(), values[mask, EXPECTED].max()))
        ax.plot([lo, hi], [lo, hi], color="black", linewidth=1.0, linestyle="--")
    ax.set_xlabel("Black-Scholes price")
    ax.set_ylabel("Monte Carlo estimate")
    ax.set_title("Monte Carlo vs closed-form call prices")
    ax.grid(True, alpha=0.2)
    return fig, ax


def plot_device_timings(
    result: ExecutionResult,
    *,
    ax: plt.Axes | None = None,
) -> Tuple[plt.Figure, plt.Axes]:
    if ax is None:
        fig, ax = plt.subplots()
    else:
        fig = ax.figure

    labels = [f"#{outcome.plan.device.index}" for outcome in result.outcomes]
    times = [outcome.elapsed_ms or 0.0 for outcome in result.outcomes]
    colors = ["#1f77b4" if outcome.ok else "#d62728" for outcome in result.outcomes]
    ax.bar(labels, times, color=colors, edgecolor="black", alpha=0.8)
    ax.set_xlabel("Device")
    ax.set_ylabel("Elapsed time (ms)")
    ax.set_title(f"Device timings ({result.method})")
    ax.grid(True, axis="y", alpha=0.2)
    return fig, ax
