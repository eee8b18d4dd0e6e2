"""Streaming reduction of per-path payoff samples."""
from __future__ import annotations

from dataclasses import dataclass, field
import math

import torch

CONFIDENCE_Z = 1.96


@dataclass
class PathMoments:
    """Count, mean and sum of squared deviations for a block of options.

    Chunks are merged with the pairwise update of Chan et al., so the
    variance never goes through the ``sum(x^2) - sum(x)^2 / n`` form.
    """

    n_options: int
    device: torch.device = torch.device("cpu")
    count: int = 0
    mean: torch.Tensor = field(init=False)
    m2: torch.Tensor = field(init=False)

    def __post_init__(self) -> None:
        self.mean = torch.zeros(self.n_options, dtype=torch.float64, device=self.device)
        self.m2 = torch.zeros(self.n_options, dtype=torch.float64, device=self.device)

    def update(self, samples: torch.Tensor) -> None:
        """Fold a ``(n_options, chunk)`` block of samples into the moments."""
        if samples.dim() != 2 or samples.shape[0] != self.n_options:
            raise ValueError("Samples must have shape (n_options, chunk).")
        chunk = samples.shape[1]
        if chunk == 0:
            return
        values = samples.to(torch.float64)
        chunk_mean = values.mean(dim=1)
        chunk_m2 = (values - chunk_mean.unsqueeze(1)).pow(2).sum(dim=1)

        total = self.count + chunk
        delta = chunk_mean - self.mean
        self.mean = self.mean + delta * (chunk / total)
        self.m2 = self.m2 + chunk_m2 + delta.pow(2) * (self.count * chunk / total)
        self.count = total

    def std(self) -> torch.Tensor:
        if self.count < 2:
            raise ValueError("At least two samples are required for a standard deviation.")
        return torch.sqrt(self.m2 / (self.count - 1))

    def confidence(self, z: float = CONFIDENCE_Z) -> torch.Tensor:
        return z * self.std() / math.sqrt(self.count)
