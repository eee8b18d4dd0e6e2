"""Random sample generation for terminal price paths."""
from __future__ import annotations

import math
from typing import Optional, Sequence

import numpy as np
import torch

RNG_METHODS: tuple[str, ...] = ("normal", "box-muller")


def spawn_seeds(base_seed: Optional[int], count: int) -> list[int]:
    """Derive ``count`` independent 63-bit seeds from one base seed."""
    sequence = np.random.SeedSequence(base_seed)
    return [int(child.generate_state(1, dtype=np.uint64)[0] >> np.uint64(1)) for child in sequence.spawn(count)]


class PathGenerator:
    """Standard normal deviates driving geometric Brownian motion terminal prices."""

    def __init__(
        self,
        seed: Optional[int] = None,
        *,
        device: torch.device = torch.device("cpu"),
        dtype: torch.dtype = torch.float32,
        method: str = "normal",
    ) -> None:
        if method not in RNG_METHODS:
            raise ValueError(f"Unknown sampling method {method!r}; expected one of {RNG_METHODS}.")
        self.device = device
        self.dtype = dtype
        self.method = method
        self.generator = torch.Generator(device=device)
        if seed is not None:
            self.generator.manual_seed(seed)
        else:
            self.generator.manual_seed(torch.seed())

    def uniforms(self, shape: Sequence[int]) -> torch.Tensor:
        return torch.rand(tuple(shape), generator=self.generator, dtype=self.dtype, device=self.device)

    def normals(self, shape: Sequence[int]) -> torch.Tensor:
        if self.method == "normal":
            return torch.randn(tuple(shape), generator=self.generator, dtype=self.dtype, device=self.device)
        return self._box_muller(tuple(shape))

    def _box_muller(self, shape: tuple[int, ...]) -> torch.Tensor:
        # Open interval on u1 keeps log() finite.
        u1 = self.uniforms(shape).clamp_(min=torch.finfo(self.dtype).tiny)
        u2 = self.uniforms(shape)
        return torch.sqrt(-2.0 * torch.log(u1)) * torch.cos(2.0 * math.pi * u2)
