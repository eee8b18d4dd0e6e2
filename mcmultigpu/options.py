"""Option inputs, outputs and the batch arena that holds them."""
from __future__ import annotations

from dataclasses import dataclass
import logging
import math

import torch

from .errors import AllocationError, InvalidInputError

logger = logging.getLogger(__name__)

UNSET = -1.0

# Column layout of the option data arena.
SPOT, STRIKE, MATURITY, RATE, VOLATILITY = range(5)
# Column layout of the result arena.
EXPECTED, CONFIDENCE = range(2)

DEFAULT_BATCH_SEED = 123


@dataclass(frozen=True)
class OptionData:
    """Parameters of one European call option."""

    spot: float
    strike: float
    maturity: float
    rate: float
    volatility: float

    def __post_init__(self) -> None:
        for name in ("spot", "strike", "maturity", "rate", "volatility"):
            if not math.isfinite(getattr(self, name)):
                raise InvalidInputError(f"Option {name} must be finite.")

    def as_row(self) -> list[float]:
        return [self.spot, self.strike, self.maturity, self.rate, self.volatility]


@dataclass
class OptionValue:
    """Monte Carlo estimate for one option."""

    expected: float = UNSET
    confidence: float = UNSET

    @property
    def is_set(self) -> bool:
        return self.expected != UNSET and self.confidence != UNSET


class OptionBatch:
    """Owns the option data and result arrays for a whole run.

    Plans address the arena through (offset, count) ranges; the views handed
    out by :meth:`data_view` and :meth:`values_view` share storage with the
    arena, so writes through a values view land in the batch directly.
    """

    def __init__(self, data: torch.Tensor) -> None:
        if data.dim() != 2 or data.shape[1] != 5:
            raise ValueError("Option data must have shape (n, 5).")
        self.data = data.to(device="cpu", dtype=torch.float32).contiguous()
        try:
            self.values = torch.full((self.data.shape[0], 2), UNSET, dtype=torch.float32)
        except (MemoryError, RuntimeError) as exc:
            raise AllocationError(f"Cannot allocate results for {self.data.shape[0]} options: {exc}") from exc

    @classmethod
    def from_options(cls, options: list[OptionData]) -> "OptionBatch":
        if not options:
            return cls(torch.empty((0, 5), dtype=torch.float32))
        return cls(torch.tensor([option.as_row() for option in options], dtype=torch.float32))

    def __len__(self) -> int:
        return self.data.shape[0]

    def option(self, index: int) -> OptionData:
        row = self.data[index].tolist()
        return OptionData(*row)

    def value(self, index: int) -> OptionValue:
        expected, confidence = self.values[index].tolist()
        return OptionValue(expected=expected, confidence=confidence)

    def data_view(self, offset: int, count: int) -> torch.Tensor:
        self._check_range(offset, count)
        return self.data[offset : offset + count]

    def values_view(self, offset: int, count: int) -> torch.Tensor:
        self._check_range(offset, count)
        return self.values[offset : offset + count]

    def reset_values(self) -> None:
        self.values.fill_(UNSET)

    def unset_indices(self) -> list[int]:
        mask = (self.values == UNSET).any(dim=1)
        return torch.nonzero(mask).flatten().tolist()

    def failed_indices(self) -> list[int]:
        mask = torch.isnan(self.values).any(dim=1)
        return torch.nonzero(mask).flatten().tolist()

    def _check_range(self, offset: int, count: int) -> None:
        if offset < 0 or count < 0 or offset + count > len(self):
            raise IndexError(f"Range [{offset}, {offset + count}) outside batch of {len(self)} options.")


def _uniform(generator: torch.Generator, n: int, low: float, high: float) -> torch.Tensor:
    t = torch.rand((n,), generator=generator, dtype=torch.float32)
    return (1.0 - t) * low + t * high


def generate_option_batch(n_options: int, *, seed: int = DEFAULT_BATCH_SEED) -> OptionBatch:
    """Build the benchmark batch: random spot, strike and maturity at fixed rate and volatility."""
    if n_options < 0:
        raise ValueError("Number of options must be non-negative.")
    generator = torch.Generator(device="cpu")
    generator.manual_seed(seed)

    try:
        data = torch.empty((n_options, 5), dtype=torch.float32)
    except (MemoryError, RuntimeError) as exc:
        raise AllocationError(f"Cannot allocate input data for {n_options} options: {exc}") from exc

    data[:, SPOT] = _uniform(generator, n_options, 5.0, 50.0)
    data[:, STRIKE] = _uniform(generator, n_options, 10.0, 25.0)
    data[:, MATURITY] = _uniform(generator, n_options, 1.0, 5.0)
    data[:, RATE] = 0.06
    data[:, VOLATILITY] = 0.10
    logger.debug("Generated %d options with seed %d", n_options, seed)
    return OptionBatch(data)
