"""Monte Carlo pricing kernel for European call options."""
from __future__ import annotations

from typing import Optional

import torch

from .options import CONFIDENCE, EXPECTED, MATURITY, RATE, SPOT, STRIKE, VOLATILITY, OptionData, OptionValue
from .paths import PathGenerator
from .statistics import CONFIDENCE_Z, PathMoments

DEFAULT_PATH_N = 262144
# Upper bound on samples held by one launch: options in the block times paths in the chunk.
DEFAULT_MAX_SAMPLES = 1 << 24


def discounted_payoffs(data: torch.Tensor, normals: torch.Tensor) -> torch.Tensor:
    """Discounted call payoffs for a ``(k, 5)`` option block and ``(k, paths)`` normals."""
    spot = data[:, SPOT].unsqueeze(1)
    strike = data[:, STRIKE].unsqueeze(1)
    maturity = data[:, MATURITY].unsqueeze(1)
    rate = data[:, RATE].unsqueeze(1)
    volatility = data[:, VOLATILITY].unsqueeze(1)

    drift = (rate - 0.5 * volatility.pow(2)) * maturity
    diffusion = volatility * torch.sqrt(maturity)
    terminal = spot * torch.exp(drift + diffusion * normals)
    discount = torch.exp(-rate * maturity)
    return torch.clamp(terminal - strike, min=0.0) * discount


def _price_block(
    block: torch.Tensor,
    generator: PathGenerator,
    path_n: int,
    max_samples: int,
) -> torch.Tensor:
    n_options = block.shape[0]
    chunk = max(1, min(path_n, max_samples // max(n_options, 1)))
    moments = PathMoments(n_options, device=block.device)
    remaining = path_n
    while remaining > 0:
        size = min(chunk, remaining)
        normals = generator.normals((n_options, size))
        moments.update(discounted_payoffs(block, normals))
        remaining -= size

    out = torch.empty((n_options, 2), dtype=block.dtype, device=block.device)
    out[:, EXPECTED] = moments.mean.to(block.dtype)
    out[:, CONFIDENCE] = moments.confidence(CONFIDENCE_Z).to(block.dtype)
    return out


def price_options(
    data: torch.Tensor,
    generator: PathGenerator,
    path_n: int = DEFAULT_PATH_N,
    *,
    grid_size: Optional[int] = None,
    max_samples: int = DEFAULT_MAX_SAMPLES,
    out: Optional[torch.Tensor] = None,
) -> torch.Tensor:
    """Price every row of ``data`` and return ``(n, 2)`` expected/confidence values.

    Options are priced ``grid_size`` rows at a time, and each block walks its
    paths in chunks bounded by ``max_samples``. Results follow ``data``'s
    device and dtype unless ``out`` is given.
    """
    if path_n < 2:
        raise ValueError("At least two paths per option are required.")
    if max_samples <= 0:
        raise ValueError("Sample budget must be positive.")
    n_options = data.shape[0]
    if grid_size is None or grid_size <= 0:
        grid_size = max(n_options, 1)
    if out is None:
        out = torch.empty((n_options, 2), dtype=data.dtype, device=data.device)

    for start in range(0, n_options, grid_size):
        stop = min(start + grid_size, n_options)
        out[start:stop] = _price_block(data[start:stop], generator, path_n, max_samples)
    return out


def price_option(option: OptionData, generator: PathGenerator, path_n: int = DEFAULT_PATH_N) -> OptionValue:
    data = torch.tensor([option.as_row()], dtype=generator.dtype, device=generator.device)
    expected, confidence = price_options(data, generator, path_n)[0].tolist()
    return OptionValue(expected=expected, confidence=confidence)
