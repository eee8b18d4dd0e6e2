"""Closed-form Black-Scholes call prices used as the accuracy reference."""
from __future__ import annotations

import math

import torch

from .errors import InvalidInputError
from .options import MATURITY, RATE, SPOT, STRIKE, VOLATILITY, OptionData


def _normal_cdf(x: float) -> float:
    return 0.5 * math.erfc(-x / math.sqrt(2.0))


def _validate(spot: float, strike: float, maturity: float, volatility: float) -> None:
    if not (spot > 0 and strike > 0):
        raise InvalidInputError("Spot and strike must be positive.")
    if not maturity > 0:
        raise InvalidInputError("Time to maturity must be positive.")
    if not volatility > 0:
        raise InvalidInputError("Volatility must be positive.")


def black_scholes_call(option: OptionData) -> float:
    s, x, t, r, v = option.spot, option.strike, option.maturity, option.rate, option.volatility
    _validate(s, x, t, v)
    sqrt_t = math.sqrt(t)
    d1 = (math.log(s / x) + (r + 0.5 * v * v) * t) / (v * sqrt_t)
    d2 = d1 - v * sqrt_t
    return s * _normal_cdf(d1) - x * math.exp(-r * t) * _normal_cdf(d2)


def black_scholes_call_batch(data: torch.Tensor) -> torch.Tensor:
    """Vectorised call prices for a ``(n, 5)`` option data tensor, in float64."""
    values = data.to(torch.float64)
    s, x, t = values[:, SPOT], values[:, STRIKE], values[:, MATURITY]
    r, v = values[:, RATE], values[:, VOLATILITY]
    if values.shape[0]:
        if not torch.isfinite(values).all():
            raise InvalidInputError("Option parameters must be finite.")
        if bool((s <= 0).any() or (x <= 0).any()):
            raise InvalidInputError("Spot and strike must be positive.")
        if bool((t <= 0).any()):
            raise InvalidInputError("Time to maturity must be positive.")
        if bool((v <= 0).any()):
            raise InvalidInputError("Volatility must be positive.")

    sqrt_t = torch.sqrt(t)
    d1 = (torch.log(s / x) + (r + 0.5 * v.pow(2)) * t) / (v * sqrt_t)
    d2 = d1 - v * sqrt_t
    return s * torch.special.ndtr(d1) - x * torch.exp(-r * t) * torch.special.ndtr(d2)
