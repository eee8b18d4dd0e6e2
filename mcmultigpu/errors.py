"""Exception hierarchy for multi-device Monte Carlo pricing."""
from __future__ import annotations

from typing import Optional


class MonteCarloError(Exception):
    """Base class for all pricing run failures."""


class ConfigurationError(MonteCarloError, ValueError):
    """Raised for unusable run settings, such as an empty device list."""


class AllocationError(MonteCarloError, MemoryError):
    """Raised when the host batch arrays cannot be allocated."""


class InvalidInputError(MonteCarloError, ValueError):
    """Raised for degenerate option parameters."""


class DeviceError(MonteCarloError, RuntimeError):
    """Raised when a device context fails to open, run or close."""

    def __init__(self, message: str, *, device_index: Optional[int] = None) -> None:
        super().__init__(message)
        self.device_index = device_index

    def __str__(self) -> str:
        message = super().__str__()
        if self.device_index is None:
            return message
        return f"device #{self.device_index}: {message}"
