"""Compute device discovery and scoped device contexts."""
from __future__ import annotations

import contextlib
from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Optional

import torch

from .errors import ConfigurationError, DeviceError
from .kernel import DEFAULT_MAX_SAMPLES, price_options
from .options import OptionBatch
from .paths import PathGenerator

if TYPE_CHECKING:
    from .partition import OptionBatchPlan

logger = logging.getLogger(__name__)

DEVICE_KINDS: tuple[str, ...] = ("auto", "cpu", "cuda")


@dataclass(frozen=True)
class DeviceInfo:
    """One compute device the batch can be spread over."""

    index: int
    name: str
    torch_device: torch.device
    compute_units: int

    @property
    def is_cuda(self) -> bool:
        return self.torch_device.type == "cuda"


def resolve_device_kind(device_arg: str) -> str:
    if device_arg not in DEVICE_KINDS:
        raise ConfigurationError(f"Unknown device kind {device_arg!r}; expected one of {DEVICE_KINDS}.")
    if device_arg == "auto":
        return "cuda" if torch.cuda.is_available() else "cpu"
    if device_arg == "cuda" and not torch.cuda.is_available():
        raise ConfigurationError("CUDA requested but not available.")
    return device_arg


def _cuda_devices() -> list[DeviceInfo]:
    devices = []
    for index in range(torch.cuda.device_count()):
        props = torch.cuda.get_device_properties(index)
        devices.append(
            DeviceInfo(
                index=index,
                name=props.name,
                torch_device=torch.device("cuda", index),
                compute_units=props.multi_processor_count,
            )
        )
    return devices


def _cpu_devices(count: int) -> list[DeviceInfo]:
    # Logical CPU devices share the host; each gets an even share of the intra-op threads.
    units = max(1, torch.get_num_threads() // max(count, 1))
    return [
        DeviceInfo(index=index, name=f"CPU (logical device {index})", torch_device=torch.device("cpu"), compute_units=units)
        for index in range(count)
    ]


def enumerate_devices(device_arg: str = "auto", limit: Optional[int] = None) -> list[DeviceInfo]:
    """Return the first ``limit`` available devices of the requested kind.

    On the CPU ``limit`` is the number of logical devices to create and
    defaults to one.
    """
    if limit is not None and limit < 1:
        raise ConfigurationError("Device count must be at least 1.")
    kind = resolve_device_kind(device_arg)
    if kind == "cuda":
        devices = _cuda_devices()
        if limit is not None:
            devices = devices[:limit]
    else:
        devices = _cpu_devices(limit or 1)
    if not devices:
        raise ConfigurationError("No compute devices found.")
    logger.info("Selected %d %s device(s)", len(devices), kind)
    return devices


class DeviceContext:
    """Scoped ownership of one device's queue, input copy and outputs for a plan.

    Entering opens the device and runs the init step; leaving always tears
    everything down, including when initialisation fails.
    """

    def __init__(
        self,
        plan: "OptionBatchPlan",
        batch: OptionBatch,
        *,
        dtype: torch.dtype = torch.float32,
        rng_method: str = "normal",
        max_samples: int = DEFAULT_MAX_SAMPLES,
    ) -> None:
        self.plan = plan
        self.batch = batch
        self.dtype = dtype
        self.rng_method = rng_method
        self.max_samples = max_samples
        self.stream: Optional[torch.cuda.Stream] = None
        self.generator: Optional[PathGenerator] = None
        self._inputs: Optional[torch.Tensor] = None
        self._outputs: Optional[torch.Tensor] = None
        self._barrier: Optional[torch.cuda.Event] = None
        self._open = False

    @property
    def device(self) -> torch.device:
        return self.plan.device.torch_device

    def __enter__(self) -> "DeviceContext":
        self.open()
        try:
            self.initialize()
        except BaseException:
            self.close()
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _queue(self):
        if self.stream is None:
            return contextlib.nullcontext()
        return torch.cuda.stream(self.stream)

    def _fail(self, action: str, exc: BaseException) -> DeviceError:
        return DeviceError(f"{action} failed on {self.plan.device.name}: {exc}", device_index=self.plan.device.index)

    def open(self) -> None:
        try:
            if self.plan.device.is_cuda:
                self.stream = torch.cuda.Stream(device=self.device)
        except RuntimeError as exc:
            raise self._fail("Opening device", exc) from exc
        self._open = True
        logger.debug("Opened device #%d for %d options", self.plan.device.index, self.plan.option_count)

    def initialize(self) -> None:
        try:
            with self._queue():
                host = self.batch.data_view(self.plan.offset, self.plan.option_count)
                self._inputs = host.to(device=self.device, dtype=self.dtype, non_blocking=True)
                self._outputs = torch.empty((self.plan.option_count, 2), dtype=self.dtype, device=self.device)
            self.generator = PathGenerator(self.plan.seed, device=self.device, dtype=self.dtype, method=self.rng_method)
        except RuntimeError as exc:
            raise self._fail("Initialisation", exc) from exc

    def launch(self) -> None:
        """Issue the pricing work on this device's queue."""
        if self._inputs is None or self.generator is None:
            raise DeviceError("Device context is not initialised.", device_index=self.plan.device.index)
        if self.plan.option_count == 0:
            return
        try:
            with self._queue():
                price_options(
                    self._inputs,
                    self.generator,
                    self.plan.path_n,
                    grid_size=self.plan.grid_size,
                    max_samples=self.max_samples,
                    out=self._outputs,
                )
        except RuntimeError as exc:
            raise self._fail("Pricing", exc) from exc

    def barrier(self) -> None:
        """Record a completion marker behind the work issued so far."""
        if self.stream is not None:
            self._barrier = torch.cuda.Event()
            self._barrier.record(self.stream)

    def synchronize(self) -> None:
        try:
            if self._barrier is not None:
                self._barrier.synchronize()
            elif self.stream is not None:
                self.stream.synchronize()
        except RuntimeError as exc:
            raise self._fail("Synchronisation", exc) from exc

    def collect(self) -> None:
        """Copy this plan's results into its range of the batch."""
        if self._outputs is None:
            raise DeviceError("No results to collect.", device_index=self.plan.device.index)
        target = self.batch.values_view(self.plan.offset, self.plan.option_count)
        target.copy_(self._outputs.to(device="cpu", dtype=target.dtype))

    def close(self) -> None:
        if not self._open:
            return
        self._open = False
        self._inputs = None
        self._outputs = None
        self._barrier = None
        self.generator = None
        if self.stream is not None:
            try:
                self.stream.synchronize()
            except RuntimeError as exc:
                raise self._fail("Teardown", exc) from exc
            finally:
                self.stream = None
        logger.debug("Closed device #%d", self.plan.device.index)
