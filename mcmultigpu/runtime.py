"""Run configuration and the end-to-end pricing run shared by the CLI and wizard."""
from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Optional, Sequence

import matplotlib.pyplot as plt
import torch

from .aggregate import AccuracyReport, DeviceStatistics, compare_with_reference, device_statistics
from .analytic import black_scholes_call_batch
from .context import RunContext
from .devices import DEVICE_KINDS, DeviceInfo, enumerate_devices
from .errors import ConfigurationError
from .executor import METHODS, ExecutionResult, get_strategy
from .kernel import DEFAULT_MAX_SAMPLES, DEFAULT_PATH_N
from .options import DEFAULT_BATCH_SEED, generate_option_batch
from .partition import SCALING_MODES, adjust_problem_size, partition_options, scale_problem_size
from .paths import RNG_METHODS
from .visualization import plot_device_timings, plot_price_comparison

logger = logging.getLogger(__name__)

DEFAULT_OPTIONS_PER_DEVICE = 8 * 1024
PRECISIONS: tuple[str, ...] = ("float32", "float64")


@dataclass(frozen=True)
class RunConfig:
    """Settings for one pricing run."""

    method: str = "streamed"
    scaling: str = "weak"
    qatest: bool = False
    options: int = DEFAULT_OPTIONS_PER_DEVICE
    paths: int = DEFAULT_PATH_N
    seed: Optional[int] = DEFAULT_BATCH_SEED
    device: str = "auto"
    devices: Optional[int] = None
    precision: str = "float32"
    rng: str = "normal"
    max_samples: int = DEFAULT_MAX_SAMPLES
    plot_dir: Optional[Path] = None
    show: bool = False
    program: str = "MonteCarloMultiGPU"

    def __post_init__(self) -> None:
        if self.method not in METHODS:
            raise ConfigurationError(f"Unknown parallelization method {self.method!r}.")
        if self.scaling not in SCALING_MODES:
            raise ConfigurationError(f"Unknown scaling mode {self.scaling!r}.")
        if self.device not in DEVICE_KINDS:
            raise ConfigurationError(f"Unknown device kind {self.device!r}.")
        if self.precision not in PRECISIONS:
            raise ConfigurationError(f"Unknown precision {self.precision!r}.")
        if self.rng not in RNG_METHODS:
            raise ConfigurationError(f"Unknown sampling method {self.rng!r}.")
        if self.options < 1:
            raise ConfigurationError("Number of options must be positive.")
        if self.paths < 2:
            raise ConfigurationError("Number of paths must be at least 2.")
        if self.devices is not None and self.devices < 1:
            raise ConfigurationError("Device count must be at least 1.")
        if self.max_samples < 1:
            raise ConfigurationError("Sample budget must be positive.")

    @property
    def use_threads(self) -> bool:
        return self.method == "threaded"

    @property
    def dtype(self) -> torch.dtype:
        return torch.float64 if self.precision == "float64" else torch.float32


@dataclass
class RunSummary:
    method: str
    execution: ExecutionResult
    statistics: list[DeviceStatistics]
    accuracy: AccuracyReport


def fmt(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value:f}"


def _log_statistics(log, execution: ExecutionResult, statistics: list[DeviceStatistics], total_options: int) -> None:
    log(f"main(): GPU statistics, {execution.method}")
    for stat in statistics:
        log(f"GPU Device #{stat.device_index}: {stat.device_name}")
        log(f"Options         : {stat.option_count}")
        log(f"Simulation paths: {stat.path_n}")
        if stat.error is not None:
            log(f"Device error    : {stat.error}")
        elif execution.per_device_timing:
            log(f"Total time (ms.): {fmt(stat.elapsed_ms)}")
            log(f"Options per sec.: {fmt(stat.options_per_second)}")

    if not execution.per_device_timing:
        elapsed = execution.elapsed_ms
        log("")
        log(f"Total time (ms.): {fmt(elapsed)}")
        log("\tNote: This is elapsed time for all to compute.")
        rate = total_options / (elapsed * 0.001) if elapsed else None
        log(f"Options per sec.: {fmt(rate)}")


def execute_run(
    config: RunConfig,
    *,
    devices: Optional[Sequence[DeviceInfo]] = None,
    suppress_output: bool = False,
) -> dict:
    messages: list[str] = []
    saved_paths: list[Path] = []

    def log(message: str = "") -> None:
        messages.append(message)
        if not suppress_output:
            print(message)

    log(f"{config.program} Starting...")
    log("")

    if devices is None:
        devices = enumerate_devices(config.device, config.devices)
    devices = list(devices)
    if not devices:
        raise ConfigurationError("No compute devices found.")
    gpu_n = len(devices)

    if not config.use_threads:
        log("Using single CPU thread for multiple GPUs")

    n_options = adjust_problem_size(devices, config.options)
    opt_n = scale_problem_size(n_options, gpu_n, config.scaling)

    log("MonteCarloMultiGPU")
    log("==================")
    log(f"Parallelization method  = {config.method}")
    log(f"Problem scaling         = {config.scaling}")
    log(f"Number of GPUs          = {gpu_n}")
    log(f"Total number of options = {opt_n}")
    log(f"Number of paths         = {config.paths}")

    log("main(): generating input data...")
    batch = generate_option_batch(opt_n, seed=DEFAULT_BATCH_SEED if config.seed is None else config.seed)
    partition = partition_options(opt_n, devices, config.paths, seed=config.seed)
    reference = black_scholes_call_batch(batch.data)
    context = RunContext(dtype=config.dtype, rng_method=config.rng, max_samples=config.max_samples)

    log(f"main(): starting {gpu_n} host threads...")

    methods = list(METHODS) if config.qatest else [config.method]
    runs: list[RunSummary] = []
    for method in methods:
        batch.reset_values()
        if method == "threaded":
            log("main(): waiting for GPU results...")
        execution = get_strategy(method).execute(partition, batch, context)
        statistics = device_statistics(execution, opt_n)
        _log_statistics(log, execution, statistics, opt_n)
        log("main(): comparing Monte Carlo and Black-Scholes results...")
        accuracy = compare_with_reference(batch, reference)
        logger.info("%s run: L1 norm %.3e, average reserve %.3f", method, accuracy.l1_norm, accuracy.average_reserve)
        runs.append(RunSummary(method=method, execution=execution, statistics=statistics, accuracy=accuracy))

    final = runs[-1]

    if config.plot_dir is not None or config.show:
        fig_cmp, _ = plot_price_comparison(batch, reference)
        fig_time, _ = plot_device_timings(final.execution)
        if config.plot_dir is not None:
            plot_dir = config.plot_dir.expanduser()
            plot_dir.mkdir(parents=True, exist_ok=True)
            cmp_path = plot_dir / "mc_vs_black_scholes.png"
            time_path = plot_dir / "device_timings.png"
            fig_cmp.savefig(cmp_path, dpi=150, bbox_inches="tight")
            fig_time.savefig(time_path, dpi=150, bbox_inches="tight")
            saved_paths.extend([cmp_path, time_path])
        if config.show:
            plt.show()
        else:
            plt.close(fig_cmp)
            plt.close(fig_time)

    log("Shutting down...")

    failures = [outcome for run in runs for outcome in run.execution.failures]
    for outcome in failures:
        log(f"Device #{outcome.plan.device.index} failed ({outcome.plan.option_count} options): {outcome.error}")
    for path in saved_paths:
        log(f"Saved: {path}")

    log("Test Summary...")
    log(f"L1 norm        : {final.accuracy.l1_norm:E}")
    log(f"Average reserve: {final.accuracy.average_reserve:f}")
    passed = all(run.accuracy.passed for run in runs) and not failures
    log("Test passed" if passed else "Test failed!")

    return {
        "config": config,
        "devices": devices,
        "batch": batch,
        "partition": partition,
        "reference": reference,
        "runs": runs,
        "accuracy": final.accuracy,
        "messages": messages,
        "saved_paths": saved_paths,
        "exit_code": 0 if passed else 1,
    }
