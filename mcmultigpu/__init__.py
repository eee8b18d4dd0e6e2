"""Multi-device Monte Carlo pricing of European call options."""
from .aggregate import AccuracyReport, DeviceStatistics, compare_with_reference, device_statistics
from .analytic import black_scholes_call, black_scholes_call_batch
from .context import RunContext
from .devices import DeviceContext, DeviceInfo, enumerate_devices
from .errors import AllocationError, ConfigurationError, DeviceError, InvalidInputError, MonteCarloError
from .executor import ExecutionResult, ExecutionStrategy, StreamedExecution, ThreadedExecution, get_strategy
from .kernel import price_option, price_options
from .options import OptionBatch, OptionData, OptionValue, generate_option_batch
from .partition import OptionBatchPlan, WorkPartition, adjust_grid_size, adjust_problem_size, partition_options
from .paths import PathGenerator
from .runtime import RunConfig, execute_run
from .timing import StopWatch

__all__ = [
    "AccuracyReport",
    "AllocationError",
    "ConfigurationError",
    "DeviceContext",
    "DeviceError",
    "DeviceInfo",
    "DeviceStatistics",
    "ExecutionResult",
    "ExecutionStrategy",
    "InvalidInputError",
    "MonteCarloError",
    "OptionBatch",
    "OptionBatchPlan",
    "OptionData",
    "OptionValue",
    "PathGenerator",
    "RunConfig",
    "RunContext",
    "StopWatch",
    "StreamedExecution",
    "ThreadedExecution",
    "WorkPartition",
    "adjust_grid_size",
    "adjust_problem_size",
    "black_scholes_call",
    "black_scholes_call_batch",
    "compare_with_reference",
    "device_statistics",
    "enumerate_devices",
    "execute_run",
    "generate_option_batch",
    "get_strategy",
    "partition_options",
    "price_option",
    "price_options",
]
