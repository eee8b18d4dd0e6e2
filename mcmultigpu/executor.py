"""Execution strategies that run the pricing kernel over a partition."""
from __future__ import annotations

from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
import contextlib
from dataclasses import dataclass, field
import logging
from typing import Optional

from .context import RunContext
from .devices import DeviceContext
from .errors import ConfigurationError, DeviceError
from .options import OptionBatch
from .partition import OptionBatchPlan, WorkPartition

logger = logging.getLogger(__name__)

METHODS: tuple[str, ...] = ("threaded", "streamed")


@dataclass
class PlanOutcome:
    plan: OptionBatchPlan
    elapsed_ms: Optional[float] = None
    error: Optional[DeviceError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ExecutionResult:
    """Outcome of one strategy run over a whole partition."""

    method: str
    outcomes: list[PlanOutcome] = field(default_factory=list)
    elapsed_ms: float = 0.0
    per_device_timing: bool = False

    @property
    def failures(self) -> list[PlanOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]


class ExecutionStrategy(ABC):
    """Runs every plan of a partition and fills the batch's result arena."""

    name: str = "abstract"

    def execute(self, partition: WorkPartition, batch: OptionBatch, context: RunContext) -> ExecutionResult:
        if len(batch) != partition.total_options:
            raise ConfigurationError(
                f"Partition covers {partition.total_options} options but the batch holds {len(batch)}."
            )
        context.reset([plan.device.index for plan in partition])
        result = self._run(partition, batch, context)
        self._check_populated(result, batch)
        return result

    @abstractmethod
    def _run(self, partition: WorkPartition, batch: OptionBatch, context: RunContext) -> ExecutionResult:
        ...

    def _device_context(self, plan: OptionBatchPlan, batch: OptionBatch, context: RunContext) -> DeviceContext:
        return DeviceContext(
            plan,
            batch,
            dtype=context.dtype,
            rng_method=context.rng_method,
            max_samples=context.max_samples,
        )

    @staticmethod
    def _mark_failed(plan: OptionBatchPlan, batch: OptionBatch, error: DeviceError) -> None:
        logger.error("Device #%d failed; marking %d options as failed: %s", plan.device.index, plan.option_count, error)
        batch.values_view(plan.offset, plan.option_count).fill_(float("nan"))

    @staticmethod
    def _check_populated(result: ExecutionResult, batch: OptionBatch) -> None:
        unset = set(batch.unset_indices())
        for outcome in result.outcomes:
            if outcome.ok and unset.intersection(range(outcome.plan.offset, outcome.plan.stop)):
                raise RuntimeError(f"Device #{outcome.plan.device.index} left options unpriced.")


class ThreadedExecution(ExecutionStrategy):
    """One host worker thread per device, joined before returning."""

    name = "threaded"

    def _solve(self, plan: OptionBatchPlan, batch: OptionBatch, context: RunContext) -> PlanOutcome:
        timer = context.timer(plan.device.index)
        timer.start()
        try:
            with self._device_context(plan, batch, context) as device:
                device.launch()
                device.barrier()
                device.synchronize()
                timer.stop()
                device.collect()
        except DeviceError as exc:
            timer.stop()
            self._mark_failed(plan, batch, exc)
            return PlanOutcome(plan=plan, elapsed_ms=timer.elapsed_ms(), error=exc)
        return PlanOutcome(plan=plan, elapsed_ms=timer.elapsed_ms())

    def _run(self, partition: WorkPartition, batch: OptionBatch, context: RunContext) -> ExecutionResult:
        run_timer = context.run_timer()
        run_timer.start()
        with ThreadPoolExecutor(max_workers=len(partition), thread_name_prefix="mc-device") as pool:
            for plan in partition:
                context.workers[plan.device.index] = pool.submit(self._solve, plan, batch, context)
            outcomes = [context.workers[plan.device.index].result() for plan in partition]
        run_timer.stop()
        return ExecutionResult(
            method=self.name,
            outcomes=outcomes,
            elapsed_ms=run_timer.elapsed_ms(),
            per_device_timing=True,
        )


class StreamedExecution(ExecutionStrategy):
    """A single host thread drives every device through its own queue."""

    name = "streamed"

    def _run(self, partition: WorkPartition, batch: OptionBatch, context: RunContext) -> ExecutionResult:
        outcomes = {plan.device.index: PlanOutcome(plan=plan) for plan in partition}
        run_timer = context.run_timer()

        def fail(plan: OptionBatchPlan, exc: DeviceError) -> None:
            outcomes[plan.device.index].error = exc
            self._mark_failed(plan, batch, exc)

        def release(device: DeviceContext) -> None:
            try:
                device.close()
            except DeviceError as exc:
                fail(device.plan, exc)

        with contextlib.ExitStack() as stack:
            opened = []
            for plan in partition:
                device = self._device_context(plan, batch, context)
                try:
                    device.__enter__()
                except DeviceError as exc:
                    fail(plan, exc)
                else:
                    stack.callback(release, device)
                    opened.append(device)

            # Input copies are queued by initialize(); wait for every device before timing.
            devices = []
            for device in opened:
                try:
                    device.synchronize()
                except DeviceError as exc:
                    fail(device.plan, exc)
                else:
                    devices.append(device)

            run_timer.start()
            issued = []
            for device in devices:
                try:
                    device.launch()
                    device.barrier()
                except DeviceError as exc:
                    fail(device.plan, exc)
                else:
                    issued.append(device)

            ready = []
            for device in issued:
                try:
                    device.synchronize()
                except DeviceError as exc:
                    fail(device.plan, exc)
                else:
                    ready.append(device)
            run_timer.stop()

            for device in ready:
                device.collect()

        elapsed = run_timer.elapsed_ms()
        for outcome in outcomes.values():
            if outcome.ok:
                outcome.elapsed_ms = elapsed
        return ExecutionResult(
            method=self.name,
            outcomes=[outcomes[plan.device.index] for plan in partition],
            elapsed_ms=elapsed,
            per_device_timing=False,
        )


_STRATEGIES: dict[str, type[ExecutionStrategy]] = {
    ThreadedExecution.name: ThreadedExecution,
    StreamedExecution.name: StreamedExecution,
}


def get_strategy(method: str) -> ExecutionStrategy:
    try:
        return _STRATEGIES[method]()
    except KeyError:
        raise ConfigurationError(f"Unknown parallelization method {method!r}; expected one of {METHODS}.") from None
