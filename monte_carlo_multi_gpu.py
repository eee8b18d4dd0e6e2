#!/usr/bin/env python3
"""CLI launcher for multi-device Monte Carlo pricing of European call options."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys
from typing import Optional, Sequence

from mcmultigpu.devices import DEVICE_KINDS
from mcmultigpu.errors import AllocationError, ConfigurationError
from mcmultigpu.executor import METHODS
from mcmultigpu.kernel import DEFAULT_MAX_SAMPLES, DEFAULT_PATH_N
from mcmultigpu.options import DEFAULT_BATCH_SEED
from mcmultigpu.partition import SCALING_MODES
from mcmultigpu.paths import RNG_METHODS
from mcmultigpu.runtime import DEFAULT_OPTIONS_PER_DEVICE, PRECISIONS, RunConfig, execute_run

logger = logging.getLogger("mcmultigpu")

USAGE_NOTES = """\
Method=threaded: 1 CPU thread for each GPU
       streamed: 1 CPU thread handles all GPUs [default]
Scaling=strong : constant problem size
        weak   : problem size scales with number of available GPUs [default]
"""


def _lower(value: str) -> str:
    return value.lower()


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Price European call options by Monte Carlo across multiple compute devices.",
        epilog=USAGE_NOTES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--method",
        type=_lower,
        choices=METHODS,
        default="streamed",
        help="Parallelization method: one host thread per device, or one thread for all devices.",
    )
    parser.add_argument(
        "--scaling",
        type=_lower,
        choices=SCALING_MODES,
        default="weak",
        help="Weak scaling grows the batch with the device count; strong keeps it fixed.",
    )
    parser.add_argument(
        "--qatest",
        action="store_true",
        help="Run both parallelization methods for validation.",
    )
    parser.add_argument(
        "--options",
        type=int,
        default=DEFAULT_OPTIONS_PER_DEVICE,
        help="Options per device before small-device adjustment and scaling.",
    )
    parser.add_argument("--paths", type=int, default=DEFAULT_PATH_N, help="Simulation paths per option.")
    parser.add_argument("--seed", type=int, default=DEFAULT_BATCH_SEED, help="RNG seed for inputs and paths.")
    parser.add_argument(
        "--device",
        type=_lower,
        choices=DEVICE_KINDS,
        default="auto",
        help="Device kind: auto, cpu or cuda.",
    )
    parser.add_argument(
        "--devices",
        type=int,
        default=None,
        help="Use the first N devices (number of logical devices on the CPU).",
    )
    parser.add_argument(
        "--precision",
        choices=PRECISIONS,
        default="float32",
        help="Floating point precision for simulation.",
    )
    parser.add_argument(
        "--rng",
        choices=RNG_METHODS,
        default="normal",
        help="How standard normal samples are drawn.",
    )
    parser.add_argument(
        "--max-samples",
        type=int,
        default=DEFAULT_MAX_SAMPLES,
        help="Upper bound on random samples held by one kernel launch.",
    )
    parser.add_argument(
        "--plot-dir",
        type=Path,
        default=None,
        help="Directory where comparison plots are saved.",
    )
    parser.add_argument("--show", action="store_true", help="Display plots interactively after the run.")
    parser.add_argument(
        "--interactive",
        action="store_true",
        help="Launch a rich interactive CLI wizard to choose run options.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace, program: str) -> RunConfig:
    return RunConfig(
        method=args.method,
        scaling=args.scaling,
        qatest=args.qatest,
        options=args.options,
        paths=args.paths,
        seed=args.seed,
        device=args.device,
        devices=args.devices,
        precision=args.precision,
        rng=args.rng,
        max_samples=args.max_samples,
        plot_dir=args.plot_dir,
        show=args.show,
        program=program,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.interactive:
        from mcmultigpu.ui.interactive import run_interactive_wizard

        args = run_interactive_wizard(args)

    program = Path(sys.argv[0]).name or "monte_carlo_multi_gpu"
    try:
        config = build_config(args, program)
        result = execute_run(config)
    except (ConfigurationError, AllocationError) as exc:
        logger.error("%s", exc)
        return 2
    return result["exit_code"]


if __name__ == "__main__":
    sys.exit(main())
