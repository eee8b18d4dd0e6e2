"""Rich-powered interactive wizard for configuring pricing runs."""
from __future__ import annotations

import argparse
from pathlib import Path
from typing import Iterable, Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table
from rich.theme import Theme

from ..devices import DEVICE_KINDS
from ..executor import METHODS
from ..partition import SCALING_MODES
from ..paths import RNG_METHODS
from ..runtime import PRECISIONS

_THEME = Theme(
    {
        "accent": "bright_cyan",
        "muted": "grey70",
        "warning": "gold1",
    }
)

_console = Console(theme=_THEME)


def _prompt_int(message: str, default: int, *, minimum: Optional[int] = None) -> int:
    while True:
        response = Prompt.ask(message, default=str(default), console=_console)
        try:
            value = int(response)
        except ValueError:
            _console.print("[warning]Please enter a whole number.[/warning]")
            continue
        if minimum is not None and value < minimum:
            _console.print(f"[warning]Value must be at least {minimum}.[/warning]")
            continue
        return value


def _prompt_optional_int(message: str, default: Optional[int], *, minimum: Optional[int] = None) -> Optional[int]:
    default_label = "none" if default is None else str(default)
    response = Prompt.ask(message, default=default_label, console=_console)
    if response.strip().lower() in {"", "none", "null"}:
        return None
    try:
        value = int(response)
    except ValueError:
        _console.print("[warning]Invalid integer; falling back to default.[/warning]")
        return default
    if minimum is not None and value < minimum:
        _console.print(f"[warning]Value must be at least {minimum}; falling back to default.[/warning]")
        return default
    return value


def _prompt_choice(message: str, choices: Iterable[str], default: str) -> str:
    return Prompt.ask(
        message,
        choices=list(choices),
        default=default,
        console=_console,
        show_choices=True,
    )


def _summarise_configuration(data: dict[str, str]) -> None:
    table = Table(title="Run Settings", expand=True)
    table.add_column("Setting", style="accent", no_wrap=True)
    table.add_column("Value", style="muted")
    for key, value in data.items():
        table.add_row(key, value)
    _console.print(table)


def run_interactive_wizard(args: argparse.Namespace) -> argparse.Namespace:
    _console.print(Panel.fit("[accent bold]Multi-device Monte Carlo Pricer[/accent bold]", border_style="accent"))
    _console.print(
        "Use the prompts below to tailor the run. Press [accent]<enter>[/accent] to accept defaults.",
        style="muted",
    )

    method = _prompt_choice("Parallelization method", METHODS, args.method)
    scaling = _prompt_choice("Problem scaling", SCALING_MODES, args.scaling)
    qatest = Confirm.ask("Run both methods for validation?", default=args.qatest, console=_console)
    options = _prompt_int("Options per device", args.options, minimum=1)
    paths = _prompt_int("Simulation paths per option", args.paths, minimum=2)
    seed = _prompt_optional_int("Random seed (or 'none')", args.seed)

    device = _prompt_choice("Computation device", DEVICE_KINDS, args.device)
    devices = _prompt_optional_int("Number of devices (or 'none' for all)", args.devices, minimum=1)
    precision = _prompt_choice("Floating point precision", PRECISIONS, args.precision)
    rng = _prompt_choice("Normal sampling method", RNG_METHODS, args.rng)

    plot_dir: Optional[Path] = args.plot_dir
    if Confirm.ask("Save comparison plots to disk?", default=args.plot_dir is not None, console=_console):
        default_dir = args.plot_dir or Path("figures")
        plot_dir = Path(Prompt.ask("Directory for saved plots", default=str(default_dir), console=_console)).expanduser()
    else:
        plot_dir = None
    show = Confirm.ask("Show plot windows?", default=args.show, console=_console)

    summary_data = {
        "Method": method,
        "Scaling": scaling,
        "QA test": "Yes" if qatest else "No",
        "Options per device": f"{options}",
        "Paths": f"{paths}",
        "Seed": "random" if seed is None else f"{seed}",
        "Device": device,
        "Devices": "all" if devices is None else f"{devices}",
        "Precision": precision,
        "Sampling": rng,
        "Plots": "No" if plot_dir is None else str(plot_dir),
    }
    _summarise_configuration(summary_data)

    return argparse.Namespace(
        method=method,
        scaling=scaling,
        qatest=qatest,
        options=options,
        paths=paths,
        seed=seed,
        device=device,
        devices=devices,
        precision=precision,
        rng=rng,
        max_samples=args.max_samples,
        plot_dir=plot_dir,
        show=show,
        interactive=False,
        verbose=args.verbose,
    )
