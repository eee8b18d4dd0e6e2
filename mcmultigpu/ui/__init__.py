"""User interface helpers for pricing runs."""

from .interactive import run_interactive_wizard

__all__ = ["run_interactive_wizard"]
