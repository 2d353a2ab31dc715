"""Command-line interface."""

from .main import main, parse_args, run

__all__ = ["main", "parse_args", "run"]
