"""Command line entry points."""

from .main import parse_args, run

__all__ = ["parse_args", "run"]
