"""PhaseGrid command-line interface."""

from phasegrid.cli.main import cli, main

__all__ = ["cli", "main"]
