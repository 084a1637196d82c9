"""Handicapper Interfaces - CLI."""

from handicapper.interfaces.cli_app import cli, main

__all__ = [
    "cli",
    "main",
]
