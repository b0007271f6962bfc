"""
Command-line interface for imgstudio.

This package contains CLI implementations using Click.
"""

from imgstudio.cli.commands import cli, main

__all__ = ["cli", "main"]
