"""
Utility functions for the CLI.

This module contains helper functions used by CLI commands,
such as output path generation and exit code constants.
"""

from datetime import datetime
from pathlib import Path

# Exit codes (130 = common for SIGINT)
EXIT_SUCCESS = 0
EXIT_API_OR_NETWORK = 1
EXIT_VALIDATION_OR_CONFIG = 2
EXIT_CANCELLED = 130


def _timestamp() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def default_output_dir() -> Path:
    """Return default directory for a generated set: imgstudio_<YYYYMMDD>_<HHMMSS> in CWD."""
    return Path(f"imgstudio_{_timestamp()}")


def default_edit_output_path(source: Path, extension: str) -> Path:
    """Return default path for an edited image: <stem>_edited_<YYYYMMDD>_<HHMMSS>.<ext> in CWD."""
    return Path(f"{source.stem}_edited_{_timestamp()}.{extension or 'png'}")


__all__ = [
    "EXIT_SUCCESS",
    "EXIT_API_OR_NETWORK",
    "EXIT_VALIDATION_OR_CONFIG",
    "EXIT_CANCELLED",
    "default_edit_output_path",
    "default_output_dir",
]
