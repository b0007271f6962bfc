"""
Logging configuration for imgstudio.

Logging is configured lazily so library users who never call set_verbosity or
configure_logging get no logs unless they configure logging themselves.

Verbosity levels:
- 0 (default): INFO - activity and timings only
- 1 (info): INFO + prompt and edit instruction text
- 2 (verbose): DEBUG + prompt text - gateway calls, state transitions, proxy

Use set_verbosity(level) or configure_logging(verbose_level, quiet).
IMGSTUDIO_VERBOSITY env (0/1/2) is read when the CLI runs or when the server
starts; CLI flags override env.
"""

import logging
import os

LOG_FORMAT = "%(levelname)s [%(name)s] %(message)s"
ROOT_LOGGER_NAME = "imgstudio"
VERBOSITY_ENV = "IMGSTUDIO_VERBOSITY"

_log_prompts: bool = False
_configured: bool = False


def _ensure_handler() -> None:
    """Add a stderr handler to the root imgstudio logger if not already present."""
    global _configured
    if _configured:
        return
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    _configured = True


def set_verbosity(level: int) -> None:
    """
    Set logging verbosity (0=default, 1=info, 2=verbose).

    - 0: INFO level; activity and timings only (no prompt text).
    - 1: INFO level; same + log prompt and edit instruction text.
    - 2: DEBUG level; same + gateway calls, state transitions (no secrets).
    """
    global _log_prompts
    _ensure_handler()
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if level <= 0:
        root.setLevel(logging.INFO)
        _log_prompts = False
    elif level == 1:
        root.setLevel(logging.INFO)
        _log_prompts = True
    else:
        root.setLevel(logging.DEBUG)
        _log_prompts = True


def log_prompts() -> bool:
    """Return True if prompt text should be logged at INFO (verbosity 1 or 2)."""
    return _log_prompts


def configure_logging(verbose_level: int = 0, quiet: bool = False) -> None:
    """
    Configure logging from the CLI, the server or a library caller.

    When quiet is True, sets level to WARNING (no activity/timings).
    Otherwise calls set_verbosity(verbose_level).
    """
    global _log_prompts
    _ensure_handler()
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if quiet:
        root.setLevel(logging.WARNING)
        _log_prompts = False
        return
    set_verbosity(verbose_level)


def get_verbosity_from_env() -> int:
    """
    Read IMGSTUDIO_VERBOSITY from environment (0, 1, or 2).

    Invalid or missing values return 0.
    """
    raw = os.environ.get(VERBOSITY_ENV, "0").strip()
    if raw == "1":
        return 1
    if raw == "2":
        return 2
    return 0


def get_logger(name: str) -> logging.Logger:
    """Return a child logger under imgstudio (e.g. imgstudio.core.controller)."""
    if name.startswith(ROOT_LOGGER_NAME + ".") or name == ROOT_LOGGER_NAME:
        return logging.getLogger(name)
    return logging.getLogger(ROOT_LOGGER_NAME + "." + name)


__all__ = [
    "configure_logging",
    "get_logger",
    "get_verbosity_from_env",
    "log_prompts",
    "set_verbosity",
]
