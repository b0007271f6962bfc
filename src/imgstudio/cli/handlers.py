"""
Error handling for the CLI.

Maps exceptions to exit codes and user messages. Ctrl+C ends the running
operation (KeyboardInterrupt) and is reported as a cancellation.
"""

import sys
from collections.abc import Callable

import click

from imgstudio.cli import progress
from imgstudio.cli.utils import (
    EXIT_API_OR_NETWORK,
    EXIT_CANCELLED,
    EXIT_VALIDATION_OR_CONFIG,
)
from imgstudio.utils.exceptions import (
    CancellationError,
    ConfigurationError,
    GatewayError,
    ImageProcessingError,
    ShareError,
    StudioError,
    ValidationError,
)


def map_exception_to_exit(exc: BaseException) -> tuple[int, str]:
    """Map library and known exceptions to (exit_code, user_message)."""
    if isinstance(exc, ValidationError):
        msg = exc.args[0] if exc.args else "Validation failed."
        if getattr(exc, "field", None):
            msg = f"{msg} (field: {exc.field})"
        return (EXIT_VALIDATION_OR_CONFIG, msg)
    if isinstance(exc, ConfigurationError):
        return (EXIT_VALIDATION_OR_CONFIG, exc.args[0] if exc.args else "Invalid configuration.")
    if isinstance(exc, ImageProcessingError):
        return (EXIT_VALIDATION_OR_CONFIG, exc.args[0] if exc.args else "Image processing failed.")
    if isinstance(exc, (CancellationError, KeyboardInterrupt)):
        return (EXIT_CANCELLED, "Cancelled.")
    if isinstance(exc, (GatewayError, ShareError)):
        return (EXIT_API_OR_NETWORK, exc.args[0] if exc.args else "Service error.")
    if isinstance(exc, StudioError):
        return (EXIT_API_OR_NETWORK, exc.args[0] if exc.args else "An error occurred.")
    # Unhandled
    return (EXIT_API_OR_NETWORK, str(exc) if exc.args else "An unexpected error occurred.")


def run_with_error_handling(
    fn: Callable[[], None],
    *,
    quiet: bool = False,
    debug: bool = False,
) -> None:
    """
    Run fn(); on exception map to exit code and message, print and sys.exit.
    Used so the command flows stay free of try/except for known errors.
    """
    try:
        fn()
    except (StudioError, KeyboardInterrupt) as e:
        code, msg = map_exception_to_exit(e)
        if code == EXIT_CANCELLED:
            if not quiet:
                progress.print_warning(msg)
        else:
            if quiet:
                click.echo(msg, err=True)
            else:
                progress.print_error(msg)
        sys.exit(code)
    except Exception as e:
        if debug:
            raise
        code, msg = map_exception_to_exit(e)
        if quiet:
            click.echo(msg, err=True)
        else:
            progress.print_error(msg)
        sys.exit(EXIT_API_OR_NETWORK)


__all__ = [
    "map_exception_to_exit",
    "run_with_error_handling",
]
