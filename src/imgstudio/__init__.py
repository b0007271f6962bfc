"""
imgstudio - AI Image Generation Studio

Type a description, optionally enhance it, generate a set of images, edit
single images with follow-up instructions, and view, share or download the
results. Served as a Gradio web app next to a small book-search proxy, or
driven from the terminal.

Library usage:
- Build a gateway with create_gateway(config) and drive a session with
  GenerationController(gateway, config); every operation folds its outcome
  into controller.state (errors included) instead of raising.
- Configuration comes from Config.from_env() or the shared get_config() / set_config().
- Logging: control verbosity with set_verbosity(0|1|2) or configure_logging(verbose_level, quiet);
  IMGSTUDIO_VERBOSITY env (0/1/2) is read when the CLI runs or when logging is configured.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("imgstudio")
except PackageNotFoundError:
    # Package is not installed (e.g., running from source in development)
    __version__ = "0.0.0.dev"

from imgstudio.core.config import Config, get_config, set_config
from imgstudio.core.controller import GenerationController
from imgstudio.core.gateways import create_gateway
from imgstudio.core.images import GeneratedImage
from imgstudio.core.options import AspectRatio, Quality
from imgstudio.core.state import SessionState, SessionStore
from imgstudio.logging_config import configure_logging, set_verbosity
from imgstudio.utils.exceptions import (
    CancellationError,
    ConfigurationError,
    EditError,
    EnhanceError,
    GatewayError,
    GenerateError,
    ImageProcessingError,
    ShareError,
    StudioError,
    ValidationError,
)

__all__ = [
    "AspectRatio",
    "CancellationError",
    "Config",
    "ConfigurationError",
    "EditError",
    "EnhanceError",
    "GatewayError",
    "GenerateError",
    "GeneratedImage",
    "GenerationController",
    "ImageProcessingError",
    "Quality",
    "SessionState",
    "SessionStore",
    "ShareError",
    "StudioError",
    "ValidationError",
    "configure_logging",
    "create_gateway",
    "get_config",
    "set_config",
    "set_verbosity",
]
