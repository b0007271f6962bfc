"""
Configuration management for imgstudio.

This module handles API keys, gateway and model selection, and other settings.
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from imgstudio.logging_config import get_logger
from imgstudio.utils.exceptions import ConfigurationError

logger = get_logger(__name__)

# Load environment variables from .env file
load_dotenv()

# Default configuration constants
DEFAULT_GATEWAY = "gemini"
DEFAULT_ENHANCE_MODEL = "gemini-2.5-flash"
DEFAULT_IMAGE_MODEL = "imagen-4.0-generate-001"
DEFAULT_EDIT_MODEL = "gemini-2.5-flash-image"
DEFAULT_OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_OPENROUTER_TEXT_MODEL = "google/gemini-2.5-flash"
DEFAULT_OPENROUTER_IMAGE_MODEL = "google/gemini-2.5-flash-image"
DEFAULT_BOOKS_BASE_URL = "https://www.googleapis.com/books/v1/volumes"
DEFAULT_NUMBER_OF_IMAGES = 4
DEFAULT_NOTIFICATION_SECONDS = 3.0

# Gateway ids accepted by validate(); do not import from imgstudio.core.gateways (circular import)
KNOWN_GATEWAYS = ("gemini", "openrouter")
SUPPORTED_OUTPUT_MIME_TYPES = ("image/jpeg", "image/png")
MAX_NUMBER_OF_IMAGES = 4


@dataclass
class Config:
    """Configuration for the imgstudio application."""

    # API keys (excluded from repr to avoid leaking secrets)
    gemini_api_key: str = field(default="", repr=False)
    openrouter_api_key: str = field(default="", repr=False)
    books_api_key: str = field(default="", repr=False)

    # Gateway selection
    default_gateway: str = DEFAULT_GATEWAY

    # Gemini models
    enhance_model: str = DEFAULT_ENHANCE_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL
    edit_model: str = DEFAULT_EDIT_MODEL

    # OpenRouter
    openrouter_base_url: str = DEFAULT_OPENROUTER_BASE_URL
    openrouter_text_model: str = DEFAULT_OPENROUTER_TEXT_MODEL
    openrouter_image_model: str = DEFAULT_OPENROUTER_IMAGE_MODEL

    # Generation
    number_of_images: int = DEFAULT_NUMBER_OF_IMAGES
    output_mime_type: str = "image/jpeg"

    # Session UI
    notification_seconds: float = DEFAULT_NOTIFICATION_SECONDS

    # Book-search proxy
    books_base_url: str = DEFAULT_BOOKS_BASE_URL
    books_default_max_results: int = 20
    books_timeout: int = 30

    # Timeout Configuration (seconds)
    request_timeout: int = 180  # 3 minutes

    # Debug: log raw API payload/response with image data truncated
    debug_api: bool = False

    _validated: bool = field(default=False, repr=False)

    @classmethod
    def from_env(cls) -> "Config":
        """
        Create a Config instance from environment variables.

        Environment variables:
            GEMINI_API_KEY (or API_KEY): Required for the gemini gateway
            OPENROUTER_API_KEY: Required for the openrouter gateway
            GOOGLE_BOOKS_KEY: Key forwarded by the book-search proxy
            IMGSTUDIO_GATEWAY: gemini or openrouter (default gemini)
            IMGSTUDIO_ENHANCE_MODEL / IMGSTUDIO_IMAGE_MODEL / IMGSTUDIO_EDIT_MODEL: Gemini models
            IMGSTUDIO_OPENROUTER_TEXT_MODEL / IMGSTUDIO_OPENROUTER_IMAGE_MODEL: OpenRouter models
            IMGSTUDIO_NUMBER_OF_IMAGES: Images per generate call (default 4)
            IMGSTUDIO_NOTIFICATION_SECONDS: Notification lifetime (default 3)
            IMGSTUDIO_BOOKS_MAX_RESULTS: Default maxResults for the proxy (default 20)
            IMGSTUDIO_DEBUG_API: 1/true/yes to log raw payloads

        Returns:
            Config instance populated from environment

        Raises:
            ConfigurationError: If a numeric variable is not a number
        """

        def _int_env(name: str, default: int) -> int:
            val = os.getenv(name)
            if val is None or val == "":
                return default
            try:
                return int(val)
            except ValueError as e:
                raise ConfigurationError(f"{name} must be an integer, got {val!r}.") from e

        def _float_env(name: str, default: float) -> float:
            val = os.getenv(name)
            if val is None or val == "":
                return default
            try:
                return float(val)
            except ValueError as e:
                raise ConfigurationError(f"{name} must be a number, got {val!r}.") from e

        debug_api = os.getenv("IMGSTUDIO_DEBUG_API", "").strip().lower() in ("1", "true", "yes")

        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY") or "",
            openrouter_api_key=os.getenv("OPENROUTER_API_KEY", ""),
            books_api_key=os.getenv("GOOGLE_BOOKS_KEY", ""),
            default_gateway=os.getenv("IMGSTUDIO_GATEWAY", DEFAULT_GATEWAY),
            enhance_model=os.getenv("IMGSTUDIO_ENHANCE_MODEL", DEFAULT_ENHANCE_MODEL),
            image_model=os.getenv("IMGSTUDIO_IMAGE_MODEL", DEFAULT_IMAGE_MODEL),
            edit_model=os.getenv("IMGSTUDIO_EDIT_MODEL", DEFAULT_EDIT_MODEL),
            openrouter_text_model=os.getenv(
                "IMGSTUDIO_OPENROUTER_TEXT_MODEL", DEFAULT_OPENROUTER_TEXT_MODEL
            ),
            openrouter_image_model=os.getenv(
                "IMGSTUDIO_OPENROUTER_IMAGE_MODEL", DEFAULT_OPENROUTER_IMAGE_MODEL
            ),
            number_of_images=_int_env("IMGSTUDIO_NUMBER_OF_IMAGES", DEFAULT_NUMBER_OF_IMAGES),
            notification_seconds=_float_env(
                "IMGSTUDIO_NOTIFICATION_SECONDS", DEFAULT_NOTIFICATION_SECONDS
            ),
            books_default_max_results=_int_env("IMGSTUDIO_BOOKS_MAX_RESULTS", 20),
            debug_api=debug_api,
        )

    def validate(self) -> None:
        """
        Validate the configuration.

        Only the keys of the default gateway are required; the book-search key is
        optional (the proxy forwards without one).

        Raises:
            ConfigurationError: If configuration is invalid
        """
        logger.debug("Validating config")

        if not 1 <= self.number_of_images <= MAX_NUMBER_OF_IMAGES:
            raise ConfigurationError(
                f"number_of_images must be between 1 and {MAX_NUMBER_OF_IMAGES}, "
                f"got {self.number_of_images}."
            )
        if self.notification_seconds <= 0:
            raise ConfigurationError(
                f"notification_seconds must be positive, got {self.notification_seconds}."
            )
        if self.output_mime_type not in SUPPORTED_OUTPUT_MIME_TYPES:
            raise ConfigurationError(
                f"Unsupported output_mime_type: {self.output_mime_type!r}. "
                f"Must be one of: {', '.join(SUPPORTED_OUTPUT_MIME_TYPES)}."
            )
        if self.books_default_max_results <= 0:
            raise ConfigurationError(
                f"books_default_max_results must be positive, got {self.books_default_max_results}."
            )

        gateway = self.default_gateway
        if gateway not in KNOWN_GATEWAYS:
            raise ConfigurationError(
                f"Unknown default_gateway: {gateway!r}. "
                f"Must be one of: {', '.join(KNOWN_GATEWAYS)}."
            )
        if gateway == "gemini" and not self.gemini_api_key:
            raise ConfigurationError(
                "Gemini API key is required when the gateway is gemini. "
                "Set GEMINI_API_KEY environment variable or provide it explicitly."
            )
        if gateway == "openrouter":
            if not self.openrouter_api_key:
                raise ConfigurationError(
                    "OpenRouter API key is required when the gateway is openrouter. "
                    "Set OPENROUTER_API_KEY environment variable or provide it explicitly."
                )
            if not self.openrouter_api_key.startswith("sk-"):
                raise ConfigurationError(
                    "OpenRouter API key appears to be invalid. It should start with 'sk-'."
                )

        self._validated = True

    def is_valid(self) -> bool:
        """
        Check if configuration has been validated.

        Returns:
            True if validate() has been called successfully
        """
        return self._validated

    def set_api_key(self, api_key: str) -> None:
        """
        Set the API key of the default gateway.

        Args:
            api_key: The API key to use

        Raises:
            ConfigurationError: If API key is empty
        """
        if not api_key:
            raise ConfigurationError("API key cannot be empty")

        if self.default_gateway == "openrouter":
            self.openrouter_api_key = api_key
        else:
            self.gemini_api_key = api_key
        self._validated = False  # Need to revalidate

    def set_gateway(self, gateway: str) -> None:
        """Select the gateway used by new sessions; validated on the next validate()."""
        if not gateway:
            raise ConfigurationError("Gateway cannot be empty")
        self.default_gateway = gateway
        self._validated = False


# Global configuration instance
_global_config: Config | None = None


def get_config() -> Config:
    """
    Get the global configuration instance.

    Returns:
        The global Config instance
    """
    global _global_config
    if _global_config is None:
        _global_config = Config.from_env()
    return _global_config


def set_config(config: Config) -> None:
    """
    Set the global configuration instance.

    Args:
        config: The Config instance to use globally
    """
    global _global_config
    _global_config = config
