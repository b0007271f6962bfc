"""
Custom exceptions for imgstudio.

This module defines all custom exceptions used throughout the application.
"""


class StudioError(Exception):
    """Base exception for all imgstudio errors."""

    pass


class ValidationError(StudioError):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: str = "") -> None:
        """
        Initialize validation error.

        Args:
            message: Error message
            field: Name of the field that failed validation (optional)
        """
        self.field = field
        super().__init__(message)


class ConfigurationError(StudioError):
    """Raised when there is a configuration problem."""

    pass


class ImageProcessingError(StudioError):
    """Raised when an image payload cannot be decoded or encoded."""

    pass


class CancellationError(StudioError):
    """Raised when an operation is cancelled by the user (e.g. a dismissed share dialog)."""

    pass


class ShareError(StudioError):
    """Raised when sharing an image or copying it to the clipboard fails."""

    pass


class UpstreamError(StudioError):
    """Raised when the book-search upstream cannot be reached or answers with an error."""

    def __init__(self, message: str, status_code: int = 0, response: str = "") -> None:
        self.status_code = status_code
        self.response = response
        super().__init__(message)


class GatewayError(StudioError):
    """Raised when a call to the remote generation service fails."""

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        response: str = "",
        original_error: Exception | None = None,
    ) -> None:
        """
        Initialize gateway error.

        Args:
            message: Error message
            status_code: HTTP status code (if applicable)
            response: Raw service response (if available)
            original_error: The underlying exception that caused this error
        """
        self.status_code = status_code
        self.response = response
        self.original_error = original_error
        super().__init__(message)


class EnhanceError(GatewayError):
    """Raised when prompt enhancement fails."""

    pass


class GenerateError(GatewayError):
    """Raised when image generation fails."""

    pass


class EditError(GatewayError):
    """Raised when image editing fails or the service returns no image."""

    pass
