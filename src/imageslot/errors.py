"""
Error types raised by the image pipeline and upload flow.

None of these are fatal: every one leaves the session in a state the
user can retry from.
"""

from typing import Optional


class ImageSlotError(Exception):
    """Base class for all imageslot errors."""
    pass


class InputError(ImageSlotError):
    """A candidate image was rejected before any state changed."""
    pass


class UnsupportedInputError(InputError):
    """Raised when the declared type is missing or not image/*."""
    pass


class SizeLimitError(InputError):
    """Raised when the candidate exceeds the upload byte limit."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(
            f"File too large: {size} bytes (max {limit // (1024 * 1024)}MB)"
        )


class DecodeError(InputError):
    """Raised when the bytes cannot be decoded as a raster image."""
    pass


class ConfigError(ImageSlotError):
    """Raised when the token or repository path is missing or malformed."""
    pass


class AuthError(ConfigError):
    """Raised when the token is missing or rejected by the store."""
    pass


class TransportError(ImageSlotError):
    """
    Raised on network failures and non-2xx responses from the store.

    Write conflicts (stale version token) are reported here as well;
    the caller re-initiates the upload.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class UploadInProgressError(ImageSlotError):
    """Raised when an upload is requested while another is in flight."""
    pass


class NoPreviewError(ImageSlotError):
    """Raised when confirming an upload with no pending preview."""
    pass


class RecordNotFoundError(ImageSlotError):
    """Raised when a recent upload record id is unknown."""
    pass
