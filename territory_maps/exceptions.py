"""Errors raised by the territory image pipeline."""

from typing import Optional


class TerritoryImageError(Exception):
    """Base class for failures that abort an image generation request."""


class NetworkFailure(TerritoryImageError):
    """Raised when the map provider cannot be reached after all retries."""

    def __init__(self, attempts: int, last_error: Optional[str] = None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Request failed after {attempts} attempts: {last_error}")


class DecodeFailure(TerritoryImageError):
    """Raised when fetched or supplied bytes are not a readable raster."""


class EncodeFailure(TerritoryImageError):
    """Raised when a raster cannot be serialized."""
