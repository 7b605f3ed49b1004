"""API routers for territory image generation."""

from . import territories

__all__ = ["territories"]
