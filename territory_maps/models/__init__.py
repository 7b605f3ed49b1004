"""Data models for territory image generation."""

from .territory import (
    BBox,
    Coordinate,
    CropHint,
    CustomBboxRequest,
    GenerationOptions,
    PixelPoint,
    Territory,
    validate_bbox,
)
from .generation import (
    PHI,
    BatchItemResult,
    BatchReport,
    CustomBboxImageResult,
    GenerationConfig,
    LargeImageResult,
    OutputDimensions,
    ProviderSettings,
    StandardImageResult,
    calculate_resolution,
)

__all__ = [
    "BBox",
    "Coordinate",
    "CropHint",
    "CustomBboxRequest",
    "GenerationOptions",
    "PixelPoint",
    "Territory",
    "validate_bbox",
    "PHI",
    "BatchItemResult",
    "BatchReport",
    "CustomBboxImageResult",
    "GenerationConfig",
    "LargeImageResult",
    "OutputDimensions",
    "ProviderSettings",
    "StandardImageResult",
    "calculate_resolution",
]
