"""Territory image services."""

from .canvas_service import MaskMode, PillowCanvas, RasterCanvas
from .territory_image_service import TerritoryImageService
from .throttle_service import RequestThrottler
from .tile_service import TileFetcher

__all__ = [
    "MaskMode",
    "PillowCanvas",
    "RasterCanvas",
    "TerritoryImageService",
    "RequestThrottler",
    "TileFetcher",
]
