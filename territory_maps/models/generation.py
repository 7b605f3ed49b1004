"""Generation settings and result models."""

import math
from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .territory import BBox, check_color

# Golden ratio, used for raw raster sizing and crop margins
PHI = (1 + math.sqrt(5)) / 2

# Long side of the printed sheet (A4), in centimeters
PAPER_WIDTH_CM = 29.7


def calculate_resolution(
    ratio_x: float,
    ratio_y: float,
    ppp: int,
    paper_width_cm: float = PAPER_WIDTH_CM,
) -> tuple[int, int]:
    """Calculate output pixel dimensions for a paper ratio at a given density.

    The long side of the ratio is mapped onto the paper width, the short side
    is scaled accordingly.

    Args:
        ratio_x: Horizontal part of the aspect ratio
        ratio_y: Vertical part of the aspect ratio
        ppp: Points per inch (print density)
        paper_width_cm: Length of the long side in centimeters

    Returns:
        (width, height) in pixels
    """
    if ratio_x >= ratio_y:
        width_cm = paper_width_cm
        height_cm = paper_width_cm * ratio_y / ratio_x
    else:
        height_cm = paper_width_cm
        width_cm = paper_width_cm * ratio_x / ratio_y

    return (round(width_cm / 2.54 * ppp), round(height_cm / 2.54 * ppp))


class ProviderSettings(BaseModel):
    """WMS map provider settings."""

    base_url: str = Field(default="https://data.geopf.fr/wms-r", description="WMS endpoint")
    layer: str = Field(default="GEOGRAPHICALGRIDSYSTEMS.PLANIGNV2", description="Layer name")
    format: str = Field(default="image/png", description="Output MIME type")
    crs: str = Field(default="EPSG:4326", description="Coordinate reference system")


class GenerationConfig(BaseModel):
    """Settings driving the territory image pipeline."""

    ppp: int = Field(default=250, ge=100, le=300, description="Print density (points per inch)")
    ratio_x: float = Field(default=1.618, ge=0.1, le=10, description="Standard image ratio, x part")
    ratio_y: float = Field(default=1.0, ge=0.1, le=10, description="Standard image ratio, y part")
    large_ratio_x: float = Field(default=1.0, ge=0.1, le=10, description="Large image ratio, x part")
    large_ratio_y: float = Field(default=1.618, ge=0.1, le=10, description="Large image ratio, y part")
    large_factor: float = Field(default=0.2, ge=0.01, le=1, description="Zoom factor for large images")

    contour_color: str = Field(default="red", description="Territory contour color")
    contour_width: int = Field(default=8, ge=1, le=50, description="Territory contour width (px)")
    thumbnail_width: int = Field(default=500, ge=100, le=1000, description="Miniature width (px)")

    provider: ProviderSettings = Field(default_factory=ProviderSettings)

    network_retries: int = Field(default=3, ge=1, le=10, description="Fetch attempts per request")
    network_delay: int = Field(default=1000, ge=100, le=10000, description="Delay between attempts (ms)")
    min_request_spacing: int = Field(
        default=1500,
        ge=0,
        description="Minimum delay between the starts of two provider requests (ms)",
    )

    @field_validator("contour_color")
    @classmethod
    def _check_contour_color(cls, v: str) -> str:
        return check_color(v)

    def dimensions(self) -> "OutputDimensions":
        """Derive raster dimensions from ratios and print density."""
        return OutputDimensions.from_config(self)


class OutputDimensions(BaseModel):
    """Pixel sizes of the fetched and produced rasters."""

    final_width: int
    final_height: int
    raw_size: int
    large_final_width: int
    large_final_height: int
    large_raw_size: int

    @classmethod
    def from_config(cls, config: GenerationConfig) -> "OutputDimensions":
        final_width, final_height = calculate_resolution(config.ratio_x, config.ratio_y, config.ppp)
        large_width, large_height = calculate_resolution(
            config.large_ratio_x, config.large_ratio_y, config.ppp
        )
        return cls(
            final_width=final_width,
            final_height=final_height,
            raw_size=round(max(final_width, final_height) * PHI),
            large_final_width=large_width,
            large_final_height=large_height,
            large_raw_size=round(max(large_width, large_height) * PHI),
        )

    @property
    def thumbnail_height_ratio(self) -> float:
        return self.final_height / self.final_width


@dataclass
class StandardImageResult:
    """Result of a standard (optimally oriented) generation."""

    image: str  # PNG data URL
    miniature: str  # PNG data URL
    discovered_rotation: float  # radians, for the caller to persist


@dataclass
class LargeImageResult:
    """Result of a large (wide context) generation."""

    image: str
    width: int
    height: int
    bbox: BBox


@dataclass
class CustomBboxImageResult:
    """Result of a large generation re-cropped to a custom bbox."""

    image: str
    width: int
    height: int


@dataclass
class BatchItemResult:
    """Outcome of one territory in a batch run."""

    num: str
    result: Optional[StandardImageResult] = None
    error: Optional[str] = None
    skipped: bool = False

    @property
    def succeeded(self) -> bool:
        return self.result is not None


@dataclass
class BatchReport:
    """Outcome of a batch run."""

    items: list[BatchItemResult] = field(default_factory=list)

    @property
    def failed(self) -> list[str]:
        return [i.num for i in self.items if i.error is not None]

    @property
    def succeeded(self) -> list[str]:
        return [i.num for i in self.items if i.succeeded]

    @property
    def skipped(self) -> list[str]:
        return [i.num for i in self.items if i.skipped]
