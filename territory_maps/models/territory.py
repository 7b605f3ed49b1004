"""Territory input models."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

# (min_lon, min_lat, max_lon, max_lat)
BBox = tuple[float, float, float, float]

# (x, y) in raster pixels, y grows downward
PixelPoint = tuple[float, float]


def check_color(value: Optional[str]) -> Optional[str]:
    """Reject colors the drawing layer cannot parse."""
    if value is None:
        return value
    # utils imports the models, so the parser is loaded on first use
    from ..utils.image_utils import parse_color

    parse_color(value)
    return value


class Coordinate(BaseModel):
    """A GPS point in degrees."""

    lat: float = Field(..., ge=-90, le=90, description="Latitude")
    lon: float = Field(..., ge=-180, le=180, description="Longitude")


class Territory(BaseModel):
    """A numbered territory described by its GPS boundary."""

    num: str = Field(..., description="Territory number")
    name: str = Field(default="", description="Display name")
    polygon: list[Coordinate] = Field(
        default_factory=list,
        description="Boundary points in drawing order (may be degenerate)",
    )
    rotation: Optional[float] = Field(
        default=None,
        description="Rotation (radians) discovered by a previous standard generation",
    )
    current_bbox_large: Optional[BBox] = Field(
        default=None,
        alias="currentBboxLarge",
        description="Bounding box of the last large image, for re-cropping",
    )

    model_config = {"populate_by_name": True}


class GenerationOptions(BaseModel):
    """Per-request overrides for the drawing style."""

    contour_color: Optional[str] = Field(default=None, alias="contourColor")
    contour_width: Optional[int] = Field(default=None, ge=1, le=50, alias="contourWidth")

    model_config = {"populate_by_name": True}

    @field_validator("contour_color")
    @classmethod
    def _check_contour_color(cls, v: Optional[str]) -> Optional[str]:
        return check_color(v)


class CropHint(BaseModel):
    """Crop rectangle chosen by the user on a previously generated large image."""

    x: float
    y: float
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)
    image_width: float = Field(..., gt=0, alias="imageWidth")
    image_height: float = Field(..., gt=0, alias="imageHeight")

    model_config = {"populate_by_name": True}

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height


def validate_bbox(bbox: BBox) -> BBox:
    """Check the (min_lon, min_lat, max_lon, max_lat) ordering."""
    min_lon, min_lat, max_lon, max_lat = bbox
    if not (min_lon < max_lon and min_lat < max_lat):
        raise ValueError(f"Invalid bbox {bbox}: min must be lower than max on both axes")
    return (float(min_lon), float(min_lat), float(max_lon), float(max_lat))


class CustomBboxRequest(BaseModel):
    """A territory plus a user supplied bbox to re-crop a large image."""

    territory: Territory
    custom_bbox: BBox = Field(..., alias="customBbox")
    crop_data: Optional[CropHint] = Field(default=None, alias="cropData")
    options: GenerationOptions = Field(default_factory=GenerationOptions)

    model_config = {"populate_by_name": True}

    @field_validator("custom_bbox")
    @classmethod
    def _check_bbox(cls, v: BBox) -> BBox:
        return validate_bbox(v)
