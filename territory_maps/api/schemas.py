"""API request/response models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from ..models.territory import BBox, GenerationOptions, Territory


class ImageType(str, Enum):
    """Kind of image produced by the generate endpoint."""

    STANDARD = "standard"
    LARGE = "large"


# =============================================================================
# Generation Schemas
# =============================================================================


class GenerateImageRequest(BaseModel):
    """Request to generate a standard or large territory image."""

    territory: Territory
    image_type: ImageType = Field(default=ImageType.STANDARD, alias="imageType")
    options: GenerationOptions = Field(default_factory=GenerationOptions)

    model_config = {"populate_by_name": True}


class GenerateImageResponse(BaseModel):
    """Generated image and the metadata the caller should persist."""

    num: str
    image_type: ImageType = Field(..., serialization_alias="imageType")
    image: str = Field(..., description="PNG data URL")
    miniature: Optional[str] = Field(default=None, description="PNG data URL (standard only)")
    rotation: Optional[float] = Field(default=None, description="Discovered rotation in radians")
    bbox: Optional[BBox] = Field(default=None, description="Bbox used for a large image")
    width: Optional[int] = None
    height: Optional[int] = None


class CropImageResponse(BaseModel):
    """Re-cropped large image."""

    num: str
    image: str = Field(..., description="PNG data URL")
    width: int
    height: int
    bbox: BBox


# =============================================================================
# Thumbnail Schemas
# =============================================================================


class ThumbnailRequest(BaseModel):
    """Existing standard image to shrink."""

    image: str = Field(..., description="PNG data URL")


class ThumbnailResponse(BaseModel):
    """Miniature of a standard image."""

    miniature: str
    width: int
    height: int
