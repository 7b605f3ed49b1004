"""Miniature generation."""

from PIL import Image

from ..exceptions import DecodeFailure
from ..utils.image_utils import decode_data_url, encode_data_url
from .canvas_service import CropRect, PillowCanvas


def center_crop_rect(source_width: int, source_height: int, target_width: int, target_height: int) -> CropRect:
    """
    Largest centered rectangle of the source with the target aspect ratio.

    The axis with surplus extent is trimmed equally on both sides.
    """
    source_ratio = source_width / source_height
    target_ratio = target_width / target_height

    if source_ratio < target_ratio:
        # Too tall: trim top and bottom
        height = source_width / target_ratio
        return CropRect(0.0, (source_height - height) / 2, float(source_width), height)
    if source_ratio > target_ratio:
        # Too wide: trim left and right
        width = source_height * target_ratio
        return CropRect((source_width - width) / 2, 0.0, width, float(source_height))
    return CropRect(0.0, 0.0, float(source_width), float(source_height))


def create_thumbnail(source: Image.Image, target_width: int, target_height: int) -> Image.Image:
    """
    Create a miniature of exactly target_width x target_height.

    Crops the source to the target aspect ratio around its center, then
    resamples with Lanczos smoothing.
    """
    canvas = PillowCanvas(source)
    rect = center_crop_rect(canvas.width, canvas.height, target_width, target_height)
    return canvas.crop_resize(rect, target_width, target_height).image


def create_thumbnail_from_data_url(payload: str, target_width: int, target_height: int) -> str:
    """Decode a PNG data URL, build its miniature and re-encode it."""
    try:
        source = decode_data_url(payload)
    except DecodeFailure as e:
        raise DecodeFailure(f"Could not create thumbnail: {e}") from e
    return encode_data_url(create_thumbnail(source, target_width, target_height))
