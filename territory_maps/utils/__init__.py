"""Utility functions for territory image generation."""

from .geo_utils import (
    OrientationResult,
    bbox_to_polygon,
    calculate_bounding_box,
    convex_hull,
    find_optimal_orientation,
    gps_to_pixel,
    pixel_to_gps,
    rotate_point,
)
from .image_utils import (
    decode_data_url,
    decode_image,
    encode_data_url,
    encode_png,
    parse_color,
    save_image,
)

__all__ = [
    "OrientationResult",
    "bbox_to_polygon",
    "calculate_bounding_box",
    "convex_hull",
    "find_optimal_orientation",
    "gps_to_pixel",
    "pixel_to_gps",
    "rotate_point",
    "decode_data_url",
    "decode_image",
    "encode_data_url",
    "encode_png",
    "parse_color",
    "save_image",
]
