"""Raster compositing for territory images.

The pipeline only talks to rasters through the RasterCanvas protocol
(rotate, crop-resize, fill-path, stroke-path, encode). PillowCanvas is the
adapter backed by an RGBA PIL image. The functions at the bottom are the
compositing steps built on top of that protocol.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Sequence, Union

from PIL import Image, ImageChops, ImageDraw

from ..models.territory import PixelPoint
from ..utils.image_utils import RGBA, encode_png, parse_color

TRANSPARENT: RGBA = (0, 0, 0, 0)

# Veil drawn over the masked area
MASK_COLOR = "grey"
MASK_ALPHA = 0.55

Color = Union[str, RGBA]


class MaskMode(str, Enum):
    """How the territory mask is drawn."""

    STANDARD = "standard"  # Veil everything outside the territory
    WIDE = "wide"  # Veil only the territory interior


@dataclass(frozen=True)
class CropRect:
    """Axis-aligned source rectangle in pixels (fractional values allowed)."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height


class RasterCanvas(Protocol):
    """Capabilities the image pipeline needs from a raster backend."""

    @property
    def width(self) -> int: ...

    @property
    def height(self) -> int: ...

    def rotate(self, angle: float, cx: float, cy: float) -> "RasterCanvas": ...

    def rotate_180(self) -> "RasterCanvas": ...

    def crop_resize(self, rect: CropRect, width: int, height: int) -> "RasterCanvas": ...

    def fill_path(self, paths: Sequence[Sequence[PixelPoint]], color: Color, even_odd: bool = True) -> None: ...

    def stroke_path(self, points: Sequence[PixelPoint], color: Color, line_width: int, closed: bool = True) -> None: ...

    def encode(self) -> bytes: ...


def _to_rgba(color: Color) -> RGBA:
    return parse_color(color) if isinstance(color, str) else color


class PillowCanvas:
    """RasterCanvas backed by an RGBA PIL image."""

    def __init__(self, image: Image.Image):
        self.image = image if image.mode == "RGBA" else image.convert("RGBA")

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def size(self) -> tuple[int, int]:
        return self.image.size

    def rotate(self, angle: float, cx: float, cy: float) -> "PillowCanvas":
        """
        Rotate by angle (radians) about (cx, cy) into a same-size canvas.

        Uses the same sense as geo_utils.rotate_point in y-down pixel space,
        i.e. positive angles turn clockwise on screen. Uncovered areas are
        transparent.
        """
        rotated = self.image.rotate(
            -math.degrees(angle),
            resample=Image.Resampling.BICUBIC,
            center=(cx, cy),
            fillcolor=TRANSPARENT,
        )
        return PillowCanvas(rotated)

    def rotate_180(self) -> "PillowCanvas":
        """Exact half turn about the canvas center."""
        return PillowCanvas(self.image.transpose(Image.Transpose.ROTATE_180))

    def crop_resize(self, rect: CropRect, width: int, height: int) -> "PillowCanvas":
        """
        Resample a source rectangle into a new width x height canvas.

        The rectangle may extend past the source; those areas come out
        transparent.
        """
        if rect.width <= 0 or rect.height <= 0:
            raise ValueError(f"Crop rectangle must have a positive size, got {rect}")

        left = math.floor(rect.x)
        top = math.floor(rect.y)
        right = max(math.ceil(rect.right), left + 1)
        bottom = max(math.ceil(rect.bottom), top + 1)

        # crop() pads out-of-bounds areas with zeros (transparent)
        region = self.image.crop((left, top, right, bottom))
        box = (
            rect.x - left,
            rect.y - top,
            min(rect.right - left, region.width),
            min(rect.bottom - top, region.height),
        )
        resized = region.resize((width, height), resample=Image.Resampling.LANCZOS, box=box)
        return PillowCanvas(resized)

    def fill_path(
        self,
        paths: Sequence[Sequence[PixelPoint]],
        color: Color,
        even_odd: bool = True,
    ) -> None:
        """
        Fill closed paths.

        With even_odd, a pixel is filled when it lies inside an odd number of
        paths; otherwise the union is filled. Paths with fewer than 3 points
        enclose nothing and are skipped.
        """
        coverage = Image.new("1", self.image.size, 0)
        for path in paths:
            if len(path) < 3:
                continue
            shape = Image.new("1", self.image.size, 0)
            ImageDraw.Draw(shape).polygon([tuple(p) for p in path], fill=1)
            coverage = ImageChops.logical_xor(coverage, shape) if even_odd else ImageChops.logical_or(coverage, shape)

        layer = Image.new("RGBA", self.image.size, TRANSPARENT)
        layer.paste(Image.new("RGBA", self.image.size, _to_rgba(color)), mask=coverage)
        self.image = Image.alpha_composite(self.image, layer)

    def stroke_path(
        self,
        points: Sequence[PixelPoint],
        color: Color,
        line_width: int,
        closed: bool = True,
    ) -> None:
        """Stroke a polyline, closing it back to its first point when closed."""
        if len(points) < 2:
            return
        coords = [tuple(p) for p in points]
        if closed:
            coords.append(coords[0])

        layer = Image.new("RGBA", self.image.size, TRANSPARENT)
        ImageDraw.Draw(layer).line(coords, fill=_to_rgba(color), width=line_width, joint="curve")
        self.image = Image.alpha_composite(self.image, layer)

    def encode(self) -> bytes:
        return encode_png(self.image)


def rotate_about_center(canvas: RasterCanvas, angle: float, cx: float, cy: float) -> RasterCanvas:
    """Rotate a canvas about (cx, cy) into a new canvas of the same size."""
    return canvas.rotate(angle, cx, cy)


def crop_and_resize(canvas: RasterCanvas, rect: CropRect, width: int, height: int) -> RasterCanvas:
    """Resample an axis-aligned source rectangle into width x height."""
    return canvas.crop_resize(rect, width, height)


def draw_mask(
    canvas: RasterCanvas,
    polygon: Sequence[PixelPoint],
    width: int,
    height: int,
    mode: MaskMode,
    color: str = MASK_COLOR,
    alpha: float = MASK_ALPHA,
) -> None:
    """
    Veil part of the canvas around a territory.

    STANDARD fills the full width x height rectangle combined with the polygon
    under the even-odd rule, leaving only the territory clear. WIDE fills the
    polygon interior only, highlighting it within its surroundings.
    """
    fill = parse_color(color, alpha=alpha)
    if mode == MaskMode.WIDE:
        canvas.fill_path([polygon], fill)
    else:
        frame = [(0.0, 0.0), (float(width), 0.0), (float(width), float(height)), (0.0, float(height))]
        canvas.fill_path([frame, polygon], fill, even_odd=True)


def draw_contour(canvas: RasterCanvas, polygon: Sequence[PixelPoint], color: str, line_width: int) -> None:
    """Stroke the closed territory boundary."""
    canvas.stroke_path(polygon, color, line_width, closed=True)


def is_upside_down(angle: float) -> bool:
    """True when a rotation leaves the image closer to upside down than upright."""
    return abs(abs(angle) - math.pi) < math.pi / 2


def flip_if_upside_down(canvas: RasterCanvas, angle: float) -> RasterCanvas:
    """Turn the canvas by 180 degrees when angle would leave it upside down."""
    if not is_upside_down(angle):
        return canvas
    return canvas.rotate_180()
