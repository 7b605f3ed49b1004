"""Image decoding, encoding and color utilities."""

import base64
import re
from io import BytesIO
from pathlib import Path
from typing import Union

from PIL import Image, ImageColor, UnidentifiedImageError

from ..exceptions import DecodeFailure, EncodeFailure

DATA_URL_PREFIX = "data:image/png;base64,"

_RGBA_FLOAT_RE = re.compile(
    r"^rgba\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*,\s*([0-9]*\.?[0-9]+)\s*\)$",
    re.IGNORECASE,
)

RGBA = tuple[int, int, int, int]


def decode_image(data: bytes) -> Image.Image:
    """Decode raster bytes into an RGBA image."""
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise DecodeFailure(f"Invalid image data ({len(data)} bytes): {e}") from e
    return image.convert("RGBA")


def encode_png(image: Image.Image) -> bytes:
    """Serialize an image to PNG bytes."""
    buffer = BytesIO()
    try:
        image.save(buffer, format="PNG")
    except (OSError, ValueError, KeyError) as e:
        raise EncodeFailure(f"Could not encode {image.mode} image {image.size}: {e}") from e
    return buffer.getvalue()


def to_data_url(png: bytes) -> str:
    """Wrap PNG bytes into a data URL."""
    return DATA_URL_PREFIX + base64.b64encode(png).decode("ascii")


def encode_data_url(image: Image.Image) -> str:
    """Encode an image as a PNG data URL."""
    return to_data_url(encode_png(image))


def data_url_to_png(payload: str) -> bytes:
    """Extract raw bytes from a data URL (or bare base64 string)."""
    _, _, encoded = payload.rpartition(",")
    try:
        return base64.b64decode(encoded, validate=True)
    except ValueError as e:
        raise DecodeFailure(f"Invalid base64 payload: {e}") from e


def decode_data_url(payload: str) -> Image.Image:
    """Decode a base64 data URL (or bare base64 string) into an RGBA image."""
    return decode_image(data_url_to_png(payload))


def save_image(image: Image.Image, path: Union[str, Path]) -> None:
    """Save an image to file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(encode_png(image))


def parse_color(color: str, alpha: float = 1.0) -> RGBA:
    """
    Parse a CSS-like color into an RGBA tuple.

    Accepts everything PIL understands (names, hex, rgb()) plus CSS
    ``rgba(r, g, b, a)`` with a fractional alpha in [0, 1].

    Args:
        color: Color string
        alpha: Extra opacity multiplier in [0, 1]
    """
    match = _RGBA_FLOAT_RE.match(color.strip())
    if match:
        r, g, b = (int(match.group(i)) for i in range(1, 4))
        a = float(match.group(4))
        # CSS alpha is fractional; integer alphas above 1 are 0-255
        a_byte = round(a * 255) if a <= 1 else int(a)
    else:
        rgb = ImageColor.getrgb(color)
        r, g, b = rgb[:3]
        a_byte = rgb[3] if len(rgb) == 4 else 255

    return (r, g, b, round(min(255, a_byte) * alpha))
