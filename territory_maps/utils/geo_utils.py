"""Geographic and coordinate utilities.

Pure geometry used by the image pipeline: bounding box sizing, GPS to pixel
projection, convex hull and the orientation search that picks the crop
rotation. None of these functions raise on degenerate input; they fall back to
conservative values instead.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

import numpy as np
from shapely.geometry import Polygon, box

from ..models.generation import PHI
from ..models.territory import BBox, Coordinate, PixelPoint

logger = logging.getLogger(__name__)

# Minimum-size policy for small territories. Empirical tuning: a territory whose
# diagonal is below MIN_DIAGONAL / factor gets a MIN_BBOX_SIZE / factor box,
# where factor = (DPI_REFERENCE / ppp) * DPI_MARGIN.
MIN_BBOX_SIZE = 0.01618
MIN_DIAGONAL = 0.01
DPI_REFERENCE = 200
DPI_MARGIN = 1.2

# Decimal places kept on the standard bbox side
BBOX_SIZE_PRECISION = 5


@dataclass
class OrientationResult:
    """Best rotation found for fitting a hull into a target canvas."""

    angle: float  # radians
    scale: float
    hull: list[PixelPoint] = field(default_factory=list)  # hull after rotation
    center: PixelPoint = (0.0, 0.0)  # center of the rotated hull's bounds


def bbox_to_polygon(bbox: BBox) -> Polygon:
    """Convert a (min_lon, min_lat, max_lon, max_lat) bbox to a Shapely polygon."""
    return box(*bbox)


def territory_to_polygon(polygon: Sequence[Coordinate]) -> Optional[Polygon]:
    """Build a Shapely (lon, lat) polygon, or None when there are fewer than 3 points."""
    if len(polygon) < 3:
        return None
    return Polygon([(c.lon, c.lat) for c in polygon])


def dpi_factor(ppp: int) -> float:
    """Scale factor relating print density to the minimum-size policy."""
    return (DPI_REFERENCE / ppp) * DPI_MARGIN


def minimum_bbox_size(ppp: int) -> float:
    """Side of the smallest bbox generated at this print density."""
    return MIN_BBOX_SIZE / dpi_factor(ppp)


def calculate_bounding_box(
    polygon: Sequence[Coordinate],
    wide: bool,
    ppp: int,
    large_factor: float,
) -> BBox:
    """
    Calculate the square bounding box to request around a territory.

    Args:
        polygon: Territory boundary
        wide: True for the large (context) view, False for the standard view
        ppp: Print density, drives the minimum-size floor
        large_factor: Zoom factor of the large view (size = diagonal / factor)

    Returns:
        (min_lon, min_lat, max_lon, max_lat), square and centered on the
        center of the polygon's extrema
    """
    if polygon:
        lats = [c.lat for c in polygon]
        lons = [c.lon for c in polygon]
        min_lat, max_lat = min(lats), max(lats)
        min_lon, max_lon = min(lons), max(lons)
    else:
        logger.debug("Empty polygon, centering bbox on (0, 0)")
        min_lat = max_lat = min_lon = max_lon = 0.0

    diagonal = math.hypot(max_lat - min_lat, max_lon - min_lon)
    center_lat = (min_lat + max_lat) / 2
    center_lon = (min_lon + max_lon) / 2
    floor_size = minimum_bbox_size(ppp)

    if wide:
        size = diagonal / large_factor
        if size <= 0:
            logger.debug("Zero-extent polygon in wide mode, using floor size %.6f", floor_size)
            size = floor_size
    else:
        factor = dpi_factor(ppp)
        if diagonal < MIN_DIAGONAL / factor:
            size = floor_size
        else:
            size = round(diagonal * PHI, BBOX_SIZE_PRECISION)

    half = size / 2
    return (center_lon - half, center_lat - half, center_lon + half, center_lat + half)


def gps_to_pixel(lat: float, lon: float, bbox: BBox, size: int) -> PixelPoint:
    """
    Convert GPS coordinates to a pixel position in a square raster covering bbox.

    Args:
        lat: Latitude
        lon: Longitude
        bbox: (min_lon, min_lat, max_lon, max_lat)
        size: Raster side in pixels

    Returns:
        (x, y) pixel coordinates, y pointing down
    """
    min_lon, min_lat, max_lon, max_lat = bbox
    x = (lon - min_lon) / (max_lon - min_lon) * size
    y = (max_lat - lat) / (max_lat - min_lat) * size
    return (x, y)


def pixel_to_gps(x: float, y: float, bbox: BBox, size: int) -> tuple[float, float]:
    """
    Convert a pixel position back to GPS coordinates.

    Returns:
        (latitude, longitude)
    """
    min_lon, min_lat, max_lon, max_lat = bbox
    lon = min_lon + x / size * (max_lon - min_lon)
    lat = max_lat - y / size * (max_lat - min_lat)
    return (lat, lon)


def project_polygon(polygon: Iterable[Coordinate], bbox: BBox, size: int) -> list[PixelPoint]:
    """Project every point of a territory into raster pixels."""
    return [gps_to_pixel(c.lat, c.lon, bbox, size) for c in polygon]


def _cross(o: PixelPoint, a: PixelPoint, b: PixelPoint) -> float:
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def convex_hull(points: Sequence[PixelPoint]) -> list[PixelPoint]:
    """
    Compute the convex hull with Andrew's monotone chain.

    Collinear points are dropped. Fewer than 3 points are returned unchanged.
    """
    if len(points) < 3:
        return list(points)

    ordered = sorted(points)

    lower: list[PixelPoint] = []
    for p in ordered:
        while len(lower) >= 2 and _cross(lower[-2], lower[-1], p) <= 0:
            lower.pop()
        lower.append(p)

    upper: list[PixelPoint] = []
    for p in reversed(ordered):
        while len(upper) >= 2 and _cross(upper[-2], upper[-1], p) <= 0:
            upper.pop()
        upper.append(p)

    # Last point of each chain is the first point of the other
    return lower[:-1] + upper[:-1]


def rotate_point(point: PixelPoint, angle: float, center: PixelPoint) -> PixelPoint:
    """Rotate a point by angle (radians) about center."""
    cx, cy = center
    dx = point[0] - cx
    dy = point[1] - cy
    cos_a = math.cos(angle)
    sin_a = math.sin(angle)
    return (dx * cos_a - dy * sin_a + cx, dx * sin_a + dy * cos_a + cy)


def rotate_points(points: Sequence[PixelPoint], angle: float, center: PixelPoint) -> np.ndarray:
    """Rotate many points at once; returns an (N, 2) array."""
    arr = np.asarray(points, dtype=float).reshape(-1, 2)
    c = np.asarray(center, dtype=float)
    cos_a = math.cos(angle)
    sin_a = math.sin(angle)
    rotation = np.array([[cos_a, -sin_a], [sin_a, cos_a]])
    return (arr - c) @ rotation.T + c


def _fit_scale(extent: float, target: float) -> float:
    # A zero extent fits any target
    return target / extent if extent > 0 else math.inf


def find_optimal_orientation(
    hull: Sequence[PixelPoint],
    size: int,
    target_width: int,
    target_height: int,
) -> OrientationResult:
    """
    Find the rotation that lets a hull fill the largest part of the target canvas.

    Each hull edge is tried as the horizontal axis. The hull is rotated about
    the raster center and scored by the largest scale at which its
    axis-aligned bounds still fit target_width x target_height. Ties keep the
    first edge in hull order.

    Args:
        hull: Convex hull in raster pixels
        size: Side of the square raster
        target_width: Output width in pixels
        target_height: Output height in pixels

    Returns:
        OrientationResult with the winning angle, scale and rotated hull
    """
    center = (size / 2, size / 2)

    if not hull:
        logger.debug("Empty hull, keeping north-up orientation")
        return OrientationResult(angle=0.0, scale=1.0, hull=[], center=center)

    best: Optional[OrientationResult] = None
    n = len(hull)

    for i in range(n):
        a = hull[i]
        b = hull[(i + 1) % n]
        angle = -math.atan2(b[1] - a[1], b[0] - a[0])

        rotated = rotate_points(hull, angle, center)
        min_x, min_y = rotated.min(axis=0)
        max_x, max_y = rotated.max(axis=0)

        scale = min(
            _fit_scale(max_x - min_x, target_width),
            _fit_scale(max_y - min_y, target_height),
        )

        if best is None or scale > best.scale:
            best = OrientationResult(
                angle=angle,
                scale=scale,
                hull=[(float(x), float(y)) for x, y in rotated],
                center=(float(min_x + max_x) / 2, float(min_y + max_y) / 2),
            )

    return best


def hull_bounds(points: Sequence[PixelPoint]) -> tuple[float, float, float, float]:
    """Axis-aligned bounds (min_x, min_y, max_x, max_y) of a point set."""
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    return (min(xs), min(ys), max(xs), max(ys))


def bbox_aspect_ratio(bbox: BBox) -> float:
    """Width / height of a bbox in degrees."""
    min_lon, min_lat, max_lon, max_lat = bbox
    return (max_lon - min_lon) / (max_lat - min_lat)


def expand_bbox(bbox: BBox, margin_factor: float) -> BBox:
    """Grow a bbox on every side by margin_factor times its own span."""
    min_lon, min_lat, max_lon, max_lat = bbox
    lon_margin = (max_lon - min_lon) * margin_factor
    lat_margin = (max_lat - min_lat) * margin_factor
    return (min_lon - lon_margin, min_lat - lat_margin, max_lon + lon_margin, max_lat + lat_margin)
