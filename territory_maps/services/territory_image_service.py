"""Territory image generation orchestration service.

This service coordinates the image pipeline for one territory:
1. Size a square bounding box around the territory
2. Fetch the basemap through the shared request throttler
3. (standard only) Find the rotation that best fills the output sheet
4. Rotate, crop and resize the basemap
5. Veil the surroundings, stroke the boundary, fix upside-down output
6. Encode the result and its miniature
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Callable, Optional, Sequence

from PIL import Image

from ..exceptions import TerritoryImageError
from ..models.generation import (
    PHI,
    BatchItemResult,
    BatchReport,
    CustomBboxImageResult,
    GenerationConfig,
    LargeImageResult,
    OutputDimensions,
    StandardImageResult,
)
from ..models.territory import BBox, CropHint, GenerationOptions, PixelPoint, Territory, validate_bbox
from ..utils.geo_utils import (
    OrientationResult,
    bbox_aspect_ratio,
    bbox_to_polygon,
    calculate_bounding_box,
    convex_hull,
    expand_bbox,
    find_optimal_orientation,
    hull_bounds,
    project_polygon,
    rotate_point,
    territory_to_polygon,
)
from ..utils.image_utils import encode_data_url, to_data_url
from .canvas_service import (
    CropRect,
    MaskMode,
    PillowCanvas,
    crop_and_resize,
    draw_contour,
    draw_mask,
    flip_if_upside_down,
    rotate_about_center,
)
from .thumbnail_service import create_thumbnail, create_thumbnail_from_data_url
from .throttle_service import RequestThrottler
from .tile_service import TileFetcher

logger = logging.getLogger(__name__)


class TerritoryImageService:
    """Generates standard, large and re-cropped images of territories."""

    def __init__(
        self,
        config: Optional[GenerationConfig] = None,
        fetcher: Optional[TileFetcher] = None,
        throttler: Optional[RequestThrottler] = None,
    ):
        """
        Initialize territory image service.

        Args:
            config: Generation settings (defaults apply when omitted)
            fetcher: Optional pre-configured tile fetcher
            throttler: Shared request gate used when the fetcher is created
                here. Pass the process-wide instance so that every service
                talking to the provider respects the same spacing.
        """
        self.config = config or GenerationConfig()
        self.dimensions: OutputDimensions = self.config.dimensions()
        self._throttler = throttler
        self._fetcher = fetcher

    @property
    def fetcher(self) -> TileFetcher:
        if self._fetcher is None:
            if self._throttler is None:
                self._throttler = RequestThrottler(self.config.min_request_spacing / 1000)
            self._fetcher = TileFetcher(
                provider=self.config.provider,
                throttler=self._throttler,
                retries=self.config.network_retries,
                delay_ms=self.config.network_delay,
            )
        return self._fetcher

    @property
    def thumbnail_size(self) -> tuple[int, int]:
        """Miniature (width, height), keeping the standard image's aspect ratio."""
        width = self.config.thumbnail_width
        return (width, round(self.dimensions.thumbnail_height_ratio * width))

    def _contour_style(self, options: Optional[GenerationOptions]) -> tuple[str, int]:
        color = self.config.contour_color
        width = self.config.contour_width
        if options is not None:
            color = options.contour_color or color
            width = options.contour_width or width
        return color, width

    def _fetch_basemap(self, bbox: BBox, size: int) -> PillowCanvas:
        image = self.fetcher.fetch_basemap(bbox, size)
        if image.size != (size, size):
            logger.info("Provider returned %s, resizing to %dx%d", image.size, size, size)
            image = image.resize((size, size), Image.Resampling.LANCZOS)
        return PillowCanvas(image)

    # -- Standard image -------------------------------------------------

    def calculate_crop_window(self, optimal: OrientationResult) -> CropRect:
        """
        Crop window around the rotated hull with the standard output ratio.

        The hull bounds are grown along one axis to reach the target ratio and
        centered on the hull. A hull without extent falls back to a window as
        wide as the raster.
        """
        raw_size = self.dimensions.raw_size
        ratio = self.dimensions.final_width / self.dimensions.final_height

        if optimal.hull:
            min_x, min_y, max_x, max_y = hull_bounds(optimal.hull)
            width = max_x - min_x
            height = max_y - min_y
            cx = (min_x + max_x) / 2
            cy = (min_y + max_y) / 2
        else:
            width = height = 0.0
            cx = cy = raw_size / 2

        if width <= 0 and height <= 0:
            logger.debug("Hull has no extent, cropping a raster-wide window")
            width = float(raw_size)

        crop_width, crop_height = width, height
        if height <= 0 or width / height > ratio:
            crop_height = width / ratio
        else:
            crop_width = height * ratio

        return CropRect(cx - crop_width / 2, cy - crop_height / 2, crop_width, crop_height)

    def transform_polygon_to_output(
        self,
        polygon: Sequence[PixelPoint],
        angle: float,
        rect: CropRect,
    ) -> list[PixelPoint]:
        """Map raw raster pixels to output pixels: rotate about the raster center, then crop and scale."""
        center = (self.dimensions.raw_size / 2, self.dimensions.raw_size / 2)
        scale_x = self.dimensions.final_width / rect.width
        scale_y = self.dimensions.final_height / rect.height

        output = []
        for point in polygon:
            xr, yr = rotate_point(point, angle, center)
            output.append(((xr - rect.x) * scale_x, (yr - rect.y) * scale_y))
        return output

    def generate_standard(
        self,
        territory: Territory,
        options: Optional[GenerationOptions] = None,
    ) -> StandardImageResult:
        """
        Generate the optimally oriented, tightly cropped image of a territory.

        The territory is not modified; the rotation that was applied is
        returned as discovered_rotation for the caller to store.

        Raises:
            NetworkFailure: If the basemap could not be fetched
            DecodeFailure: If the provider did not return an image
            EncodeFailure: If the result could not be serialized
        """
        color, line_width = self._contour_style(options)
        dims = self.dimensions
        cfg = self.config

        bbox = calculate_bounding_box(territory.polygon, False, cfg.ppp, cfg.large_factor)
        logger.info("Generating standard image for territory %s", territory.num)
        basemap = self._fetch_basemap(bbox, dims.raw_size)

        polygon_px = project_polygon(territory.polygon, bbox, dims.raw_size)
        optimal = find_optimal_orientation(
            convex_hull(polygon_px),
            dims.raw_size,
            dims.final_width,
            dims.final_height,
        )

        rotated = rotate_about_center(basemap, optimal.angle, dims.raw_size / 2, dims.raw_size / 2)
        rect = self.calculate_crop_window(optimal)
        canvas = crop_and_resize(rotated, rect, dims.final_width, dims.final_height)

        final_polygon = self.transform_polygon_to_output(polygon_px, optimal.angle, rect)
        draw_mask(canvas, final_polygon, dims.final_width, dims.final_height, MaskMode.STANDARD)
        draw_contour(canvas, final_polygon, color, line_width)

        canvas = flip_if_upside_down(canvas, optimal.angle)

        image = to_data_url(canvas.encode())
        miniature = encode_data_url(create_thumbnail(canvas.image, *self.thumbnail_size))
        logger.info(
            "Territory %s: rotation %.4f rad, scale %.3f",
            territory.num,
            optimal.angle,
            optimal.scale,
        )
        return StandardImageResult(image=image, miniature=miniature, discovered_rotation=optimal.angle)

    # -- Large image ----------------------------------------------------

    def generate_large(
        self,
        territory: Territory,
        options: Optional[GenerationOptions] = None,
    ) -> LargeImageResult:
        """
        Generate the wide context image of a territory, north up.

        Returns the bbox used so that the caller can later request a re-crop.
        """
        color, line_width = self._contour_style(options)
        cfg = self.config
        size = self.dimensions.large_raw_size

        bbox = calculate_bounding_box(territory.polygon, True, cfg.ppp, cfg.large_factor)
        logger.info("Generating large image for territory %s", territory.num)
        canvas = self._fetch_basemap(bbox, size)

        polygon_px = project_polygon(territory.polygon, bbox, size)
        draw_mask(canvas, polygon_px, size, size, MaskMode.WIDE)
        draw_contour(canvas, polygon_px, color, line_width)

        return LargeImageResult(image=to_data_url(canvas.encode()), width=size, height=size, bbox=bbox)

    def output_size_for_crop(self, crop_ratio: float) -> tuple[int, int]:
        """
        Large output (width, height) for a crop of the given aspect ratio.

        The configured large dimensions are kept when the crop has the same
        orientation (or is square) and swapped when portrait and landscape
        disagree.
        """
        width = self.dimensions.large_final_width
        height = self.dimensions.large_final_height

        crop_portrait = crop_ratio < 1
        crop_landscape = crop_ratio > 1
        config_portrait = width < height
        config_landscape = width > height

        if (crop_portrait and config_landscape) or (crop_landscape and config_portrait):
            return (height, width)
        return (width, height)

    def generate_large_with_custom_bbox(
        self,
        territory: Territory,
        bbox: BBox,
        options: Optional[GenerationOptions] = None,
        crop_hint: Optional[CropHint] = None,
    ) -> CustomBboxImageResult:
        """
        Generate a large image re-cropped to a user supplied bbox.

        The output aspect comes from crop_hint when given, else from the bbox
        itself. The basemap is fetched with a golden-ratio margin around the
        bbox and the bbox window is cut out of it.
        """
        color, line_width = self._contour_style(options)
        bbox = validate_bbox(bbox)
        min_lon, min_lat, max_lon, max_lat = bbox
        bbox_width = max_lon - min_lon
        bbox_height = max_lat - min_lat

        crop_ratio = crop_hint.aspect_ratio if crop_hint is not None else bbox_aspect_ratio(bbox)
        width, height = self.output_size_for_crop(crop_ratio)

        shape = territory_to_polygon(territory.polygon)
        if shape is not None and not shape.envelope.intersects(bbox_to_polygon(bbox)):
            logger.warning("Custom bbox %s does not cover territory %s", bbox, territory.num)

        expanded = expand_bbox(bbox, PHI)
        size = self.dimensions.large_raw_size
        logger.info("Generating %dx%d re-cropped image for territory %s", width, height, territory.num)
        basemap = self._fetch_basemap(expanded, size)

        expanded_width = expanded[2] - expanded[0]
        expanded_height = expanded[3] - expanded[1]
        rect = CropRect(
            (min_lon - expanded[0]) / expanded_width * size,
            (expanded[3] - max_lat) / expanded_height * size,
            bbox_width / expanded_width * size,
            bbox_height / expanded_height * size,
        )
        canvas = crop_and_resize(basemap, rect, width, height)

        polygon_px = [
            ((c.lon - min_lon) / bbox_width * width, (max_lat - c.lat) / bbox_height * height)
            for c in territory.polygon
        ]
        draw_mask(canvas, polygon_px, width, height, MaskMode.WIDE)
        draw_contour(canvas, polygon_px, color, line_width)

        return CustomBboxImageResult(image=to_data_url(canvas.encode()), width=width, height=height)

    # -- Miniatures and batches -----------------------------------------

    def generate_thumbnail_from_image(self, payload: str) -> str:
        """Build a miniature from an existing standard image data URL."""
        return create_thumbnail_from_data_url(payload, *self.thumbnail_size)

    def generate_batch(
        self,
        territories: Sequence[Territory],
        options: Optional[GenerationOptions] = None,
        cancel_event: Optional[threading.Event] = None,
        max_workers: int = 4,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> BatchReport:
        """
        Generate standard images for many territories concurrently.

        The cancel event is checked before each submission: setting it stops
        territories that have not started yet, running ones complete. Failures
        are recorded per territory and do not stop the batch.

        Args:
            territories: Territories in submission order
            options: Drawing overrides applied to every territory
            cancel_event: Abort signal for not-yet-submitted territories
            max_workers: Number of concurrent generations
            progress_callback: Called with (completed, total) after each territory

        Returns:
            BatchReport with one item per territory, in input order
        """
        items: list[Optional[BatchItemResult]] = [None] * len(territories)
        futures: dict[Future, int] = {}

        def cancelled() -> bool:
            return cancel_event is not None and cancel_event.is_set()

        def run(territory: Territory) -> Optional[StandardImageResult]:
            # Queued work re-checks the signal when a worker picks it up
            if cancelled():
                return None
            return self.generate_standard(territory, options)

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            for index, territory in enumerate(territories):
                if cancelled():
                    items[index] = BatchItemResult(num=territory.num, skipped=True)
                    continue
                futures[executor.submit(run, territory)] = index

            completed = 0
            for future in as_completed(futures):
                index = futures[future]
                num = territories[index].num
                try:
                    result = future.result()
                    items[index] = BatchItemResult(num=num, result=result, skipped=result is None)
                except TerritoryImageError as e:
                    logger.warning("Territory %s failed: %s", num, e)
                    items[index] = BatchItemResult(num=num, error=str(e))
                except Exception as e:
                    logger.exception("Territory %s failed unexpectedly", num)
                    items[index] = BatchItemResult(num=num, error=f"{type(e).__name__}: {e}")
                completed += 1
                if progress_callback:
                    progress_callback(completed, len(futures))

        report = BatchReport(items=[item for item in items if item is not None])
        if report.failed:
            logger.warning(
                "Batch finished with %d failure(s): %s",
                len(report.failed),
                ", ".join(report.failed),
            )
        return report

    def close(self) -> None:
        if self._fetcher is not None:
            self._fetcher.close()
