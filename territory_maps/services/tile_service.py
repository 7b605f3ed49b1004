"""Basemap fetching from a WMS map provider."""

import logging
import time
from functools import lru_cache
from typing import Callable, Optional

import httpx
from PIL import Image
from pyproj import CRS
from pyproj.exceptions import CRSError

from ..exceptions import DecodeFailure, NetworkFailure
from ..models.generation import ProviderSettings
from ..models.territory import BBox
from ..utils.image_utils import decode_image
from .throttle_service import RequestThrottler

logger = logging.getLogger(__name__)

WMS_VERSION = "1.3.0"


@lru_cache(maxsize=32)
def is_latitude_first(crs: str) -> bool:
    """
    Whether a CRS lists northing before easting.

    WMS 1.3.0 honors the CRS axis order, so EPSG:4326 expects lat,lon while
    projected systems such as EPSG:3857 (and CRS:84) expect lon,lat.
    Unknown CRS strings are treated as lat-first only for EPSG:4326.
    """
    try:
        axes = CRS.from_user_input(crs).axis_info
    except CRSError:
        return crs.strip().upper() == "EPSG:4326"
    return bool(axes) and axes[0].direction.lower() in ("north", "south")


def build_request_url(bbox: BBox, size: int, provider: ProviderSettings) -> str:
    """
    Build a WMS GetMap URL for a square raster covering bbox.

    Args:
        bbox: (min_lon, min_lat, max_lon, max_lat)
        size: Width and height of the requested raster in pixels
        provider: Endpoint, layer, format and CRS

    Returns:
        Full request URL
    """
    min_lon, min_lat, max_lon, max_lat = bbox
    if is_latitude_first(provider.crs):
        ordered = (min_lat, min_lon, max_lat, max_lon)
    else:
        ordered = (min_lon, min_lat, max_lon, max_lat)

    params = {
        "SERVICE": "WMS",
        "VERSION": WMS_VERSION,
        "REQUEST": "GetMap",
        "LAYERS": provider.layer,
        "STYLES": "",
        "CRS": provider.crs,
        "BBOX": ",".join(repr(float(v)) for v in ordered),
        "WIDTH": str(size),
        "HEIGHT": str(size),
        "FORMAT": provider.format,
    }
    return str(httpx.URL(provider.base_url, params=params))


class TileFetcher:
    """Fetches basemap rasters, with bounded retries and shared request spacing."""

    def __init__(
        self,
        provider: Optional[ProviderSettings] = None,
        throttler: Optional[RequestThrottler] = None,
        retries: int = 3,
        delay_ms: int = 1000,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
        timeout: float = 60.0,
    ):
        """
        Initialize tile fetcher.

        Args:
            provider: WMS provider settings (defaults to the IGN Plan v2 layer)
            throttler: Shared request gate; without one requests are not spaced
            retries: Maximum number of attempts per request
            delay_ms: Fixed delay between attempts
            client: Optional pre-configured HTTP client
            sleep: Sleep function used between attempts
            timeout: Transport timeout in seconds
        """
        self.provider = provider or ProviderSettings()
        self.throttler = throttler
        self.retries = retries
        self.delay_ms = delay_ms
        self._sleep = sleep
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    def build_request_url(self, bbox: BBox, size: int) -> str:
        return build_request_url(bbox, size, self.provider)

    def fetch_with_retry(
        self,
        url: str,
        retries: Optional[int] = None,
        delay_ms: Optional[int] = None,
    ) -> bytes:
        """
        Fetch a URL, retrying on HTTP errors and transport failures.

        Args:
            url: Request URL
            retries: Maximum attempts (defaults to the fetcher's setting)
            delay_ms: Fixed delay between attempts (defaults to the fetcher's setting)

        Returns:
            Response body

        Raises:
            NetworkFailure: If every attempt failed
        """
        retries = self.retries if retries is None else retries
        delay_ms = self.delay_ms if delay_ms is None else delay_ms
        last_error: Optional[str] = None

        for attempt in range(1, retries + 1):
            try:
                response = self._client.get(url)
                response.raise_for_status()
                return response.content
            except httpx.HTTPError as e:
                last_error = str(e) or type(e).__name__
                logger.warning("Attempt %d/%d failed: %s", attempt, retries, last_error)
                if attempt < retries:
                    self._sleep(delay_ms / 1000)

        raise NetworkFailure(retries, last_error)

    def fetch_basemap(self, bbox: BBox, size: int) -> Image.Image:
        """
        Fetch and decode the basemap covering bbox as a size x size RGBA image.

        The request waits for a throttler slot first; retries happen inside
        that slot.

        Raises:
            NetworkFailure: If the provider could not be reached
            DecodeFailure: If the response is not an image
        """
        url = self.build_request_url(bbox, size)
        logger.info("Fetching %dx%d basemap for bbox %s", size, size, bbox)

        if self.throttler is not None:
            data = self.throttler.submit(self.fetch_with_retry, url)
        else:
            data = self.fetch_with_retry(url)

        try:
            return decode_image(data)
        except DecodeFailure as e:
            hint = _service_exception_hint(data)
            if hint:
                raise DecodeFailure(f"{e} (provider said: {hint})") from e
            raise

    def close(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def _service_exception_hint(data: bytes, limit: int = 200) -> str:
    """Extract a short text hint from XML/HTML error bodies."""
    head = data[:2048].decode("utf-8", errors="ignore").strip()
    if not head.startswith("<"):
        return ""
    return " ".join(head.split())[:limit]
