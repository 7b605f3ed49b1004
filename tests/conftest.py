"""Shared test fixtures."""

from io import BytesIO

import httpx
import pytest
from PIL import Image

from territory_maps.models.generation import GenerationConfig
from territory_maps.models.territory import Coordinate, Territory


def _make_png(width=64, height=64, color=(128, 128, 128, 255)) -> bytes:
    """Encode a solid RGBA image as PNG bytes."""
    buffer = BytesIO()
    Image.new("RGBA", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeClock:
    """Manually advanced monotonic clock; sleep() advances it."""

    def __init__(self, start: float = 100.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def unit_square_territory():
    """Territory whose boundary is the unit square in degrees."""
    return Territory(
        num="1",
        name="Unit square",
        polygon=[
            Coordinate(lat=0, lon=0),
            Coordinate(lat=0, lon=1),
            Coordinate(lat=1, lon=1),
            Coordinate(lat=1, lon=0),
        ],
    )


@pytest.fixture
def sample_territory():
    """Small elongated territory in central Paris."""
    return Territory(
        num="42",
        name="Rue de Rivoli",
        polygon=[
            Coordinate(lat=48.8600, lon=2.3400),
            Coordinate(lat=48.8610, lon=2.3420),
            Coordinate(lat=48.8580, lon=2.3520),
            Coordinate(lat=48.8570, lon=2.3500),
        ],
    )


@pytest.fixture
def degenerate_territory():
    """Territory with a single point."""
    return Territory(num="7", polygon=[Coordinate(lat=48.85, lon=2.35)])


@pytest.fixture
def low_res_config():
    """Generation settings at the lowest print density, for fast pipeline tests."""
    return GenerationConfig(ppp=100, network_delay=100, min_request_spacing=0)


@pytest.fixture
def solid_image():
    """64x64 solid white RGBA image."""
    return Image.new("RGBA", (64, 64), (255, 255, 255, 255))


@pytest.fixture
def png_bytes():
    """64x64 grey PNG."""
    return _make_png()


@pytest.fixture
def png_factory():
    """Build solid PNG bytes: png_factory(width, height, color)."""
    return _make_png


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def mock_http_client():
    """Build an httpx.Client whose requests are answered by handler(request)."""

    def _factory(handler):
        return httpx.Client(transport=httpx.MockTransport(handler))

    return _factory
