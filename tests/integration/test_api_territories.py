"""Integration tests for the territory image endpoints."""

from types import SimpleNamespace
from unittest.mock import patch

import pytest
from PIL import Image

pytest.importorskip("fastapi")
pytest.importorskip("httpx")

from fastapi.testclient import TestClient

import territory_maps.config as config_module
from territory_maps.exceptions import NetworkFailure
from territory_maps.services.throttle_service import RequestThrottler
from territory_maps.services.tile_service import TileFetcher
from territory_maps.utils.image_utils import DATA_URL_PREFIX, decode_data_url, encode_data_url

TERRITORY = {
    "num": "42",
    "name": "Rue de Rivoli",
    "polygon": [
        {"lat": 48.8600, "lon": 2.3400},
        {"lat": 48.8610, "lon": 2.3420},
        {"lat": 48.8580, "lon": 2.3520},
        {"lat": 48.8570, "lon": 2.3500},
    ],
}


def _white_basemap(bbox, size):
    return Image.new("RGBA", (size, size), (255, 255, 255, 255))


@pytest.fixture
def fetch_basemap():
    """Replace provider access with a white basemap."""
    with patch.object(TileFetcher, "fetch_basemap", side_effect=_white_basemap) as mock_fetch:
        yield mock_fetch


@pytest.fixture
def client(monkeypatch, fetch_basemap):
    """TestClient running the app lifespan with low-resolution settings."""
    monkeypatch.setenv("TERRITORY_MAPS_PPP", "100")
    monkeypatch.setenv("TERRITORY_MAPS_MIN_REQUEST_SPACING_MS", "0")
    config_module._config = None

    from territory_maps.api.main import app

    with TestClient(app) as test_client:
        yield test_client

    config_module._config = None


class TestHealthAndConfig:
    """Test service metadata endpoints."""

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_config(self, client):
        data = client.get("/api/config").json()
        assert data["ppp"] == 100
        assert data["wms_crs"] == "EPSG:4326"
        assert data["standard_size"][0] > data["standard_size"][1]

    def test_lifespan_creates_shared_throttler(self, client):
        from territory_maps.api.main import app
        from territory_maps.api.routers.territories import get_service

        throttler = app.state.throttler
        assert isinstance(throttler, RequestThrottler)
        assert throttler.min_delay == 0

        service = get_service(SimpleNamespace(app=app))
        assert service.fetcher.throttler is throttler
        service.close()


class TestGenerateImage:
    """Test POST /api/territories/generate-image."""

    def test_standard(self, client, fetch_basemap):
        response = client.post("/api/territories/generate-image", json={"territory": TERRITORY})

        assert response.status_code == 200
        data = response.json()
        assert data["num"] == "42"
        assert data["imageType"] == "standard"
        assert data["image"].startswith(DATA_URL_PREFIX)
        assert data["miniature"].startswith(DATA_URL_PREFIX)
        assert isinstance(data["rotation"], float)
        assert decode_data_url(data["image"]).size == (data["width"], data["height"])
        fetch_basemap.assert_called_once()

    def test_large(self, client):
        response = client.post(
            "/api/territories/generate-image",
            json={"territory": TERRITORY, "imageType": "large", "options": {"contourColor": "blue"}},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["imageType"] == "large"
        assert data["miniature"] is None
        assert len(data["bbox"]) == 4
        assert data["bbox"][0] < data["bbox"][2]
        assert data["width"] == data["height"]

    def test_unknown_image_type(self, client):
        response = client.post(
            "/api/territories/generate-image",
            json={"territory": TERRITORY, "imageType": "poster"},
        )
        assert response.status_code == 422

    def test_unknown_contour_color_rejected(self, client, fetch_basemap):
        response = client.post(
            "/api/territories/generate-image",
            json={"territory": TERRITORY, "options": {"contourColor": "notacolor"}},
        )

        assert response.status_code == 422
        assert "notacolor" in response.text
        fetch_basemap.assert_not_called()

    def test_network_failure_is_bad_gateway(self, client, fetch_basemap):
        fetch_basemap.side_effect = NetworkFailure(3, "503 Service Unavailable")

        response = client.post("/api/territories/generate-image", json={"territory": TERRITORY})

        assert response.status_code == 502
        assert "3 attempts" in response.json()["detail"]


class TestGenerateImageWithCrop:
    """Test POST /api/territories/generate-image-with-crop."""

    def test_portrait_crop(self, client):
        response = client.post(
            "/api/territories/generate-image-with-crop",
            json={
                "territory": TERRITORY,
                "customBbox": [2.33, 48.85, 2.36, 48.87],
                "cropData": {
                    "x": 10,
                    "y": 10,
                    "width": 300,
                    "height": 500,
                    "imageWidth": 1000,
                    "imageHeight": 1000,
                },
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["width"] < data["height"]
        assert data["bbox"] == [2.33, 48.85, 2.36, 48.87]
        assert decode_data_url(data["image"]).size == (data["width"], data["height"])

    def test_inverted_bbox_rejected(self, client, fetch_basemap):
        response = client.post(
            "/api/territories/generate-image-with-crop",
            json={"territory": TERRITORY, "customBbox": [2.36, 48.87, 2.33, 48.85]},
        )
        assert response.status_code == 422
        fetch_basemap.assert_not_called()


class TestThumbnail:
    """Test POST /api/territories/thumbnail."""

    def test_thumbnail(self, client):
        payload = encode_data_url(Image.new("RGBA", (1169, 723), (0, 128, 0, 255)))

        response = client.post("/api/territories/thumbnail", json={"image": payload})

        assert response.status_code == 200
        data = response.json()
        assert data["width"] == 500
        assert decode_data_url(data["miniature"]).size == (data["width"], data["height"])

    def test_invalid_image_is_server_error(self, client):
        response = client.post("/api/territories/thumbnail", json={"image": "data:image/png;base64,AAAA"})

        assert response.status_code == 500
        assert "Image processing failed" in response.json()["detail"]
