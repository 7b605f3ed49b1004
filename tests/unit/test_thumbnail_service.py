"""Tests for miniature generation."""

import pytest
from PIL import Image

from territory_maps.exceptions import DecodeFailure
from territory_maps.services.thumbnail_service import (
    center_crop_rect,
    create_thumbnail,
    create_thumbnail_from_data_url,
)
from territory_maps.utils.image_utils import decode_data_url, encode_data_url


class TestCenterCropRect:
    """Test the centered aspect-ratio crop."""

    def test_wide_source_trims_sides(self):
        rect = center_crop_rect(400, 100, 100, 50)
        assert (rect.x, rect.y, rect.width, rect.height) == pytest.approx((100, 0, 200, 100))

    def test_tall_source_trims_top_and_bottom(self):
        rect = center_crop_rect(100, 400, 100, 50)
        assert (rect.x, rect.y, rect.width, rect.height) == pytest.approx((0, 175, 100, 50))

    def test_matching_ratio_keeps_everything(self):
        rect = center_crop_rect(1000, 500, 200, 100)
        assert (rect.x, rect.y, rect.width, rect.height) == (0, 0, 1000, 500)


class TestCreateThumbnail:
    """Test miniature rendering."""

    def test_exact_size(self):
        source = Image.new("RGBA", (2923, 1807), (10, 120, 200, 255))
        assert create_thumbnail(source, 500, 309).size == (500, 309)

    def test_keeps_center(self):
        source = Image.new("RGBA", (400, 100), (0, 0, 255, 255))
        source.paste((255, 0, 0, 255), (100, 0, 300, 100))
        thumbnail = create_thumbnail(source, 100, 50)

        assert thumbnail.getpixel((0, 25)) == (255, 0, 0, 255)
        assert thumbnail.getpixel((99, 25)) == (255, 0, 0, 255)

    def test_from_data_url(self, solid_image):
        payload = create_thumbnail_from_data_url(encode_data_url(solid_image), 32, 20)
        assert decode_data_url(payload).size == (32, 20)

    def test_from_invalid_data_url(self):
        with pytest.raises(DecodeFailure, match="Could not create thumbnail"):
            create_thumbnail_from_data_url("data:image/png;base64,AAAA", 32, 20)
