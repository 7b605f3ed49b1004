"""Tests for the territory-maps command line."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner
from PIL import Image

import territory_maps.config as config_module
from territory_maps.cli import load_territories, main
from territory_maps.exceptions import NetworkFailure
from territory_maps.services.tile_service import TileFetcher

TERRITORY_YAML = """
num: "42"
name: Rue de Rivoli
polygon:
  - {lat: 48.8600, lon: 2.3400}
  - {lat: 48.8610, lon: 2.3420}
  - {lat: 48.8580, lon: 2.3520}
  - {lat: 48.8570, lon: 2.3500}
currentBboxLarge: [2.33, 48.85, 2.36, 48.87]
"""


def _white_basemap(bbox, size):
    return Image.new("RGBA", (size, size), (255, 255, 255, 255))


@pytest.fixture
def runner(monkeypatch, tmp_path):
    monkeypatch.setenv("TERRITORY_MAPS_PPP", "100")
    monkeypatch.setenv("TERRITORY_MAPS_MIN_REQUEST_SPACING_MS", "0")
    monkeypatch.setenv("TERRITORY_MAPS_OUTPUT_DIR", str(tmp_path / "output"))
    config_module._config = None
    yield CliRunner()
    config_module._config = None


@pytest.fixture
def fetch_basemap():
    with patch.object(TileFetcher, "fetch_basemap", side_effect=_white_basemap) as mock_fetch:
        yield mock_fetch


@pytest.fixture
def territory_file(tmp_path):
    path = tmp_path / "territory.yaml"
    path.write_text(TERRITORY_YAML)
    return path


@pytest.fixture
def batch_file(tmp_path):
    territories = [
        {"num": str(i), "polygon": [
            {"lat": 48.80 + i / 100, "lon": 2.30},
            {"lat": 48.80 + i / 100, "lon": 2.31},
            {"lat": 48.81 + i / 100, "lon": 2.31},
        ]}
        for i in range(1, 4)
    ]
    path = tmp_path / "territories.json"
    path.write_text(json.dumps({"territories": territories}))
    return path


class TestLoadTerritories:
    """Test territory file parsing."""

    def test_single_yaml(self, territory_file):
        territories = load_territories(territory_file)
        assert len(territories) == 1
        assert territories[0].num == "42"
        assert territories[0].current_bbox_large == (2.33, 48.85, 2.36, 48.87)

    def test_json_list(self, batch_file):
        assert [t.num for t in load_territories(batch_file)] == ["1", "2", "3"]


class TestStandardCommand:
    """Test the standard command."""

    def test_writes_image_and_miniature(self, runner, fetch_basemap, territory_file, tmp_path):
        out = tmp_path / "out"
        result = runner.invoke(main, ["standard", str(territory_file), "-o", str(out)])

        assert result.exit_code == 0, result.output
        assert Image.open(out / "42_standard.png").size == (1169, 723)
        assert Image.open(out / "42_miniature.png").size[0] == 500
        assert "Rotation" in result.output

    def test_unknown_contour_color_is_usage_error(self, runner, fetch_basemap, territory_file):
        result = runner.invoke(main, ["standard", str(territory_file), "--contour-color", "notacolor"])

        assert result.exit_code == 2
        assert "--contour-color" in result.output
        fetch_basemap.assert_not_called()

    def test_network_failure_exits_with_error(self, runner, fetch_basemap, territory_file):
        fetch_basemap.side_effect = NetworkFailure(3, "timeout")
        result = runner.invoke(main, ["standard", str(territory_file)])

        assert result.exit_code == 1
        assert "Error" in result.output
        assert "3 attempts" in result.output


class TestLargeAndCropCommands:
    """Test the large and crop commands."""

    def test_large_uses_default_output_dir(self, runner, fetch_basemap, territory_file, tmp_path):
        result = runner.invoke(main, ["large", str(territory_file)])

        assert result.exit_code == 0, result.output
        assert (tmp_path / "output" / "42_large.png").exists()
        assert "Bbox" in result.output

    def test_crop_defaults_to_stored_bbox(self, runner, fetch_basemap, territory_file, tmp_path):
        result = runner.invoke(main, ["crop", str(territory_file), "-o", str(tmp_path)])

        assert result.exit_code == 0, result.output
        # Portrait large config, stored bbox is landscape
        assert Image.open(tmp_path / "42_crop.png").size == (1169, 723)

    def test_crop_with_explicit_bbox_and_hint(self, runner, fetch_basemap, territory_file, tmp_path):
        result = runner.invoke(
            main,
            [
                "crop", str(territory_file),
                "--bbox", "2.33", "48.85", "2.36", "48.87",
                "--crop-width", "300", "--crop-height", "500",
                "-o", str(tmp_path),
            ],
        )

        assert result.exit_code == 0, result.output
        assert Image.open(tmp_path / "42_crop.png").size == (723, 1169)

    def test_crop_without_bbox(self, runner, fetch_basemap, tmp_path):
        path = tmp_path / "bare.yaml"
        path.write_text('num: "9"\npolygon: []\n')

        result = runner.invoke(main, ["crop", str(path)])

        assert result.exit_code == 2
        fetch_basemap.assert_not_called()


class TestThumbnailCommand:
    """Test the thumbnail command."""

    def test_writes_miniature_next_to_source(self, runner, tmp_path):
        source = tmp_path / "42_standard.png"
        Image.new("RGBA", (1169, 723), (0, 100, 0, 255)).save(source)

        result = runner.invoke(main, ["thumbnail", str(source)])

        assert result.exit_code == 0, result.output
        assert Image.open(tmp_path / "42_standard_miniature.png").size == (500, 309)

    def test_invalid_image(self, runner, tmp_path):
        source = tmp_path / "broken.png"
        source.write_bytes(b"not a png")

        result = runner.invoke(main, ["thumbnail", str(source)])
        assert result.exit_code == 1


class TestBatchCommand:
    """Test the batch command."""

    def test_all_succeed(self, runner, fetch_basemap, batch_file, tmp_path):
        result = runner.invoke(main, ["batch", str(batch_file), "-o", str(tmp_path), "-w", "2"])

        assert result.exit_code == 0, result.output
        for num in ("1", "2", "3"):
            assert (tmp_path / f"{num}_standard.png").exists()
            assert (tmp_path / f"{num}_miniature.png").exists()

    def test_failure_sets_exit_code(self, runner, fetch_basemap, batch_file, tmp_path):
        def basemap(bbox, size):
            if bbox[1] > 48.82:
                raise NetworkFailure(3, "timeout")
            return _white_basemap(bbox, size)

        fetch_basemap.side_effect = basemap
        result = runner.invoke(main, ["batch", str(batch_file), "-o", str(tmp_path)])

        assert result.exit_code == 1
        assert (tmp_path / "1_standard.png").exists()
        assert not (tmp_path / "3_standard.png").exists()


class TestInfoCommand:
    """Test the info command."""

    def test_shows_dimensions(self, runner):
        result = runner.invoke(main, ["info"])
        assert result.exit_code == 0
        assert "1169 x 723 px" in result.output
