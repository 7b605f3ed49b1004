"""Configuration management for territory image generation."""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from .models.generation import GenerationConfig, ProviderSettings

ENV_PREFIX = "TERRITORY_MAPS_"


def _env(name: str, default=None):
    return os.environ.get(ENV_PREFIX + name, default)


class AppConfig(BaseModel):
    """Application-level configuration."""

    # Paper and sizing
    ppp: int = Field(default=250, description="Print density (points per inch)")
    large_factor: float = Field(default=0.2, description="Zoom factor for large images")
    ratio_x: float = Field(default=1.618, description="Standard image ratio, x part")
    ratio_y: float = Field(default=1.0, description="Standard image ratio, y part")
    large_ratio_x: float = Field(default=1.0, description="Large image ratio, x part")
    large_ratio_y: float = Field(default=1.618, description="Large image ratio, y part")

    # WMS provider
    wms_url: str = Field(default="https://data.geopf.fr/wms-r", description="WMS endpoint")
    wms_layer: str = Field(default="GEOGRAPHICALGRIDSYSTEMS.PLANIGNV2", description="WMS layer")
    wms_format: str = Field(default="image/png", description="WMS output format")
    wms_crs: str = Field(default="EPSG:4326", description="WMS coordinate reference system")

    # Network
    network_retries: int = Field(default=3, description="Fetch attempts per request")
    network_delay_ms: int = Field(default=1000, description="Delay between fetch attempts")
    min_request_spacing_ms: int = Field(
        default=1500,
        description="Minimum delay between the starts of two WMS requests",
    )

    # Drawing
    contour_color: str = Field(default="red", description="Territory contour color")
    contour_width: int = Field(default=8, description="Territory contour width (px)")
    thumbnail_width: int = Field(default=500, description="Miniature width (px)")

    # Directories
    output_dir: Path = Field(
        default=Path.cwd() / "output",
        description="Default output directory",
    )

    @classmethod
    def load(cls) -> "AppConfig":
        """Load configuration from environment and defaults."""
        defaults = {name: f.default for name, f in cls.model_fields.items()}
        return cls(
            ppp=int(_env("PPP", defaults["ppp"])),
            large_factor=float(_env("LARGE_FACTOR", defaults["large_factor"])),
            ratio_x=float(_env("RATIO_X", defaults["ratio_x"])),
            ratio_y=float(_env("RATIO_Y", defaults["ratio_y"])),
            large_ratio_x=float(_env("LARGE_RATIO_X", defaults["large_ratio_x"])),
            large_ratio_y=float(_env("LARGE_RATIO_Y", defaults["large_ratio_y"])),
            wms_url=_env("WMS_URL", defaults["wms_url"]),
            wms_layer=_env("WMS_LAYER", defaults["wms_layer"]),
            wms_format=_env("WMS_FORMAT", defaults["wms_format"]),
            wms_crs=_env("WMS_CRS", defaults["wms_crs"]),
            network_retries=int(_env("NETWORK_RETRIES", defaults["network_retries"])),
            network_delay_ms=int(_env("NETWORK_DELAY_MS", defaults["network_delay_ms"])),
            min_request_spacing_ms=int(
                _env("MIN_REQUEST_SPACING_MS", defaults["min_request_spacing_ms"])
            ),
            contour_color=_env("CONTOUR_COLOR", defaults["contour_color"]),
            contour_width=int(_env("CONTOUR_WIDTH", defaults["contour_width"])),
            thumbnail_width=int(_env("THUMBNAIL_WIDTH", defaults["thumbnail_width"])),
            output_dir=Path(_env("OUTPUT_DIR", str(defaults["output_dir"]))),
        )

    def to_generation_config(self) -> GenerationConfig:
        """Build the generation settings (validates ranges)."""
        return GenerationConfig(
            ppp=self.ppp,
            large_factor=self.large_factor,
            ratio_x=self.ratio_x,
            ratio_y=self.ratio_y,
            large_ratio_x=self.large_ratio_x,
            large_ratio_y=self.large_ratio_y,
            contour_color=self.contour_color,
            contour_width=self.contour_width,
            thumbnail_width=self.thumbnail_width,
            provider=ProviderSettings(
                base_url=self.wms_url,
                layer=self.wms_layer,
                format=self.wms_format,
                crs=self.wms_crs,
            ),
            network_retries=self.network_retries,
            network_delay=self.network_delay_ms,
            min_request_spacing=self.min_request_spacing_ms,
        )

    def ensure_directories(self) -> None:
        """Create necessary directories."""
        self.output_dir.mkdir(parents=True, exist_ok=True)


# Global config instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get or create global configuration."""
    global _config
    if _config is None:
        _config = AppConfig.load()
    return _config
