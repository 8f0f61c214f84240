"""Configuration management using Pydantic settings.

Two layers of configuration:
  - Settings: process-level defaults, overridable through PINPOINT_* env
    variables or a .env file.
  - ProjectConfig: the deployment's project_config.yaml (feature flags and
    detail panel defaults), loaded with PyYAML.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from pydantic_settings import BaseSettings, SettingsConfigDict

from pinpoint.layers.layer import ContentPaths


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PINPOINT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Configuration sources
    layers_config: str = "../data_list.json"   # path or http(s) URL
    project_config: str = "../project_config.yaml"

    # Layers
    default_layer_id: str = "__default__"
    max_selectable_raster: int = 2
    colormaps: list[str] = [
        "Spectral",
        "gnuplot2",
        "RdYlGn",
        "RdYlBu",
        "viridis",
        "jet",
        "ocean",
        "nipy_spectral",
        "terrain",
        "binary",
        "Reds",
        "Blues",
        "Greens",
        "RdBu",
        "PRGn",
    ]
    default_colormap: str = "viridis"
    default_opacity: float = 0.7

    # Location keys
    reserved_id_prefixes: tuple[str, ...] = ("odn_", "grid")
    spec_prefix: str = "spec"
    default_location_code_type: str = "worldGrid"
    world_grid_minutes: int = 10

    # Spatial lookup
    point_detection_radius_m: float = 100.0

    # Value presentation
    feature_sample_size: int = 20
    max_preset_categories: int = 12

    # Content resolution
    content_load_timeout: float = 5.0   # seconds
    tab_slots: int = 3
    default_display_mode: str = "image"
    default_urltype: str = "raw"
    http_user_agent: str = "PINPOINT/0.1.0"

    # Detail panel fallbacks (overridden by project_config.yaml)
    basedir: str = "../img/"
    base_url: str = "../html/"
    id_basedir: str = "../my_assets/"
    id_base_url: str = "../my_assets/"
    fallback_image: str = "../default_img/noimage1.png"
    timeout_image: str = "../default_img/timeout_image.png"

    def default_paths(self) -> ContentPaths:
        return ContentPaths(
            basedir=self.basedir,
            base_url=self.base_url,
            id_basedir=self.id_basedir,
            id_base_url=self.id_base_url,
            fallback_image=self.fallback_image,
            timeout_image=self.timeout_image,
        )


settings = Settings()


class ProjectConfig:
    """Read-only view over a project_config.yaml document.

    Feature flags default to enabled when a key is missing, so a partial
    (or absent) project file never hides functionality.
    """

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = data or {}

    @property
    def features(self) -> dict[str, Any]:
        return self._data.get("features") or {}

    def is_feature_enabled(self, feature_path: str) -> bool:
        """Check a dotted flag such as "vectorLayers.propertySelection"."""
        current: Any = self.features
        for part in feature_path.split("."):
            if not isinstance(current, dict) or current.get(part) is None:
                return True
            current = current[part]
        return bool(current)

    def _detail_panel(self) -> dict[str, Any]:
        return self.features.get("detailPanel") or {}

    def location_code_type(self, default: str) -> str:
        codes = self.features.get("locationCodes") or {}
        return codes.get("type") or default

    def display_mode(self, default: str) -> str:
        return self._detail_panel().get("displayMode") or default

    def urltype(self, default: str) -> str:
        return self._detail_panel().get("urltype") or default

    def urlbase(self) -> str | None:
        return self._detail_panel().get("urlbase")

    def detail_panel_paths(self, base: ContentPaths) -> ContentPaths:
        """Overlay the project's detail panel paths on *base*."""
        panel = self._detail_panel()
        return ContentPaths(
            basedir=panel.get("basedir") or base.basedir,
            base_url=panel.get("baseUrl") or base.base_url,
            id_basedir=panel.get("idBasedir") or base.id_basedir,
            id_base_url=panel.get("idBaseUrl") or base.id_base_url,
            fallback_image=panel.get("fallbackImage") or base.fallback_image,
            timeout_image=panel.get("timeoutImage") or base.timeout_image,
        )


def load_project_config(path: str | Path | None = None) -> ProjectConfig:
    """Load project_config.yaml. A missing file yields an all-defaults config."""
    config_path = Path(path or settings.project_config)
    if not config_path.exists():
        logger.warning(f"Project config not found: {config_path} (using defaults)")
        return ProjectConfig()

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        logger.warning(f"Project config is not a mapping: {config_path}")
        return ProjectConfig()

    logger.info(f"Project config loaded: {config_path}")
    return ProjectConfig(data)
