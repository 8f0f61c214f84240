"""Shared fixtures for pinpoint tests."""

from __future__ import annotations

import copy

import pytest

from pinpoint.config import Settings
from pinpoint.layers.layer import LayerFeature
from pinpoint.layers.registry import LayerRegistry

LAYER_LIST = {
    "layers": [
        {
            "id": "temp",
            "name": "Temperature",
            "type": "raster",
            "url": "temp.tif",
            "defaultColormap": "RdYlBu",
            "defaultOpacity": 0.8,
            "locationCode": {"type": "meshCode"},
        },
        {"id": "rain", "name": "Rainfall", "type": "raster", "url": "rain.tif"},
        {"id": "wind", "name": "Wind", "type": "raster", "url": "wind.tif"},
        {
            "id": "landuse",
            "name": "Land use",
            "type": "vector",
            "url": "landuse.geojson",
            "propertyField": "class",
            "defaultColormap": "pastel",
        },
    ]
}


def _point_features(values: list, prop: str = "value") -> list[LayerFeature]:
    return [
        LayerFeature(
            feature_id=f"f{i}",
            geometry_type="Point",
            coordinates=[139.0 + i * 0.01, 35.0],
            properties={prop: v} if v is not ... else {},
        )
        for i, v in enumerate(values)
    ]


@pytest.fixture
def make_points():
    """Factory: point features carrying one property each, in order.

    Pass ... as a value to leave the property out of that feature.
    """
    return _point_features


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def registry() -> LayerRegistry:
    return LayerRegistry.from_config(LAYER_LIST, default_layer_id="temp")


@pytest.fixture
def layer_list() -> dict:
    """A fresh copy of the data_list.json document behind the registry fixture."""
    return copy.deepcopy(LAYER_LIST)
