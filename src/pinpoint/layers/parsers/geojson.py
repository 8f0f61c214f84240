"""Parse GeoJSON (RFC 7946) to a FeatureLayer using stdlib json.

Handles FeatureCollection and Feature with Point, LineString, Polygon and
MultiPolygon geometries. Coordinates are already in [lng, lat] order.
"""

from __future__ import annotations

import json
import uuid
from typing import Any

from pinpoint.layers.layer import FeatureLayer, LayerFeature

SUPPORTED_GEOMETRIES = ("Point", "LineString", "Polygon", "MultiPolygon")


def parse_geojson(
    geojson: str | dict[str, Any],
    layer_id: str | None = None,
    name: str = "",
) -> FeatureLayer:
    """Parse a GeoJSON document into a FeatureLayer.

    Args:
        geojson: Raw GeoJSON text, or an already-decoded mapping.
        layer_id: Registry id to assign; generated when omitted.
        name: Display name; derived from the document when empty.

    Returns:
        FeatureLayer with parsed features. Returns an empty layer on parse
        errors or unsupported documents.
    """
    layer_id = layer_id or f"vector-{uuid.uuid4().hex[:8]}"

    if isinstance(geojson, str):
        try:
            data = json.loads(geojson)
        except (json.JSONDecodeError, TypeError):
            return FeatureLayer(layer_id=layer_id, name=name, source_format="geojson", features=[])
    else:
        data = geojson

    if not isinstance(data, dict):
        return FeatureLayer(layer_id=layer_id, name=name, source_format="geojson", features=[])

    features: list[LayerFeature] = []
    if data.get("type") == "FeatureCollection":
        for idx, raw in enumerate(data.get("features") or []):
            feature = _parse_feature(raw, idx)
            if feature is not None:
                features.append(feature)
    elif data.get("type") == "Feature":
        feature = _parse_feature(data, 0)
        if feature is not None:
            features.append(feature)

    return FeatureLayer(
        layer_id=layer_id,
        name=name or data.get("name", "") or layer_id,
        source_format="geojson",
        features=features,
    )


def _parse_feature(raw: Any, idx: int) -> LayerFeature | None:
    """Parse a single GeoJSON Feature dict into a LayerFeature."""
    if not isinstance(raw, dict):
        return None

    geometry = raw.get("geometry")
    if not isinstance(geometry, dict):
        return None

    geom_type = geometry.get("type", "")
    coordinates = geometry.get("coordinates")
    if geom_type not in SUPPORTED_GEOMETRIES or coordinates is None:
        return None

    properties = raw.get("properties") or {}
    if not isinstance(properties, dict):
        properties = {}

    feature_id = raw.get("id", f"geojson-{idx}")
    if not isinstance(feature_id, str):
        feature_id = str(feature_id)

    return LayerFeature(
        feature_id=feature_id,
        geometry_type=geom_type,
        coordinates=coordinates,
        properties=properties,
    )
