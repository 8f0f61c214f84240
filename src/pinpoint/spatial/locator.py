"""SpatialFeatureLocator — find the vector feature at or near a clicked point.

Every query scans each active layer's features once; there is no
persistent spatial index. Point features match within a detection radius
(great-circle metres); Polygon and MultiPolygon features match by
ray-casting containment. The first matching feature in a layer wins.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Mapping, Sequence

from loguru import logger

from pinpoint.codec.location import Coordinate
from pinpoint.layers.layer import FeatureLayer, LayerFeature

_EARTH_RADIUS = 6371000  # metres

DEFAULT_DETECTION_RADIUS_M = 100.0


@dataclass(frozen=True)
class SpatialMatch:
    layer_id: str
    feature: LayerFeature


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * _EARTH_RADIUS * math.asin(math.sqrt(min(1.0, a)))


def point_in_polygon(point: Sequence[float], ring: Sequence[Sequence[float]]) -> bool:
    """Ray-casting point-in-polygon test.

    Casts a horizontal ray from point (x, y) to +infinity and counts
    how many ring edges it crosses. Odd count = inside. Coordinates are
    [lng, lat] pairs; the ring may or may not repeat its first vertex.
    """
    px, py = point[0], point[1]
    n = len(ring)
    if n < 3:
        return False
    inside = False
    j = n - 1
    for i in range(n):
        xi, yi = ring[i][0], ring[i][1]
        xj, yj = ring[j][0], ring[j][1]
        if ((yi > py) != (yj > py)) and (
            px < (xj - xi) * (py - yi) / (yj - yi) + xi
        ):
            inside = not inside
        j = i
    return inside


def polygon_contains(rings: Sequence[Sequence[Sequence[float]]], point: Sequence[float]) -> bool:
    """Containment over every ring of a polygon.

    Parity is accumulated across the outer ring and all holes, so a point
    inside a hole is outside the polygon.
    """
    inside = False
    for ring in rings:
        if point_in_polygon(point, ring):
            inside = not inside
    return inside


def feature_matches(
    feature: LayerFeature,
    coordinate: Coordinate,
    radius_m: float = DEFAULT_DETECTION_RADIUS_M,
) -> bool:
    """Whether *feature* covers (or is near) *coordinate*.

    Raises:
        TypeError, ValueError, IndexError: On malformed coordinates.
    """
    point = (coordinate.lon, coordinate.lat)
    coords = feature.coordinates

    if feature.geometry_type == "Point":
        distance = haversine_m(coordinate.lat, coordinate.lon, float(coords[1]), float(coords[0]))
        return distance < radius_m
    if feature.geometry_type == "Polygon":
        return polygon_contains(coords, point)
    if feature.geometry_type == "MultiPolygon":
        return any(polygon_contains(polygon, point) for polygon in coords)
    return False


def locate_feature(
    layer: FeatureLayer,
    coordinate: Coordinate,
    radius_m: float = DEFAULT_DETECTION_RADIUS_M,
) -> SpatialMatch | None:
    """First feature of *layer* matching *coordinate*, or None.

    Malformed geometry is logged and skipped; it never aborts the scan.
    """
    for feature in layer.features:
        try:
            if feature_matches(feature, coordinate, radius_m):
                return SpatialMatch(layer_id=layer.layer_id, feature=feature)
        except (TypeError, ValueError, IndexError, ZeroDivisionError) as e:
            logger.warning(
                f"Skipping malformed {feature.geometry_type} feature {feature.feature_id} "
                f"in layer {layer.layer_id}: {e}"
            )
    return None


def locate_features(
    layers: Mapping[str, FeatureLayer],
    coordinate: Coordinate,
    radius_m: float = DEFAULT_DETECTION_RADIUS_M,
) -> dict[str, SpatialMatch]:
    """At most one match per layer, keyed by layer id."""
    matches: dict[str, SpatialMatch] = {}
    for layer_id, layer in layers.items():
        match = locate_feature(layer, coordinate, radius_m)
        if match is not None:
            matches[layer_id] = match
    return matches
