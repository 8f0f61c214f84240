"""Spatial lookup of vector features around a query point."""

from pinpoint.spatial.locator import (
    SpatialMatch,
    haversine_m,
    locate_feature,
    locate_features,
    point_in_polygon,
    polygon_contains,
)

__all__ = [
    "SpatialMatch",
    "haversine_m",
    "locate_feature",
    "locate_features",
    "point_in_polygon",
    "polygon_contains",
]
