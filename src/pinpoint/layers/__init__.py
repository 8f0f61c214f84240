"""Layer descriptors, the layer registry and runtime layer state."""

from pinpoint.layers.layer import (
    ContentPaths,
    DisplayMode,
    FeatureLayer,
    LayerDescriptor,
    LayerFeature,
    LayerKind,
    LocationCodeType,
    UrlType,
)
from pinpoint.layers.registry import LayerRegistry
from pinpoint.layers.state import LayerRuntimeState, LayerStateStore

__all__ = [
    "ContentPaths",
    "DisplayMode",
    "FeatureLayer",
    "LayerDescriptor",
    "LayerFeature",
    "LayerKind",
    "LayerRegistry",
    "LayerRuntimeState",
    "LayerStateStore",
    "LocationCodeType",
    "UrlType",
]
