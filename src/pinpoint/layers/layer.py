"""Layer descriptors and loaded feature collections.

All coordinates are stored in GeoJSON convention: [lng, lat].
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class LayerKind(str, Enum):
    RASTER = "raster"
    VECTOR = "vector"


class DisplayMode(str, Enum):
    """How per-location content is shown: a static image or an embedded page."""

    IMAGE = "image"
    EMBEDDED = "embedded"

    @classmethod
    def parse(cls, value: str | None, default: "DisplayMode") -> "DisplayMode":
        if not value:
            return default
        if value == "iframe":
            return cls.EMBEDDED
        try:
            return cls(value)
        except ValueError:
            return default


class UrlType(str, Enum):
    RAW = "raw"   # {base_url}{key}_{slot}.html
    ARG = "arg"   # {urlbase}&arg={key}&p={slot}

    @classmethod
    def parse(cls, value: str | None, default: "UrlType") -> "UrlType":
        try:
            return cls(value) if value else default
        except ValueError:
            return default


class LocationCodeType(str, Enum):
    MESH_CODE = "meshCode"
    WORLD_GRID = "worldGrid"
    NONE = "none"

    @classmethod
    def parse(cls, value: str | None, default: "LocationCodeType") -> "LocationCodeType":
        try:
            return cls(value) if value else default
        except ValueError:
            return default


@dataclass(frozen=True)
class ContentPaths:
    """Path templates for per-location content.

    Attributes:
        basedir: Image folder for code-keyed locations.
        base_url: Document folder for code-keyed locations.
        id_basedir: Image folder for identifier-keyed locations.
        id_base_url: Document folder for identifier-keyed locations.
        fallback_image: Asset shown when no layer has content.
        timeout_image: Asset shown when the search ended on a timeout.
    """

    basedir: str | None = None
    base_url: str | None = None
    id_basedir: str | None = None
    id_base_url: str | None = None
    fallback_image: str | None = None
    timeout_image: str | None = None

    @classmethod
    def from_config(cls, raw: dict[str, Any] | None) -> "ContentPaths":
        raw = raw or {}
        return cls(
            basedir=raw.get("basedir"),
            base_url=raw.get("baseUrl"),
            id_basedir=raw.get("idBasedir"),
            id_base_url=raw.get("idBaseUrl"),
            fallback_image=raw.get("fallbackImage"),
            timeout_image=raw.get("timeoutImage"),
        )

    def merged(self, defaults: "ContentPaths") -> "ContentPaths":
        """Fill every unset path from *defaults*."""
        return ContentPaths(
            basedir=self.basedir or defaults.basedir,
            base_url=self.base_url or defaults.base_url,
            id_basedir=self.id_basedir or defaults.id_basedir,
            id_base_url=self.id_base_url or defaults.id_base_url,
            fallback_image=self.fallback_image or defaults.fallback_image,
            timeout_image=self.timeout_image or defaults.timeout_image,
        )


@dataclass(frozen=True)
class LayerDescriptor:
    """Immutable description of a layer, as listed in data_list.json.

    Optional fields left as None fall back to the project defaults at the
    point of use.
    """

    layer_id: str
    kind: LayerKind
    name: str
    url: str | None = None
    default_colormap: str | None = None
    default_opacity: float | None = None
    property_field: str | None = None
    location_code_type: LocationCodeType | None = None
    display_mode: DisplayMode | None = None
    urltype: UrlType | None = None
    urlbase: str | None = None
    paths: ContentPaths | None = None

    @classmethod
    def from_config(cls, raw: dict[str, Any]) -> "LayerDescriptor":
        """Build a descriptor from one entry of the layer list.

        Raises:
            KeyError: If the entry has no "id".
        """
        layer_id = str(raw["id"])
        kind = LayerKind.VECTOR if raw.get("type") == "vector" else LayerKind.RASTER

        location_code = raw.get("locationCode") or {}
        code_type = location_code.get("type") if isinstance(location_code, dict) else None

        opacity = raw.get("defaultOpacity")
        return cls(
            layer_id=layer_id,
            kind=kind,
            name=raw.get("name") or layer_id,
            url=raw.get("url"),
            default_colormap=raw.get("defaultColormap"),
            default_opacity=float(opacity) if opacity is not None else None,
            property_field=raw.get("propertyField"),
            location_code_type=(
                LocationCodeType.parse(code_type, LocationCodeType.WORLD_GRID)
                if code_type else None
            ),
            display_mode=(
                DisplayMode.parse(raw["displayMode"], DisplayMode.IMAGE)
                if raw.get("displayMode") else None
            ),
            urltype=(
                UrlType.parse(raw["urltype"], UrlType.RAW)
                if raw.get("urltype") else None
            ),
            urlbase=raw.get("urlbase"),
            paths=ContentPaths.from_config(raw["paths"]) if raw.get("paths") else None,
        )


@dataclass
class LayerFeature:
    """A single feature within a vector layer.

    Attributes:
        feature_id: Unique identifier for this feature.
        geometry_type: "Point", "LineString", "Polygon" or "MultiPolygon".
        coordinates: GeoJSON-style coordinate arrays.
            Point: [lng, lat]
            LineString: [[lng, lat], ...]
            Polygon: [[[lng, lat], ...], ...]  (list of rings)
            MultiPolygon: [polygon, polygon, ...]
        properties: Arbitrary key-value attributes.
    """

    feature_id: str
    geometry_type: str
    coordinates: list
    properties: dict


@dataclass
class FeatureLayer:
    """A loaded vector feature collection.

    Attributes:
        layer_id: Registry id (or a generated id for ad hoc imports).
        name: Human-readable display name.
        source_format: Original format ("geojson", "csv").
        features: Parsed features, in file order.
        metadata: Arbitrary key-value metadata about the collection.
    """

    layer_id: str
    name: str
    source_format: str
    features: list[LayerFeature]
    metadata: dict = field(default_factory=dict)
