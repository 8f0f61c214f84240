"""Point queries — everything known about one clicked location.

A QueryContext bundles the collaborators a query needs (settings, project
config, layer registry, layer state and content pipeline) and is passed
explicitly; nothing here is a module-level singleton.

describe_point() computes location codes, per-layer values with their
display colors and the vector features at the point. query_point() does
the same and then resolves per-slot content through the pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from loguru import logger

from pinpoint.codec.location import Coordinate, grid_indices, grid_key, mesh_code
from pinpoint.config import ProjectConfig, Settings
from pinpoint.content.paths import LocationKey, resolve_location_key
from pinpoint.content.pipeline import (
    ContentRequest,
    ContentResolutionPipeline,
    ContentResult,
    LayerActivated,
    LayerDeactivated,
    Query,
)
from pinpoint.content.probe import ContentProber
from pinpoint.layers.layer import FeatureLayer, LayerKind, LocationCodeType
from pinpoint.layers.registry import LayerRegistry
from pinpoint.layers.state import LayerRuntimeState, LayerStateStore
from pinpoint.presentation.classify import parse_float
from pinpoint.presentation.colors import (
    FeatureStyle,
    feature_style,
    is_missing,
    map_value_to_color,
    rgb_to_css,
)
from pinpoint.spatial.locator import SpatialMatch, locate_features


@dataclass
class QueryContext:
    """Collaborators shared by every query of one map session."""

    settings: Settings
    project: ProjectConfig
    registry: LayerRegistry
    store: LayerStateStore
    pipeline: ContentResolutionPipeline

    @classmethod
    def create(
        cls,
        settings: Settings,
        registry: LayerRegistry,
        project: ProjectConfig | None = None,
        prober: ContentProber | None = None,
        on_result: Callable[[ContentResult], None] | None = None,
    ) -> "QueryContext":
        project = project or ProjectConfig()
        return cls(
            settings=settings,
            project=project,
            registry=registry,
            store=LayerStateStore(registry, settings),
            pipeline=ContentResolutionPipeline(
                registry, settings, project=project, prober=prober, on_result=on_result
            ),
        )

    async def activate_layer(
        self,
        layer_id: str,
        features: FeatureLayer | None = None,
        raster_range: tuple[float, float] | None = None,
        property_field: str | None = None,
    ) -> LayerRuntimeState:
        """Activate a layer in the state store and in the content pipeline."""
        state = self.store.activate(layer_id, features, raster_range, property_field)
        await self.pipeline.handle(LayerActivated(layer_id))
        return state

    async def deactivate_layer(self, layer_id: str) -> bool:
        removed = self.store.deactivate(layer_id)
        await self.pipeline.handle(LayerDeactivated(layer_id))
        return removed

    def location_code_type(self) -> LocationCodeType:
        """Code type of the most recently activated layer, else the project default."""
        default = LocationCodeType.parse(
            self.project.location_code_type(self.settings.default_location_code_type),
            LocationCodeType.WORLD_GRID,
        )
        layer_id = self.store.current_layer_id
        if layer_id not in self.registry:
            return default
        descriptor = self.registry.get(layer_id)
        if descriptor is not None and descriptor.location_code_type is not None:
            return descriptor.location_code_type
        return default


@dataclass
class LayerValue:
    """A layer's value at the point and how it renders."""

    layer_id: str
    value: Any
    color: str | None = None
    style: FeatureStyle | None = None
    property_field: str | None = None

    def to_dict(self) -> dict:
        return {
            "layer_id": self.layer_id,
            "value": self.value,
            "color": self.color,
            "property_field": self.property_field,
            "style": self.style.to_dict() if self.style else None,
        }


@dataclass
class LocationReport:
    """Everything resolved for one query point."""

    coordinate: Coordinate
    name: str
    identifier: str | None
    location_code_type: LocationCodeType
    mesh_code: int | str | None
    world_grid_key: str | None
    grid: dict
    location_key: LocationKey
    values: dict[str, LayerValue] = field(default_factory=dict)
    matches: dict[str, SpatialMatch] = field(default_factory=dict)
    content: dict[int, ContentResult] = field(default_factory=dict)

    @property
    def layer_values(self) -> dict[str, Any]:
        """Raw value per layer, as used to filter content candidates."""
        return {layer_id: lv.value for layer_id, lv in self.values.items()}

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "id": self.identifier,
            "lat": self.coordinate.lat,
            "lon": self.coordinate.lon,
            "location_code_type": self.location_code_type.value,
            "mesh_code": self.mesh_code,
            "world_grid_key": self.world_grid_key,
            "grid": self.grid,
            "location_key": {
                "key": self.location_key.key,
                "use_id_folder": self.location_key.use_id_folder,
            },
            "values": {layer_id: lv.to_dict() for layer_id, lv in self.values.items()},
            "matches": {
                layer_id: {
                    "feature_id": match.feature.feature_id,
                    "geometry_type": match.feature.geometry_type,
                    "properties": match.feature.properties,
                }
                for layer_id, match in self.matches.items()
            },
            "content": {
                str(slot): {
                    "layer_id": result.layer_id,
                    "url": result.url,
                    "outcome": result.outcome.value,
                    "display_mode": result.display_mode.value,
                }
                for slot, result in sorted(self.content.items())
            },
        }


def _raster_value(state: LayerRuntimeState, sample: Any) -> LayerValue:
    value = sample[0] if isinstance(sample, (list, tuple)) and sample else sample
    if is_missing(value):
        return LayerValue(layer_id=state.layer_id, value=sample)
    number = parse_float(value)
    color = None
    if number is not None:
        color = rgb_to_css(map_value_to_color(number, state.value_range, state.colormap, state.reverse))
    return LayerValue(layer_id=state.layer_id, value=sample, color=color)


def describe_point(
    ctx: QueryContext,
    coordinate: Coordinate,
    samples: Mapping[str, Any] | None = None,
    identifier: str | None = None,
    name: str | None = None,
) -> LocationReport:
    """Location codes, layer values, colors and matched features for a point.

    Args:
        ctx: Session collaborators.
        coordinate: Validated query point.
        samples: Raw raster values at the point, keyed by layer id.
        identifier: Explicit location identifier (e.g. from a marker CSV).
        name: Display name; defaults to "Loc(lat, lon)".
    """
    samples = samples or {}
    code_type = ctx.location_code_type()
    mesh = mesh_code(coordinate.lat, coordinate.lon, 3)
    world_key = grid_key(coordinate.lon, coordinate.lat, ctx.settings.world_grid_minutes)

    report = LocationReport(
        coordinate=coordinate,
        name=name or f"Loc({coordinate.lat:.4f}, {coordinate.lon:.4f})",
        identifier=identifier,
        location_code_type=code_type,
        mesh_code=mesh,
        world_grid_key=world_key,
        grid=grid_indices(coordinate.lat, coordinate.lon),
        location_key=resolve_location_key(
            identifier,
            code_type,
            mesh_code=mesh,
            world_grid_key=world_key,
            reserved_prefixes=ctx.settings.reserved_id_prefixes,
        ),
    )

    for layer_id in ctx.store.active_ids:
        state = ctx.store.get(layer_id)
        if state is not None and state.kind is LayerKind.RASTER and layer_id in samples:
            report.values[layer_id] = _raster_value(state, samples[layer_id])

    report.matches = locate_features(
        ctx.store.vector_layers(), coordinate, ctx.settings.point_detection_radius_m
    )
    for layer_id, match in report.matches.items():
        state = ctx.store.get(layer_id)
        if state is None or not state.property_field:
            continue
        if state.property_field not in match.feature.properties:
            continue
        value = match.feature.properties[state.property_field]
        style = feature_style(value, state)
        report.values[layer_id] = LayerValue(
            layer_id=layer_id,
            value=value,
            color=style.fill_color,
            style=style,
            property_field=state.property_field,
        )

    logger.debug(
        f"Point {coordinate.lat:.4f},{coordinate.lon:.4f}: key={report.location_key.key} "
        f"values={len(report.values)} matches={len(report.matches)}"
    )
    return report


async def query_point(
    ctx: QueryContext,
    coordinate: Coordinate,
    samples: Mapping[str, Any] | None = None,
    identifier: str | None = None,
    name: str | None = None,
    resolve_content: bool = True,
) -> LocationReport:
    """describe_point() plus per-slot content resolution.

    Starting a query invalidates any query still resolving; if this query
    is itself superseded before finishing, its content mapping is left
    with only the slots that resolved in time.
    """
    report = describe_point(ctx, coordinate, samples, identifier, name)
    if resolve_content:
        request = ContentRequest(location=report.location_key, layer_values=report.layer_values)
        report.content = await ctx.pipeline.handle(Query(request)) or {}
    return report
