"""Tests for point queries — location codes, layer values, matches, content."""

import asyncio
import math

import httpx
import pytest

from pinpoint.codec.location import Coordinate
from pinpoint.config import ProjectConfig
from pinpoint.content.pipeline import ContentOutcome
from pinpoint.content.probe import ContentProber
from pinpoint.layers.layer import FeatureLayer, LayerFeature, LocationCodeType
from pinpoint.presentation.colors import NEUTRAL_FILL, PRESET_PALETTES
from pinpoint.query import QueryContext, describe_point, query_point

SHINJUKU = Coordinate(35.6895, 139.69171)

PROJECT = {
    "features": {
        "locationCodes": {"type": "worldGrid"},
        "detailPanel": {
            "basedir": "http://test/img/",
            "baseUrl": "http://test/html/",
            "idBasedir": "http://test/assets/",
            "idBaseUrl": "http://test/assets/",
            "fallbackImage": "http://test/default/noimage.png",
            "timeoutImage": "http://test/default/timeout.png",
        },
    }
}


def _landuse() -> FeatureLayer:
    around = [[[139.6, 35.6], [139.8, 35.6], [139.8, 35.8], [139.6, 35.8], [139.6, 35.6]]]
    far = [[[130.0, 30.0], [130.1, 30.0], [130.1, 30.1], [130.0, 30.0]]]
    return FeatureLayer(
        layer_id="landuse",
        name="Land use",
        source_format="geojson",
        features=[
            LayerFeature("far", "Polygon", far, {"class": "forest"}),
            LayerFeature("city", "Polygon", around, {"class": "urban"}),
        ],
    )


def _context(registry, settings, handler=None):
    prober = None
    if handler is not None:
        prober = ContentProber(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    return QueryContext.create(settings, registry, project=ProjectConfig(PROJECT), prober=prober)


@pytest.mark.unit
class TestLocationCodeType:
    """Which code keys the content of a point."""

    def test_project_default_when_idle(self, registry, settings):
        ctx = _context(registry, settings)
        assert ctx.location_code_type() is LocationCodeType.WORLD_GRID

    def test_most_recent_layer_decides(self, registry, settings):
        ctx = _context(registry, settings)
        asyncio.run(ctx.activate_layer("temp"))
        assert ctx.location_code_type() is LocationCodeType.MESH_CODE
        asyncio.run(ctx.activate_layer("landuse", features=_landuse()))
        assert ctx.location_code_type() is LocationCodeType.WORLD_GRID

    def test_reactivation_reorders_store_and_pipeline_alike(self, registry, settings):
        ctx = _context(registry, settings)

        async def scenario():
            await ctx.activate_layer("temp")
            await ctx.activate_layer("rain")
            await ctx.activate_layer("temp")

        asyncio.run(scenario())
        assert ctx.store.priority_ids == ["temp", "rain"]
        assert ctx.pipeline.priority_ids == ctx.store.priority_ids
        assert ctx.store.current_layer_id == "temp"
        assert ctx.location_code_type() is LocationCodeType.MESH_CODE

    def test_unregistered_layer_uses_default(self, registry, settings):
        ctx = _context(registry, settings)
        imported = FeatureLayer("imported", "imported", "geojson", [])
        asyncio.run(ctx.activate_layer("imported", features=imported))
        assert ctx.location_code_type() is LocationCodeType.WORLD_GRID


@pytest.mark.unit
class TestDescribePoint:
    """Codes, raster values and vector matches without content."""

    def test_location_codes(self, registry, settings):
        ctx = _context(registry, settings)
        asyncio.run(ctx.activate_layer("temp", raster_range=(0.0, 40.0)))
        report = describe_point(ctx, SHINJUKU)
        assert report.mesh_code == 53394525
        assert report.world_grid_key == "139.75_35.75"
        assert report.grid["grid_id"] == "754_1918"
        assert report.location_key.key == "53394525"
        assert report.name == "Loc(35.6895, 139.6917)"

    def test_identifier_keys_the_content(self, registry, settings):
        ctx = _context(registry, settings)
        report = describe_point(ctx, SHINJUKU, identifier="shelter_12", name="Shelter 12")
        assert report.location_key.key == "shelter_12"
        assert report.location_key.use_id_folder
        assert report.name == "Shelter 12"

    def test_reserved_identifier_keys_by_code(self, registry, settings):
        ctx = _context(registry, settings)
        report = describe_point(ctx, SHINJUKU, identifier="odn_12")
        assert report.location_key.key == "139.75_35.75"

    def test_raster_values_and_colors(self, registry, settings):
        ctx = _context(registry, settings)
        asyncio.run(ctx.activate_layer("temp", raster_range=(0.0, 40.0)))
        asyncio.run(ctx.activate_layer("rain"))
        report = describe_point(ctx, SHINJUKU, samples={"temp": [21.4], "rain": float("nan"), "wind": 3.0})
        assert set(report.values) == {"temp", "rain"}
        assert report.values["temp"].color.startswith("rgb(")
        assert report.values["rain"].color is None
        assert math.isnan(report.layer_values["rain"])

    def test_vector_match_and_style(self, registry, settings):
        ctx = _context(registry, settings)
        asyncio.run(ctx.activate_layer("landuse", features=_landuse()))
        report = describe_point(ctx, SHINJUKU)
        assert report.matches["landuse"].feature.feature_id == "city"
        value = report.values["landuse"]
        assert value.value == "urban"
        assert value.property_field == "class"
        assert value.color == PRESET_PALETTES["pastel"][1]
        assert value.style.fill_color != NEUTRAL_FILL

    def test_no_match_outside_features(self, registry, settings):
        ctx = _context(registry, settings)
        asyncio.run(ctx.activate_layer("landuse", features=_landuse()))
        report = describe_point(ctx, Coordinate(43.06, 141.35))
        assert report.matches == {}
        assert "landuse" not in report.values

    def test_report_serializes(self, registry, settings):
        ctx = _context(registry, settings)
        asyncio.run(ctx.activate_layer("landuse", features=_landuse()))
        data = describe_point(ctx, SHINJUKU).to_dict()
        assert data["location_code_type"] == "worldGrid"
        assert data["matches"]["landuse"]["feature_id"] == "city"
        assert data["values"]["landuse"]["style"]["fillColor"] == PRESET_PALETTES["pastel"][1]
        assert data["content"] == {}


@pytest.mark.unit
class TestQueryPoint:
    """Content resolution driven by the point's values."""

    def test_content_for_layers_with_values(self, registry, settings):
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            found = str(request.url) == "http://test/img/53394525_1.png"
            return httpx.Response(200 if found else 404)

        ctx = _context(registry, settings, handler)

        async def scenario():
            await ctx.activate_layer("rain")
            await ctx.activate_layer("temp", raster_range=(0.0, 40.0))
            try:
                return await query_point(ctx, SHINJUKU, samples={"temp": 21.4, "rain": None})
            finally:
                await ctx.pipeline.aclose()

        report = asyncio.run(scenario())
        assert report.content[1].layer_id == "temp"
        assert report.content[1].outcome is ContentOutcome.FOUND
        assert report.content[2].url == "http://test/default/noimage.png"
        assert len(requested) == 3
        assert report.to_dict()["content"]["1"]["outcome"] == "found"

    def test_describe_only(self, registry, settings):
        ctx = _context(registry, settings)
        report = asyncio.run(query_point(ctx, SHINJUKU, resolve_content=False))
        assert report.content == {}

    def test_deactivate_layer(self, registry, settings):
        ctx = _context(registry, settings)

        async def scenario():
            await ctx.activate_layer("temp")
            return await ctx.deactivate_layer("temp"), await ctx.deactivate_layer("temp")

        assert asyncio.run(scenario()) == (True, False)
        assert ctx.pipeline.priority_ids == []
