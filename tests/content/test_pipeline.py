"""Tests for ContentResolutionPipeline — priority walk, fallbacks, cancellation."""

import asyncio

import httpx
import pytest

from pinpoint.config import ProjectConfig, Settings
from pinpoint.content.paths import LocationKey
from pinpoint.content.pipeline import (
    Cancel,
    ContentOutcome,
    ContentRequest,
    ContentResolutionPipeline,
    LayerActivated,
    LayerDeactivated,
    Query,
    has_valid_value,
)
from pinpoint.content.probe import ContentProber
from pinpoint.content.tokens import CancelReason
from pinpoint.layers.layer import DisplayMode
from pinpoint.layers.registry import LayerRegistry

CONTENT_LAYERS = [
    {"id": "temp", "type": "raster", "paths": {"basedir": "http://test/temp/"}},
    {"id": "rain", "type": "raster", "paths": {"basedir": "http://test/rain/"}},
    {
        "id": "flood",
        "type": "raster",
        "displayMode": "iframe",
        "urltype": "arg",
        "urlbase": "http://test/viewer?m=flood",
    },
]

DETAIL_PANEL = {
    "basedir": "http://test/img/",
    "baseUrl": "http://test/html/",
    "idBasedir": "http://test/assets/",
    "idBaseUrl": "http://test/assets/",
    "fallbackImage": "http://test/default/noimage.png",
    "timeoutImage": "http://test/default/timeout.png",
}

MESH = LocationKey("53394525")


class FakeContentServer:
    """MockTransport handler: serves *available* URLs, hangs on *hanging* ones, answers *slow* ones late."""

    def __init__(self, available=(), hanging=(), slow=(), fail=False):
        self.available = set(available)
        self.hanging = set(hanging)
        self.slow = set(slow)
        self.fail = fail
        self.requests: list[tuple[str, str]] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append((request.method, url))
        if self.fail:
            raise httpx.ConnectError("connection refused", request=request)
        if url in self.hanging:
            await asyncio.sleep(10)
        if url in self.slow:
            await asyncio.sleep(0.05)
        return httpx.Response(200 if url in self.available else 404)

    def urls(self) -> list[str]:
        return [url for _, url in self.requests]


def _pipeline(server, layers=("temp", "rain"), settings=None, on_result=None):
    registry = LayerRegistry.from_config(CONTENT_LAYERS)
    client = httpx.AsyncClient(transport=httpx.MockTransport(server))
    pipeline = ContentResolutionPipeline(
        registry,
        settings or Settings(_env_file=None),
        project=ProjectConfig({"features": {"detailPanel": DETAIL_PANEL}}),
        prober=ContentProber(client=client),
        on_result=on_result,
    )
    for layer_id in layers:
        pipeline.layer_activated(layer_id)
    return pipeline, client


def _run(server, request, **kwargs):
    async def scenario():
        pipeline, client = _pipeline(server, **kwargs)
        async with client:
            return await pipeline.handle(Query(request))

    return asyncio.run(scenario())


@pytest.mark.unit
class TestPriorityWalk:
    """Most recently activated layer first, first hit wins."""

    def test_most_recent_layer_wins(self):
        server = FakeContentServer(
            available={f"http://test/{layer}/53394525_{slot}.png" for layer in ("temp", "rain") for slot in (1, 2, 3)}
        )
        results = _run(server, ContentRequest(MESH))
        assert sorted(results) == [1, 2, 3]
        assert all(r.layer_id == "rain" for r in results.values())
        assert results[1].url == "http://test/rain/53394525_1.png"
        assert results[1].outcome is ContentOutcome.FOUND
        assert not results[1].is_fallback
        assert not any("/temp/" in url for url in server.urls())

    def test_falls_through_to_older_layer(self):
        server = FakeContentServer(available={"http://test/temp/53394525_2.png"})
        results = _run(server, ContentRequest(MESH))
        assert results[2].layer_id == "temp"
        assert results[2].display_mode is DisplayMode.IMAGE
        assert ("HEAD", "http://test/rain/53394525_2.png") in server.requests
        assert all(method == "HEAD" for method, _ in server.requests)

    def test_nothing_found_falls_back(self):
        published = []
        server = FakeContentServer()
        results = _run(server, ContentRequest(MESH), on_result=published.append)
        assert {r.outcome for r in results.values()} == {ContentOutcome.FALLBACK_ABSENT}
        assert results[1].url == "http://test/default/noimage.png"
        assert results[1].layer_id is None
        assert results[1].is_fallback
        assert len(published) == 3
        assert len(server.requests) == 6

    @pytest.mark.parametrize("rain_value", [None, float("nan"), [float("nan")], [], "missing"])
    def test_layers_without_a_value_are_skipped(self, rain_value):
        layer_values = {"temp": [21.5]}
        if rain_value != "missing":
            layer_values["rain"] = rain_value
        server = FakeContentServer(available={"http://test/temp/53394525_1.png"})
        results = _run(server, ContentRequest(MESH, layer_values))
        assert results[1].layer_id == "temp"
        assert not any("/rain/" in url for url in server.urls())

    def test_no_key_means_no_requests(self):
        server = FakeContentServer()
        results = _run(server, ContentRequest(LocationKey(None)))
        assert server.requests == []
        assert results[1].outcome is ContentOutcome.FALLBACK_ABSENT

    def test_transport_error_is_absence(self):
        server = FakeContentServer(fail=True)
        results = _run(server, ContentRequest(MESH))
        assert results[1].outcome is ContentOutcome.FALLBACK_ABSENT

    def test_per_slot_independence(self):
        server = FakeContentServer(
            available={"http://test/rain/53394525_1.png", "http://test/temp/53394525_3.png"}
        )
        results = _run(server, ContentRequest(MESH))
        assert results[1].layer_id == "rain"
        assert results[2].is_fallback
        assert results[3].layer_id == "temp"


@pytest.mark.unit
class TestEmbeddedContent:
    """Embedded documents are probed with GET."""

    def test_arg_url_and_get(self):
        server = FakeContentServer(available={"http://test/viewer?m=flood&arg=53394525&p=1"})
        results = _run(server, ContentRequest(MESH), layers=("flood",))
        assert results[1].url == "http://test/viewer?m=flood&arg=53394525&p=1"
        assert results[1].display_mode is DisplayMode.EMBEDDED
        assert all(method == "GET" for method, _ in server.requests)

    def test_spec_identifier_uses_document_path(self):
        server = FakeContentServer(available={"http://test/assets/spec_7_1.html"})
        results = _run(server, ContentRequest(LocationKey("spec_7", True)), layers=("flood",))
        assert results[1].url == "http://test/assets/spec_7_1.html"

    def test_fallback_is_always_an_image(self):
        results = _run(FakeContentServer(), ContentRequest(MESH), layers=("flood",))
        assert results[1].display_mode is DisplayMode.IMAGE


@pytest.mark.unit
class TestTimeouts:
    """Probes that outlive the load timeout."""

    def test_all_timed_out_uses_timeout_image(self):
        hanging = {f"http://test/temp/53394525_{slot}.png" for slot in (1, 2, 3)}
        server = FakeContentServer(hanging=hanging)
        settings = Settings(_env_file=None, content_load_timeout=0.05)
        results = _run(server, ContentRequest(MESH), layers=("temp",), settings=settings)
        assert {r.outcome for r in results.values()} == {ContentOutcome.FALLBACK_TIMEOUT}
        assert results[1].url == "http://test/default/timeout.png"

    def test_timeout_then_found_on_next_layer(self):
        server = FakeContentServer(
            hanging={"http://test/rain/53394525_1.png"},
            available={"http://test/temp/53394525_1.png"},
        )
        settings = Settings(_env_file=None, content_load_timeout=0.05)
        results = _run(server, ContentRequest(MESH), settings=settings)
        assert results[1].layer_id == "temp"
        assert results[1].outcome is ContentOutcome.FOUND


@pytest.mark.unit
class TestCancellation:
    """Stale continuations never publish."""

    def test_new_query_supersedes_in_flight_query(self):
        published = []
        server = FakeContentServer(
            hanging={f"http://test/rain/AAA_{slot}.png" for slot in (1, 2, 3)},
            available={f"http://test/rain/BBB_{slot}.png" for slot in (1, 2, 3)},
        )

        async def scenario():
            pipeline, client = _pipeline(server, on_result=published.append)
            async with client:
                first = asyncio.create_task(pipeline.resolve(ContentRequest(LocationKey("AAA"))))
                await asyncio.sleep(0.01)
                second = await pipeline.resolve(ContentRequest(LocationKey("BBB")))
                return await first, second, pipeline

        first, second, pipeline = asyncio.run(scenario())
        assert first == {}
        assert {r.url for r in second.values()} == {f"http://test/rain/BBB_{slot}.png" for slot in (1, 2, 3)}
        assert all("BBB" in r.url for r in published)
        assert pipeline.results == second
        assert not any("/temp/AAA" in url for url in server.urls())

    def test_same_slot_resolution_supersedes(self):
        server = FakeContentServer(
            hanging={"http://test/rain/AAA_1.png"},
            available={"http://test/rain/BBB_1.png"},
        )

        async def scenario():
            pipeline, client = _pipeline(server)
            async with client:
                token = pipeline.begin_query()
                stale = asyncio.create_task(pipeline.resolve_slot(1, ContentRequest(LocationKey("AAA")), token))
                await asyncio.sleep(0.01)
                fresh = await pipeline.resolve_slot(1, ContentRequest(LocationKey("BBB")), token)
                return await stale, fresh, pipeline

        stale, fresh, pipeline = asyncio.run(scenario())
        assert stale is None
        assert fresh.url == "http://test/rain/BBB_1.png"
        assert pipeline.results == {1: fresh}

    def test_teardown_stops_everything(self):
        server = FakeContentServer(hanging={f"http://test/rain/53394525_{slot}.png" for slot in (1, 2, 3)})

        async def scenario():
            pipeline, client = _pipeline(server)
            async with client:
                task = asyncio.create_task(pipeline.resolve(ContentRequest(MESH)))
                await asyncio.sleep(0.01)
                pipeline.teardown()
                return await task, pipeline

        results, pipeline = asyncio.run(scenario())
        assert results == {}
        assert pipeline.results == {}
        assert pipeline.token.reason is CancelReason.TEARDOWN
        assert not any("/temp/" in url for url in server.urls())

    def test_cancel_command(self):
        server = FakeContentServer(hanging={f"http://test/rain/53394525_{slot}.png" for slot in (1, 2, 3)})

        async def scenario():
            pipeline, client = _pipeline(server)
            async with client:
                task = asyncio.create_task(pipeline.handle(Query(ContentRequest(MESH))))
                await asyncio.sleep(0.01)
                assert await pipeline.handle(Cancel()) is None
                return await task, pipeline

        results, pipeline = asyncio.run(scenario())
        assert results == {}
        assert pipeline.token.reason is CancelReason.USER

    def test_deactivated_layer_moves_on_to_next(self):
        server = FakeContentServer(
            hanging={f"http://test/rain/53394525_{slot}.png" for slot in (1, 2, 3)},
            available={f"http://test/temp/53394525_{slot}.png" for slot in (1, 2, 3)},
        )

        async def scenario():
            pipeline, client = _pipeline(server)
            async with client:
                task = asyncio.create_task(pipeline.resolve(ContentRequest(MESH)))
                await asyncio.sleep(0.01)
                await pipeline.handle(LayerDeactivated("rain"))
                return await task, pipeline

        results, pipeline = asyncio.run(scenario())
        assert {r.layer_id for r in results.values()} == {"temp"}
        assert pipeline.priority_ids == ["temp"]

    def test_deactivated_lower_priority_layer_is_skipped(self):
        published = []
        server = FakeContentServer(
            slow={f"http://test/rain/53394525_{slot}.png" for slot in (1, 2, 3)},
            available={f"http://test/temp/53394525_{slot}.png" for slot in (1, 2, 3)},
        )

        async def scenario():
            pipeline, client = _pipeline(server, on_result=published.append)
            async with client:
                task = asyncio.create_task(pipeline.resolve(ContentRequest(MESH)))
                await asyncio.sleep(0.01)
                await pipeline.handle(LayerDeactivated("temp"))
                return await task, pipeline

        results, pipeline = asyncio.run(scenario())
        assert pipeline.priority_ids == ["rain"]
        assert sorted(results) == [1, 2, 3]
        assert all(r.outcome is ContentOutcome.FALLBACK_ABSENT for r in results.values())
        assert all(r.layer_id != "temp" for r in published)
        assert not any("/temp/" in url for url in server.urls())


@pytest.mark.unit
class TestCommands:
    """Layer bookkeeping and command dispatch."""

    def test_reactivation_moves_layer_to_front(self):
        async def scenario():
            pipeline, client = _pipeline(FakeContentServer(), layers=("temp", "rain", "flood"))
            async with client:
                await pipeline.handle(LayerActivated("temp"))
            return pipeline.priority_ids

        assert asyncio.run(scenario()) == ["temp", "flood", "rain"]

    def test_unknown_command(self):
        async def scenario():
            pipeline, client = _pipeline(FakeContentServer())
            async with client:
                await pipeline.handle("refresh")

        with pytest.raises(TypeError):
            asyncio.run(scenario())

    def test_has_valid_value(self):
        assert has_valid_value(None, "any")
        assert has_valid_value({"a": 0}, "a")
        assert has_valid_value({"a": [3.5, 1.0]}, "a")
        assert has_valid_value({"a": "text"}, "a")
        assert not has_valid_value({"a": None}, "a")
        assert not has_valid_value({"a": float("nan")}, "a")
        assert not has_valid_value({"a": (float("nan"),)}, "a")
        assert not has_valid_value({}, "a")
