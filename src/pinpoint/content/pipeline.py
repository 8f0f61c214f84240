"""ContentResolutionPipeline — per-slot content search across active layers.

Each tab slot walks the active layers, most recently activated first:

    Idle → Probing(layer_i) → Resolved | NextLayer | Fallback → Terminal

A layer is skipped when its sampled value at the point is absent. The
first probe that finds content wins. When every layer comes up empty the
slot falls back to a placeholder asset: the timeout image if any probe in
the slot timed out, the no-image asset otherwise.

Every probe is guarded by an AbortHandle keyed "{slot}:{layer_id}", and
every query by a LoadingToken. A result is published only while its token
is current and its slot generation has not been superseded, so a stale
continuation never touches the result cache.
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, Union

from loguru import logger

from pinpoint.config import ProjectConfig, Settings
from pinpoint.content.paths import LocationKey, build_content_url
from pinpoint.content.probe import ContentProber, ProbeOutcome
from pinpoint.content.tokens import AbortHandle, CancelReason, LoadingToken
from pinpoint.layers.layer import ContentPaths, DisplayMode, LayerDescriptor, UrlType
from pinpoint.layers.registry import LayerRegistry


class ContentOutcome(str, Enum):
    FOUND = "found"
    FALLBACK_ABSENT = "fallback_absent"
    FALLBACK_TIMEOUT = "fallback_timeout"


@dataclass(frozen=True)
class ContentResult:
    """Terminal outcome for one tab slot.

    Attributes:
        slot: Tab slot number (1-based).
        layer_id: Layer whose content was found; None for fallbacks.
        url: Content URL, or the fallback asset path.
        outcome: FOUND, FALLBACK_ABSENT or FALLBACK_TIMEOUT.
        display_mode: How collaborators should render the URL.
    """

    slot: int
    layer_id: str | None
    url: str | None
    outcome: ContentOutcome
    display_mode: DisplayMode

    @property
    def is_fallback(self) -> bool:
        return self.outcome is not ContentOutcome.FOUND


@dataclass(frozen=True)
class ContentRequest:
    """What to resolve: the location key plus the sampled layer values.

    ``layer_values`` maps layer id → sampled value at the point. When it is
    None every layer is a candidate.
    """

    location: LocationKey
    layer_values: Mapping[str, Any] | None = None


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Query:
    request: ContentRequest


@dataclass(frozen=True)
class Cancel:
    reason: CancelReason = CancelReason.USER


@dataclass(frozen=True)
class LayerActivated:
    layer_id: str


@dataclass(frozen=True)
class LayerDeactivated:
    layer_id: str


Command = Union[Query, Cancel, LayerActivated, LayerDeactivated]


def has_valid_value(layer_values: Mapping[str, Any] | None, layer_id: str) -> bool:
    """Whether a layer has a usable sampled value at the point.

    Band lists use their first element; None and NaN are absent. Without
    any sampled values every layer is considered valid.
    """
    if layer_values is None:
        return True
    value = layer_values.get(layer_id)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        return False
    return not (isinstance(value, float) and math.isnan(value))


@dataclass
class _SlotRun:
    slot: int
    generation: int
    token: LoadingToken
    timed_out: bool = field(default=False)


class ContentResolutionPipeline:
    """Cancellable multi-layer, multi-slot content search."""

    def __init__(
        self,
        registry: LayerRegistry,
        settings: Settings,
        project: ProjectConfig | None = None,
        prober: ContentProber | None = None,
        on_result: Callable[[ContentResult], None] | None = None,
    ) -> None:
        self._registry = registry
        self._settings = settings
        self._project = project or ProjectConfig()
        self._prober = prober or ContentProber(user_agent=settings.http_user_agent)
        self._on_result = on_result

        self._default_paths = self._project.detail_panel_paths(settings.default_paths())
        self._default_mode = DisplayMode.parse(
            self._project.display_mode(settings.default_display_mode), DisplayMode.IMAGE
        )
        self._default_urltype = UrlType.parse(
            self._project.urltype(settings.default_urltype), UrlType.RAW
        )

        self._layers: list[str] = []
        self._token: LoadingToken | None = None
        self._query_seq = 0
        self._generations: dict[int, int] = {}
        self._handles: dict[str, AbortHandle] = {}
        self.results: dict[int, ContentResult] = {}

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def handle(self, command: Command) -> dict[int, ContentResult] | None:
        """Apply one command. Query returns the published slot results."""
        if isinstance(command, Query):
            return await self.resolve(command.request)
        if isinstance(command, Cancel):
            self.cancel(command.reason)
            return None
        if isinstance(command, LayerActivated):
            self.layer_activated(command.layer_id)
            return None
        if isinstance(command, LayerDeactivated):
            self.layer_deactivated(command.layer_id)
            return None
        raise TypeError(f"Unknown pipeline command: {command!r}")

    def layer_activated(self, layer_id: str) -> None:
        if layer_id in self._layers:
            self._layers.remove(layer_id)
        self._layers.append(layer_id)

    def layer_deactivated(self, layer_id: str) -> None:
        if layer_id in self._layers:
            self._layers.remove(layer_id)
        suffix = f":{layer_id}"
        for key in [k for k in self._handles if k.endswith(suffix)]:
            self._handles.pop(key).abort(CancelReason.LAYER_DEACTIVATED)

    @property
    def priority_ids(self) -> list[str]:
        """Candidate layers, most recently activated first."""
        return list(reversed(self._layers))

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    @property
    def token(self) -> LoadingToken | None:
        return self._token

    def begin_query(self) -> LoadingToken:
        """Invalidate the current query and start a new one."""
        if self._token is not None:
            self._token.cancel(CancelReason.NEW_QUERY)
        self._abort_all(CancelReason.NEW_QUERY)
        self._query_seq += 1
        self._token = LoadingToken(self._query_seq)
        self.results.clear()
        return self._token

    def cancel(self, reason: CancelReason = CancelReason.USER) -> None:
        """Cancel the current query and every open probe."""
        if self._token is not None:
            self._token.cancel(reason)
        self._abort_all(reason)

    def teardown(self) -> None:
        """Abort every still-open probe and invalidate the current token."""
        self.cancel(CancelReason.TEARDOWN)
        logger.info("Content pipeline torn down")

    async def aclose(self) -> None:
        self.teardown()
        await self._prober.aclose()

    def _abort_all(self, reason: CancelReason, prefix: str = "") -> None:
        for key in [k for k in self._handles if k.startswith(prefix)]:
            self._handles.pop(key).abort(reason)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve(
        self,
        request: ContentRequest,
        token: LoadingToken | None = None,
    ) -> dict[int, ContentResult]:
        """Resolve every tab slot for *request* under a fresh (or given) token.

        Slots run concurrently. Slots whose continuation went stale are
        missing from the returned mapping.
        """
        token = token or self.begin_query()
        slots = range(1, self._settings.tab_slots + 1)
        outcomes = await asyncio.gather(*(self.resolve_slot(slot, request, token) for slot in slots))
        return {result.slot: result for result in outcomes if result is not None}

    async def resolve_slot(
        self,
        slot: int,
        request: ContentRequest,
        token: LoadingToken,
    ) -> ContentResult | None:
        """Walk the candidate layers for one slot.

        Re-invoking this for the same slot supersedes any resolution
        still in flight there; only the latest one may publish.
        """
        if token.canceled:
            return None

        generation = self._generations.get(slot, 0) + 1
        self._generations[slot] = generation
        self._abort_all(CancelReason.SUPERSEDED, prefix=f"{slot}:")
        run = _SlotRun(slot=slot, generation=generation, token=token)

        for layer_id in self.priority_ids:
            if not self._is_current(run):
                return None
            if layer_id not in self._layers:
                continue
            if not has_valid_value(request.layer_values, layer_id):
                continue

            descriptor = self._registry.get(layer_id)
            mode = self._display_mode(descriptor)
            url = build_content_url(
                request.location,
                slot,
                mode,
                self._paths(descriptor),
                urltype=self._urltype(descriptor),
                urlbase=self._urlbase(descriptor),
                spec_prefix=self._settings.spec_prefix,
            )
            if url is None:
                continue

            outcome = await self._probe(slot, layer_id, url, mode)
            if not self._is_current(run):
                return None
            if outcome is ProbeOutcome.FOUND:
                return self._publish(
                    run,
                    ContentResult(
                        slot=slot,
                        layer_id=layer_id,
                        url=url,
                        outcome=ContentOutcome.FOUND,
                        display_mode=mode,
                    ),
                )
            if outcome is ProbeOutcome.TIMEOUT:
                run.timed_out = True

        return self._publish(run, self._fallback(run))

    def _is_current(self, run: _SlotRun) -> bool:
        return (
            not run.token.canceled
            and run.token is self._token
            and self._generations.get(run.slot) == run.generation
        )

    def _fallback(self, run: _SlotRun) -> ContentResult:
        if run.timed_out:
            url = self._default_paths.timeout_image
            outcome = ContentOutcome.FALLBACK_TIMEOUT
        else:
            url = self._default_paths.fallback_image
            outcome = ContentOutcome.FALLBACK_ABSENT
        return ContentResult(
            slot=run.slot,
            layer_id=None,
            url=url,
            outcome=outcome,
            display_mode=DisplayMode.IMAGE,
        )

    def _publish(self, run: _SlotRun, result: ContentResult) -> ContentResult | None:
        if not self._is_current(run):
            return None
        self.results[run.slot] = result
        logger.debug(f"Slot {run.slot}: {result.outcome.value} {result.url}")
        if self._on_result is not None:
            self._on_result(result)
        return result

    async def _probe(self, slot: int, layer_id: str, url: str, mode: DisplayMode) -> ProbeOutcome:
        key = f"{slot}:{layer_id}"
        previous = self._handles.pop(key, None)
        if previous is not None:
            previous.abort(CancelReason.SUPERSEDED)

        handle = AbortHandle(key)
        self._handles[key] = handle
        task = asyncio.ensure_future(self._prober.probe(url, mode))
        handle.attach(task, timeout=self._settings.content_load_timeout)

        try:
            result = await task
            outcome = result.outcome
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if not handle.aborted or (current is not None and current.cancelling()):
                raise
            outcome = (
                ProbeOutcome.TIMEOUT
                if handle.reason is CancelReason.TIMEOUT
                else ProbeOutcome.ABORTED
            )
        finally:
            handle.disarm()
            if self._handles.get(key) is handle:
                del self._handles[key]

        logger.debug(f"Probe {key} {url}: {outcome.value}")
        return outcome

    # ------------------------------------------------------------------
    # Per-layer configuration
    # ------------------------------------------------------------------

    def _display_mode(self, descriptor: LayerDescriptor | None) -> DisplayMode:
        if descriptor is not None and descriptor.display_mode is not None:
            return descriptor.display_mode
        return self._default_mode

    def _urltype(self, descriptor: LayerDescriptor | None) -> UrlType:
        if descriptor is not None and descriptor.urltype is not None:
            return descriptor.urltype
        return self._default_urltype

    def _urlbase(self, descriptor: LayerDescriptor | None) -> str | None:
        if descriptor is not None and descriptor.urlbase:
            return descriptor.urlbase
        return self._project.urlbase()

    def _paths(self, descriptor: LayerDescriptor | None) -> ContentPaths:
        if descriptor is not None and descriptor.paths is not None:
            return descriptor.paths.merged(self._default_paths)
        return self._default_paths
