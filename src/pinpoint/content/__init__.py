"""Per-location content resolution: keys, URL templates, probes, pipeline."""

from pinpoint.content.paths import LocationKey, build_content_url, resolve_location_key
from pinpoint.content.pipeline import (
    Cancel,
    ContentOutcome,
    ContentRequest,
    ContentResolutionPipeline,
    ContentResult,
    LayerActivated,
    LayerDeactivated,
    Query,
)
from pinpoint.content.probe import ContentProber, ProbeOutcome, ProbeResult
from pinpoint.content.tokens import AbortHandle, CancelReason, LoadingToken

__all__ = [
    "AbortHandle",
    "Cancel",
    "CancelReason",
    "ContentOutcome",
    "ContentProber",
    "ContentRequest",
    "ContentResolutionPipeline",
    "ContentResult",
    "LayerActivated",
    "LayerDeactivated",
    "LoadingToken",
    "LocationKey",
    "ProbeOutcome",
    "ProbeResult",
    "Query",
    "build_content_url",
    "resolve_location_key",
]
