"""LayerRegistry — id → LayerDescriptor lookup over data_list.json.

The layer list is read once (from a local path or an http(s) URL) and kept
in a single in-memory cache; later lookups never touch the source again
unless reload() is called.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable

import httpx
from loguru import logger

from pinpoint.errors import ConfigurationMissingError, LayerConfigLoadError
from pinpoint.layers.layer import LayerDescriptor, LayerKind


class LayerRegistry:
    """Cached registry of layer descriptors."""

    def __init__(
        self,
        source: str | Path | None = None,
        default_layer_id: str | None = None,
        user_agent: str = "PINPOINT",
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._source = str(source) if source is not None else None
        self._default_layer_id = default_layer_id
        self._user_agent = user_agent
        self._transport = transport
        self._cache: dict[str, LayerDescriptor] | None = None

    @classmethod
    def from_descriptors(
        cls,
        descriptors: Iterable[LayerDescriptor],
        default_layer_id: str | None = None,
    ) -> "LayerRegistry":
        """Build a registry from already-constructed descriptors."""
        registry = cls(default_layer_id=default_layer_id)
        registry._cache = {d.layer_id: d for d in descriptors}
        return registry

    @classmethod
    def from_config(cls, config: dict[str, Any], default_layer_id: str | None = None) -> "LayerRegistry":
        """Build a registry from a parsed data_list.json document."""
        registry = cls(default_layer_id=default_layer_id)
        registry._cache = _index_layers(config)
        return registry

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> dict[str, LayerDescriptor]:
        """Read the layer list once and cache it.

        Raises:
            LayerConfigLoadError: If the source cannot be read or parsed.
        """
        if self._cache is not None:
            return self._cache
        if self._source is None:
            raise LayerConfigLoadError("No layer list source configured")

        try:
            document = self._read_source(self._source)
            self._cache = _index_layers(document)
        except (OSError, httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            raise LayerConfigLoadError(f"Failed to load layer list {self._source}: {e}") from e

        logger.info(f"Layer list loaded: {len(self._cache)} layers from {self._source}")
        return self._cache

    def reload(self) -> dict[str, LayerDescriptor]:
        """Drop the cache and read the source again."""
        self._cache = None
        return self.load()

    def _read_source(self, source: str) -> Any:
        if source.startswith(("http://", "https://")):
            with httpx.Client(timeout=30.0, transport=self._transport) as client:
                resp = client.get(source, headers={"User-Agent": self._user_agent})
                resp.raise_for_status()
            return resp.json()
        return json.loads(Path(source).read_text(encoding="utf-8"))

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, layer_id: str | None = None) -> LayerDescriptor | None:
        """Descriptor for *layer_id* (or the default layer).

        A missing id is not fatal: a warning is logged and None returned.
        """
        selected = layer_id or self._default_layer_id
        descriptor = self.load().get(selected) if selected else None
        if descriptor is None:
            logger.warning(f"Layer {selected} not found in layer list")
        return descriptor

    def require(self, layer_id: str | None = None) -> LayerDescriptor:
        """Like get(), but raise ConfigurationMissingError when absent."""
        selected = layer_id or self._default_layer_id or ""
        descriptor = self.load().get(selected)
        if descriptor is None:
            raise ConfigurationMissingError(selected)
        return descriptor

    def __contains__(self, layer_id: object) -> bool:
        return layer_id in self.load()

    def __len__(self) -> int:
        return len(self.load())

    @property
    def default_layer_id(self) -> str | None:
        return self._default_layer_id

    def all(self) -> list[LayerDescriptor]:
        """Every descriptor, in file order."""
        return list(self.load().values())

    def by_kind(self, kind: LayerKind) -> list[LayerDescriptor]:
        return [d for d in self.load().values() if d.kind is kind]


def _index_layers(document: Any) -> dict[str, LayerDescriptor]:
    if isinstance(document, dict):
        entries = document["layers"]
    elif isinstance(document, list):
        entries = document
    else:
        raise ValueError("Layer list must be an object with 'layers' or an array")

    index: dict[str, LayerDescriptor] = {}
    for raw in entries:
        descriptor = LayerDescriptor.from_config(raw)
        if descriptor.layer_id in index:
            logger.warning(f"Duplicate layer id in layer list: {descriptor.layer_id}")
        index[descriptor.layer_id] = descriptor
    return index
