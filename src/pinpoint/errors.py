"""Error taxonomy shared by the core modules.

Probe absence, timeouts and aborts are not exceptions: they are reported
as ProbeOutcome values by pinpoint.content.probe. Cancellation is silent.
"""

from __future__ import annotations


class PinpointError(Exception):
    """Base class for all pinpoint errors."""


class InvalidInputError(PinpointError, ValueError):
    """Malformed coordinate, location text or range input."""


class ConfigurationMissingError(PinpointError, KeyError):
    """A referenced layer id is absent from the registry."""

    def __init__(self, layer_id: str) -> None:
        super().__init__(layer_id)
        self.layer_id = layer_id

    def __str__(self) -> str:
        return f"Layer not found: {self.layer_id}"


class LayerConfigLoadError(PinpointError):
    """The layer list could not be fetched or parsed."""


class LayerLimitError(PinpointError):
    """Too many layers of one kind are active at once."""
