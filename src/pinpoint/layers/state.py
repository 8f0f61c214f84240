"""LayerStateStore — runtime display state of the active layers.

Holds, per active layer id, the classification, color configuration,
value range and opacity, plus the activation order that drives content
priority. State is created on activation and destroyed on deactivation;
setters are the only way to mutate it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from loguru import logger

from pinpoint.errors import ConfigurationMissingError, InvalidInputError, LayerLimitError
from pinpoint.layers.layer import FeatureLayer, LayerDescriptor, LayerKind
from pinpoint.presentation.classify import (
    ClassificationResult,
    PropertyType,
    ValueRange,
    calculate_property_range,
    classify_properties,
    detect_property_type,
    extract_categories,
    find_default_property,
    parse_float,
)
from pinpoint.presentation.colors import (
    PRESET_PALETTES,
    FeatureStyle,
    feature_style,
    generate_category_colors,
)

if TYPE_CHECKING:
    from pinpoint.config import Settings
    from pinpoint.layers.registry import LayerRegistry


@dataclass
class LayerRuntimeState:
    """Display state of one active layer.

    Attributes:
        layer_id: Registry id of the layer.
        kind: RASTER or VECTOR.
        classification: NUMERIC or CATEGORICAL treatment of the property.
        property_field: Feature property shown (vector layers only).
        value_range: Current and original numeric range.
        colormap: Named colormap for numeric values.
        palette_name: Palette used for categorical values.
        category_colors: Category → color for categorical values.
        opacity: Layer opacity (0.0 to 1.0).
        reverse: Whether the colormap runs high → low.
    """

    layer_id: str
    kind: LayerKind
    classification: ClassificationResult
    value_range: ValueRange
    colormap: str
    opacity: float
    property_field: str | None = None
    palette_name: str | None = None
    category_colors: dict = field(default_factory=dict)
    reverse: bool = False

    @property
    def is_categorical(self) -> bool:
        return self.classification.property_type is PropertyType.CATEGORICAL


class LayerStateStore:
    """Registry of active layers and their display state."""

    def __init__(self, registry: "LayerRegistry", settings: "Settings") -> None:
        self._registry = registry
        self._settings = settings
        self._states: dict[str, LayerRuntimeState] = {}
        self._order: list[str] = []
        self._features: dict[str, FeatureLayer] = {}

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    def activate(
        self,
        layer_id: str,
        features: FeatureLayer | None = None,
        raster_range: tuple[float, float] | None = None,
        property_field: str | None = None,
    ) -> LayerRuntimeState:
        """Activate a layer and build its initial display state.

        Args:
            layer_id: Registry id. Ad hoc vector imports may be unregistered.
            features: Loaded feature collection (vector layers).
            raster_range: (min, max) band statistics (raster layers).
            property_field: Property to show; defaults to the descriptor's
                propertyField, then the first numeric-looking property.

        Returns:
            The new state, or the existing one if already active. Activating
            an active layer again makes it the most recent one.

        Raises:
            ConfigurationMissingError: Unregistered id without features.
            LayerLimitError: Too many raster layers already active.
        """
        if layer_id in self._states:
            self._order.remove(layer_id)
            self._order.append(layer_id)
            return self._states[layer_id]

        descriptor = self._registry.get(layer_id)
        if descriptor is None and features is None:
            raise ConfigurationMissingError(layer_id)

        kind = descriptor.kind if descriptor else LayerKind.VECTOR
        if kind is LayerKind.RASTER:
            active_rasters = sum(1 for s in self._states.values() if s.kind is LayerKind.RASTER)
            if active_rasters >= self._settings.max_selectable_raster:
                raise LayerLimitError(
                    f"At most {self._settings.max_selectable_raster} raster layers can be active"
                )
            state = self._raster_state(layer_id, descriptor, raster_range)
        else:
            state = self._vector_state(layer_id, descriptor, features, property_field)
            if features is not None:
                self._features[layer_id] = features

        self._states[layer_id] = state
        self._order.append(layer_id)
        logger.info(
            f"Layer activated: {layer_id} ({kind.value}, {state.classification.property_type.value})"
        )
        return state

    def deactivate(self, layer_id: str) -> bool:
        """Drop a layer's state. Returns False if it was not active."""
        if layer_id not in self._states:
            return False
        del self._states[layer_id]
        self._features.pop(layer_id, None)
        self._order.remove(layer_id)
        logger.info(f"Layer deactivated: {layer_id}")
        return True

    def clear(self) -> None:
        """Deactivate every layer."""
        self._states.clear()
        self._features.clear()
        self._order.clear()

    def _colormap_for(self, descriptor: LayerDescriptor | None) -> str:
        if descriptor and descriptor.default_colormap:
            return descriptor.default_colormap
        return self._settings.default_colormap

    def _opacity_for(self, descriptor: LayerDescriptor | None) -> float:
        if descriptor and descriptor.default_opacity is not None:
            return descriptor.default_opacity
        return self._settings.default_opacity

    def _raster_state(
        self,
        layer_id: str,
        descriptor: LayerDescriptor | None,
        raster_range: tuple[float, float] | None,
    ) -> LayerRuntimeState:
        low, high = raster_range if raster_range else (0.0, 1.0)
        return LayerRuntimeState(
            layer_id=layer_id,
            kind=LayerKind.RASTER,
            classification=ClassificationResult(PropertyType.NUMERIC),
            value_range=ValueRange(min=low, max=high, original_min=low, original_max=high),
            colormap=self._colormap_for(descriptor),
            opacity=self._opacity_for(descriptor),
        )

    def _vector_state(
        self,
        layer_id: str,
        descriptor: LayerDescriptor | None,
        features: FeatureLayer | None,
        property_field: str | None,
    ) -> LayerRuntimeState:
        state = LayerRuntimeState(
            layer_id=layer_id,
            kind=LayerKind.VECTOR,
            classification=ClassificationResult(PropertyType.NUMERIC),
            value_range=ValueRange(min=0.0, max=1.0),
            colormap=self._colormap_for(descriptor),
            opacity=self._opacity_for(descriptor),
        )
        items = features.features if features else []
        sample_size = self._settings.feature_sample_size

        field_name = property_field or (descriptor.property_field if descriptor else None)
        if not field_name:
            field_name = find_default_property(items, sample_size)
        if not field_name:
            numeric, categorical = classify_properties(items, sample_size)
            field_name = (numeric or categorical or [None])[0]

        if field_name:
            self._apply_property(state, descriptor, items, field_name)
        return state

    def _apply_property(
        self,
        state: LayerRuntimeState,
        descriptor: LayerDescriptor | None,
        items: list,
        field_name: str,
    ) -> None:
        state.property_field = field_name
        state.classification = detect_property_type(items, field_name, self._settings.feature_sample_size)

        if state.is_categorical:
            requested = descriptor.default_colormap if descriptor else None
            palette = generate_category_colors(
                extract_categories(items, field_name),
                requested if requested in PRESET_PALETTES else None,
                self._settings.max_preset_categories,
            )
            state.category_colors = palette.colors
            state.palette_name = palette.palette_name
        else:
            state.value_range = calculate_property_range(items, field_name)
            state.category_colors = {}
            state.palette_name = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, layer_id: str) -> LayerRuntimeState | None:
        return self._states.get(layer_id)

    def require(self, layer_id: str) -> LayerRuntimeState:
        state = self._states.get(layer_id)
        if state is None:
            raise ConfigurationMissingError(layer_id)
        return state

    def is_active(self, layer_id: str) -> bool:
        return layer_id in self._states

    @property
    def active_ids(self) -> list[str]:
        """Active layer ids in activation order."""
        return list(self._order)

    @property
    def priority_ids(self) -> list[str]:
        """Active layer ids, most recently activated first."""
        return list(reversed(self._order))

    @property
    def current_layer_id(self) -> str:
        """Most recently activated layer, or the default layer id."""
        return self._order[-1] if self._order else self._settings.default_layer_id

    def features(self, layer_id: str) -> FeatureLayer | None:
        return self._features.get(layer_id)

    def vector_layers(self) -> dict[str, FeatureLayer]:
        """Loaded feature collections of active vector layers, in activation order."""
        return {lid: self._features[lid] for lid in self._order if lid in self._features}

    def style_for(self, layer_id: str, value: Any) -> FeatureStyle:
        return feature_style(value, self.require(layer_id))

    # ------------------------------------------------------------------
    # Setters
    # ------------------------------------------------------------------

    def set_property_field(self, layer_id: str, field_name: str) -> LayerRuntimeState:
        """Switch the shown property and re-classify it.

        The layer descriptor is fetched before the palette is generated so
        a configured preset is honored on property changes too.
        """
        state = self.require(layer_id)
        if state.kind is not LayerKind.VECTOR:
            raise InvalidInputError(f"Layer {layer_id} has no feature properties")
        descriptor = self._registry.get(layer_id)
        layer = self._features.get(layer_id)
        self._apply_property(state, descriptor, layer.features if layer else [], field_name)
        logger.debug(f"Layer {layer_id}: property -> {field_name} ({state.classification.property_type.value})")
        return state

    def set_colormap(self, layer_id: str, colormap: str) -> None:
        """Switch a layer to one of the selectable colormaps."""
        state = self.require(layer_id)
        if colormap not in self._settings.colormaps:
            raise InvalidInputError(f"Unknown colormap: {colormap!r}")
        state.colormap = colormap

    def set_palette(self, layer_id: str, palette_name: str) -> None:
        """Regenerate category colors with another preset palette."""
        state = self.require(layer_id)
        layer = self._features.get(layer_id)
        categories = (
            extract_categories(layer.features, state.property_field)
            if layer and state.property_field
            else list(state.category_colors)
        )
        palette = generate_category_colors(categories, palette_name, self._settings.max_preset_categories)
        state.category_colors = palette.colors
        state.palette_name = palette.palette_name

    def set_opacity(self, layer_id: str, opacity: float) -> None:
        value = parse_float(opacity)
        if value is None or not 0.0 <= value <= 1.0:
            raise InvalidInputError(f"Opacity must be between 0 and 1: {opacity!r}")
        self.require(layer_id).opacity = value

    def set_reverse(self, layer_id: str, reverse: bool) -> None:
        self.require(layer_id).reverse = bool(reverse)

    def apply_range(self, layer_id: str, minimum: Any, maximum: Any) -> ValueRange:
        """Set the display range.

        Raises:
            InvalidInputError: Non-numeric bounds, or minimum >= maximum.
        """
        state = self.require(layer_id)
        low = parse_float(minimum)
        high = parse_float(maximum)
        if low is None or high is None:
            raise InvalidInputError("Range bounds must be numeric")
        if low >= high:
            raise InvalidInputError("Range minimum must be smaller than maximum")
        state.value_range.min = low
        state.value_range.max = high
        return state.value_range

    def reset_range(self, layer_id: str) -> ValueRange:
        state = self.require(layer_id)
        state.value_range.reset()
        return state.value_range
