"""Value → color mapping for raster samples and vector features.

Numeric values go through a named matplotlib colormap; categorical values
get a preset palette (few categories) or an evenly spaced hue wheel (many
categories). Every function here is pure: same inputs, same colors.
"""

from __future__ import annotations

import colorsys
import math
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING, Any, Mapping, Sequence

import matplotlib
import numpy as np
from loguru import logger

from pinpoint.presentation.classify import PropertyType, ValueRange, category_key, parse_float

if TYPE_CHECKING:
    from pinpoint.layers.state import LayerRuntimeState

RGB = tuple[int, int, int]

FALLBACK_COLORMAP = "viridis"
NEUTRAL_FILL = "#cccccc"
NEUTRAL_FILL_OPACITY = 0.4
OUTLINE_COLOR = "#666666"
FILL_OPACITY_SCALE = 0.7

DEFAULT_PALETTE = "colorful"
AUTO_PALETTE = "auto"
MAX_PRESET_CATEGORIES = 12
AUTO_SATURATION = 0.70
AUTO_LIGHTNESS = 0.60

PRESET_PALETTES: dict[str, tuple[str, ...]] = {
    "colorful": (
        "#e41a1c", "#eecc00", "#4daf4a", "#984ea3", "#ff7f00", "#ffff33",
        "#a65628", "#f781bf", "#999999", "#66c2a5", "#fc8d62", "#8da0cb",
    ),
    "pastel": (
        "#8dd3c7", "#ffffb3", "#bebada", "#fb8072", "#80b1d3", "#fdb462",
        "#b3de69", "#fccde5", "#d9d9d9", "#bc80bd", "#ccebc5", "#ffed6f",
    ),
    "dark": (
        "#222222", "#AAAAAA", "#7570b3", "#e7298a", "#66a61e", "#e6ab02",
        "#a6761d", "#666666", "#3288bd", "#5e4fa2", "#66c2a5", "#5ab4ac",
    ),
}


# ---------------------------------------------------------------------------
# Numeric colormaps
# ---------------------------------------------------------------------------

@lru_cache(maxsize=64)
def _get_colormap(name: str):
    try:
        return matplotlib.colormaps[name]
    except KeyError:
        logger.warning(f"Unknown colormap '{name}', using {FALLBACK_COLORMAP}")
        return matplotlib.colormaps[FALLBACK_COLORMAP]


def _to_rgb(rgba: Sequence[float]) -> RGB:
    return (
        int(round(rgba[0] * 255)),
        int(round(rgba[1] * 255)),
        int(round(rgba[2] * 255)),
    )


def evaluate_colormap(name: str, position: float) -> RGB:
    """Color of colormap *name* at *position* in [0, 1] (clamped)."""
    position = min(1.0, max(0.0, float(position)))
    return _to_rgb(_get_colormap(name)(position))


def normalize(value: float, value_range: ValueRange) -> float:
    """(value - min) / (max - min), clamped to [0, 1]."""
    span = value_range.max - value_range.min
    if span == 0:
        return 0.0
    return min(1.0, max(0.0, (value - value_range.min) / span))


def map_value_to_color(
    value: float,
    value_range: ValueRange,
    colormap: str,
    reverse: bool = False,
) -> RGB:
    """Color for a numeric value.

    Values outside the range take the colormap endpoint they fall past,
    after the reverse flag is applied.
    """
    position = normalize(value, value_range)
    if reverse:
        position = 1.0 - position
    return evaluate_colormap(colormap, position)


def colorbar(colormap: str, reverse: bool = False, steps: int = 200) -> list[RGB]:
    """Evenly sampled colors from the low to the high end of the range."""
    positions = np.linspace(0.0, 1.0, max(2, steps))
    if reverse:
        positions = 1.0 - positions
    rgba = _get_colormap(colormap)(positions)
    return [_to_rgb(row) for row in rgba]


def rgb_to_css(rgb: RGB) -> str:
    return f"rgb({rgb[0]}, {rgb[1]}, {rgb[2]})"


def rgb_to_hex(rgb: RGB) -> str:
    return "#{:02x}{:02x}{:02x}".format(*rgb)


# ---------------------------------------------------------------------------
# Categorical palettes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CategoryPalette:
    """Category → color assignment.

    Attributes:
        kind: "preset" or "generated".
        palette_name: Preset used, or "auto" for generated hues.
        colors: Category value → hex color, in first-seen category order.
    """

    kind: str
    palette_name: str
    colors: dict


def _hue_color(index: int, count: int) -> str:
    hue = math.floor(index / count * 360)
    r, g, b = colorsys.hls_to_rgb(hue / 360, AUTO_LIGHTNESS, AUTO_SATURATION)
    return rgb_to_hex(_to_rgb((r, g, b)))


def generate_category_colors(
    categories: Sequence,
    palette_name: str | None = DEFAULT_PALETTE,
    max_preset: int = MAX_PRESET_CATEGORIES,
) -> CategoryPalette:
    """Assign colors to categories.

    Up to *max_preset* categories cycle through a preset palette (unknown
    names fall back to "colorful"); beyond that, hues are spread evenly
    over 360 degrees and the requested palette is ignored.
    """
    count = len(categories)
    if count <= max_preset:
        name = palette_name if palette_name in PRESET_PALETTES else DEFAULT_PALETTE
        palette = PRESET_PALETTES[name]
        colors = {category: palette[i % len(palette)] for i, category in enumerate(categories)}
        return CategoryPalette(kind="preset", palette_name=name, colors=colors)

    colors = {category: _hue_color(i, count) for i, category in enumerate(categories)}
    return CategoryPalette(kind="generated", palette_name=AUTO_PALETTE, colors=colors)


def available_palettes(category_count: int, max_preset: int = MAX_PRESET_CATEGORIES) -> list[str]:
    """Palette choices a settings panel should offer."""
    if category_count > max_preset:
        return [AUTO_PALETTE]
    return list(PRESET_PALETTES)


def category_legend(colors: Mapping[Any, str]) -> list[tuple[str, str]]:
    """(label, color) legend rows sorted by label."""
    return sorted(((str(category), color) for category, color in colors.items()), key=lambda row: row[0])


# ---------------------------------------------------------------------------
# Feature styles
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FeatureStyle:
    fill_color: str
    fill_opacity: float
    opacity: float
    color: str = OUTLINE_COLOR
    weight: int = 1

    def to_dict(self) -> dict:
        """Leaflet path options."""
        return {
            "fillColor": self.fill_color,
            "fillOpacity": self.fill_opacity,
            "opacity": self.opacity,
            "color": self.color,
            "weight": self.weight,
        }


def is_missing(value: Any) -> bool:
    """None and NaN render as "no data"."""
    return value is None or (isinstance(value, float) and math.isnan(value))


def neutral_style(opacity: float) -> FeatureStyle:
    return FeatureStyle(fill_color=NEUTRAL_FILL, fill_opacity=NEUTRAL_FILL_OPACITY, opacity=opacity)


def feature_style(value: Any, state: "LayerRuntimeState") -> FeatureStyle:
    """Style for one feature value under a layer's current settings."""
    opacity = state.opacity
    if is_missing(value):
        return neutral_style(opacity)

    if state.classification.property_type is PropertyType.CATEGORICAL:
        fill = state.category_colors.get(category_key(value), NEUTRAL_FILL)
        return FeatureStyle(fill_color=fill, fill_opacity=FILL_OPACITY_SCALE * opacity, opacity=opacity)

    number = parse_float(value)
    if number is None:
        return neutral_style(opacity)

    rgb = map_value_to_color(number, state.value_range, state.colormap, state.reverse)
    return FeatureStyle(fill_color=rgb_to_css(rgb), fill_opacity=FILL_OPACITY_SCALE * opacity, opacity=opacity)
