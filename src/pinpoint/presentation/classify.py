"""Numeric vs categorical classification of vector layer properties.

Type detection only looks at a bounded prefix of the features (the sample
size), so a property whose first N values are numeric is classified
numeric even if a later value is not. Ranges and category lists scan the
whole collection.
"""

from __future__ import annotations

import math
import re
from collections.abc import Hashable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from pinpoint.codec.location import format_number

if TYPE_CHECKING:
    from pinpoint.layers.layer import LayerFeature

DEFAULT_SAMPLE_SIZE = 20
RANGE_WIDEN = 0.1

_FLOAT_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


class PropertyType(str, Enum):
    NUMERIC = "numeric"
    CATEGORICAL = "categorical"


@dataclass(frozen=True)
class ClassificationResult:
    """Outcome of type detection.

    Attributes:
        property_type: NUMERIC or CATEGORICAL.
        categories: Distinct non-numeric values seen in the sample, in
            first-seen order. Empty for numeric properties.
    """

    property_type: PropertyType
    categories: tuple = ()

    @property
    def is_numeric(self) -> bool:
        return self.property_type is PropertyType.NUMERIC


@dataclass
class ValueRange:
    """Display range for a numeric property; original_* keep the data extent."""

    min: float
    max: float
    original_min: float = field(default=0.0)
    original_max: float = field(default=1.0)

    def reset(self) -> None:
        self.min = self.original_min
        self.max = self.original_max


def parse_float(value: Any) -> float | None:
    """Lenient numeric parse: numbers, or the leading number of a string.

    Booleans, None, NaN and infinities are not numbers here.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        match = _FLOAT_PREFIX.match(value)
        if not match:
            return None
        number = float(match.group(1))
    else:
        return None
    return number if math.isfinite(number) else None


def is_lossless_numeric(value: Any) -> bool:
    """True for numbers and for strings that re-render to the same text."""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    if isinstance(value, str):
        number = parse_float(value)
        return number is not None and format_number(number) == value
    return False


def category_key(value: Any) -> Hashable:
    """Dict key for a category value; unhashable values use their text."""
    return value if isinstance(value, Hashable) else str(value)


def _sample(features: Sequence[LayerFeature], sample_size: int) -> Sequence[LayerFeature]:
    return features[: max(0, sample_size)]


def detect_property_type(
    features: Sequence[LayerFeature],
    property_name: str,
    sample_size: int = DEFAULT_SAMPLE_SIZE,
) -> ClassificationResult:
    """Classify *property_name* from the first *sample_size* features.

    Features without the property (or with a None value) are skipped.
    """
    categories: dict[Hashable, None] = {}
    numeric = True

    for feature in _sample(features, sample_size):
        value = (feature.properties or {}).get(property_name)
        if value is None:
            continue
        if not is_lossless_numeric(value):
            categories[category_key(value)] = None
            numeric = False

    if numeric:
        return ClassificationResult(PropertyType.NUMERIC)
    return ClassificationResult(PropertyType.CATEGORICAL, tuple(categories))


def property_names(features: Iterable[LayerFeature]) -> list[str]:
    """All property names across *features*, in first-seen order."""
    names: dict[str, None] = {}
    for feature in features:
        for name in feature.properties or {}:
            names[name] = None
    return list(names)


def classify_properties(
    features: Sequence[LayerFeature],
    sample_size: int = DEFAULT_SAMPLE_SIZE,
) -> tuple[list[str], list[str]]:
    """Split every property into (numeric, categorical) name lists."""
    numeric: list[str] = []
    categorical: list[str] = []
    for name in property_names(features):
        if detect_property_type(features, name, sample_size).is_numeric:
            numeric.append(name)
        else:
            categorical.append(name)
    return numeric, categorical


def extract_numeric_properties(
    features: Sequence[LayerFeature],
    sample_size: int = DEFAULT_SAMPLE_SIZE,
) -> list[str]:
    """Properties whose first sampled value parses as a number."""
    checked: dict[str, bool] = {}
    for feature in _sample(features, sample_size):
        for name, value in (feature.properties or {}).items():
            if name not in checked:
                checked[name] = parse_float(value) is not None
    return [name for name, is_numeric in checked.items() if is_numeric]


def find_default_property(
    features: Sequence[LayerFeature],
    sample_size: int = DEFAULT_SAMPLE_SIZE,
) -> str | None:
    numeric = extract_numeric_properties(features, sample_size)
    return numeric[0] if numeric else None


def calculate_property_range(
    features: Iterable[LayerFeature],
    property_name: str,
) -> ValueRange:
    """Min/max of a property over all features.

    Unparseable values are ignored. With no valid value the range is
    [0, 1]; a degenerate range is widened by RANGE_WIDEN on both sides.
    """
    low = math.inf
    high = -math.inf
    for feature in features:
        number = parse_float((feature.properties or {}).get(property_name))
        if number is None:
            continue
        low = min(low, number)
        high = max(high, number)

    if not math.isfinite(low) or not math.isfinite(high):
        low, high = 0.0, 1.0
    if low == high:
        low, high = low - RANGE_WIDEN, high + RANGE_WIDEN

    return ValueRange(min=low, max=high, original_min=low, original_max=high)


def extract_categories(features: Iterable[LayerFeature], property_name: str) -> list:
    """Distinct values of a property over all features, in first-seen order."""
    categories: dict[Hashable, None] = {}
    for feature in features:
        value = (feature.properties or {}).get(property_name)
        if value is not None:
            categories[category_key(value)] = None
    return list(categories)
