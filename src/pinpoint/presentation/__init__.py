"""Value presentation: property classification and value → color mapping."""

from pinpoint.presentation.classify import (
    ClassificationResult,
    PropertyType,
    ValueRange,
    calculate_property_range,
    classify_properties,
    detect_property_type,
    find_default_property,
)
from pinpoint.presentation.colors import (
    CategoryPalette,
    FeatureStyle,
    category_legend,
    colorbar,
    feature_style,
    generate_category_colors,
    map_value_to_color,
)

__all__ = [
    "CategoryPalette",
    "ClassificationResult",
    "FeatureStyle",
    "PropertyType",
    "ValueRange",
    "calculate_property_range",
    "category_legend",
    "classify_properties",
    "colorbar",
    "detect_property_type",
    "feature_style",
    "find_default_property",
    "generate_category_colors",
    "map_value_to_color",
]
