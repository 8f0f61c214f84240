"""File parsers that turn collaborator-supplied files into layer data."""

from pinpoint.layers.parsers.csv_import import Marker, parse_marker_csv
from pinpoint.layers.parsers.geojson import parse_geojson

__all__ = ["Marker", "parse_geojson", "parse_marker_csv"]
