"""Parse a marker CSV (name, lat, lon, optional id) into markers.

Header matching is case-insensitive and accepts the Japanese column names
used by the original data sets. Rows with unparseable coordinates are
skipped.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass

from loguru import logger

_NAME_HEADERS = ("name", "地点名", "名称", "地名", "拠点名")
_LAT_HEADERS = ("lat", "緯度", "latitude")
_LON_HEADERS = ("lon", "lng", "経度", "longitude")
_ID_HEADERS = ("id", "identifier")


@dataclass(frozen=True)
class Marker:
    name: str
    lat: float
    lon: float
    identifier: str | None = None


def _find_column(header_map: dict[str, str], candidates: tuple[str, ...]) -> str | None:
    for candidate in candidates:
        if candidate in header_map:
            return header_map[candidate]
    return None


def parse_marker_csv(csv_string: str) -> list[Marker]:
    """Parse CSV text into a list of markers.

    Returns:
        Markers in row order. Empty when the lat/lon columns are missing.
    """
    reader = csv.DictReader(io.StringIO(csv_string))
    if not reader.fieldnames:
        return []

    header_map = {h.strip().lower(): h for h in reader.fieldnames if h}
    lat_col = _find_column(header_map, _LAT_HEADERS)
    lon_col = _find_column(header_map, _LON_HEADERS)
    name_col = _find_column(header_map, _NAME_HEADERS)
    id_col = _find_column(header_map, _ID_HEADERS)

    if not lat_col or not lon_col:
        logger.warning("Marker CSV has no lat/lon columns")
        return []

    markers: list[Marker] = []
    for row in reader:
        try:
            lat = float(row[lat_col])
            lon = float(row[lon_col])
        except (ValueError, TypeError, KeyError):
            continue
        if lat != lat or lon != lon:  # NaN
            continue

        name = (row.get(name_col) or "").strip() if name_col else ""
        if not name:
            name = f"Loc({lat:.4f}, {lon:.4f})"
        identifier = (row.get(id_col) or "").strip() if id_col else ""

        markers.append(Marker(name=name, lat=lat, lon=lon, identifier=identifier or None))

    return markers
