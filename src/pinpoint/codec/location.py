"""Location codes for a clicked point.

Pure-function library:
  - Japan standard mesh codes (orders 1, 1.5, 2, 2.5, 3, 4)
  - World grid keys at a configurable minute resolution
  - Global 10-minute grid indices
  - Coordinate text parsing

Zero external dependencies: only stdlib (math, numbers, re).
"""

from __future__ import annotations

import math
import numbers
import re
from dataclasses import dataclass

from pinpoint.errors import InvalidInputError

MESH_ORDERS = (1, 1.5, 2, 2.5, 3, 4)

# Mesh codes are only defined over Japan
_MESH_LAT_RANGE = (20.0, 46.0)
_MESH_LON_RANGE = (122.0, 154.0)

# Global 10-minute index grid (1/6 degree cells)
_GRID_SIZE_DEG = 1 / 6
_GRID_LAT_CELLS = 1080
_GRID_LON_CELLS = 2160


@dataclass(frozen=True)
class Coordinate:
    """A validated WGS84 point."""

    lat: float
    lon: float

    @classmethod
    def validated(cls, lat: object, lon: object) -> "Coordinate":
        """Build a Coordinate, rejecting non-numeric or out-of-range input.

        Raises:
            InvalidInputError: If either value is unusable.
        """
        if not _is_number(lat) or not _is_number(lon):
            raise InvalidInputError(f"Invalid coordinate: lat={lat!r}, lon={lon!r}")
        if not is_valid_latitude(lat) or not is_valid_longitude(lon):
            raise InvalidInputError(f"Coordinate out of range: lat={lat}, lon={lon}")
        return cls(float(lat), float(lon))


def _is_number(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return False
    return not math.isnan(value)


def is_valid_latitude(lat: float) -> bool:
    return _is_number(lat) and -90 <= lat <= 90


def is_valid_longitude(lon: float) -> bool:
    return _is_number(lon) and -180 <= lon <= 180


def format_number(value: float) -> str:
    """Render a float the way the map front end prints numbers ("140", "35.75")."""
    if value == 0:
        return "0"
    if float(value).is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(float(value))


def _round_half_up(value: float, decimals: int) -> float:
    factor = 10 ** decimals
    return math.floor(value * factor + 0.5) / factor


# ===========================================================================
# Mesh codes
# ===========================================================================

def mesh_code(lat: float, lon: float, order: float = 3) -> int | str | None:
    """Convert lat/lon to a Japan standard mesh code.

    Latitude is subdivided in minutes (40' primary, 5' secondary, 30"
    tertiary, 3" quaternary); longitude in degrees (1 deg primary, 1/8
    secondary, 1/80 tertiary, 1/800 quaternary). Digit pairs are
    interleaved lat/lon in that order.

    Args:
        lat: Latitude in degrees.
        lon: Longitude in degrees.
        order: One of 1, 1.5, 2, 2.5, 3, 4.

    Returns:
        The code as an int; order 1.5 returns "PPPP_ab" (primary band plus
        the 10-minute / quarter-degree digits). None outside Japan, for
        non-numeric input, or when a component leaves its digit range.

    Raises:
        ValueError: If *order* is not a supported mesh order.
    """
    if order not in MESH_ORDERS:
        raise ValueError(f"Unsupported mesh order: {order}")
    if not _is_number(lat) or not _is_number(lon):
        return None
    if not (_MESH_LAT_RANGE[0] <= lat <= _MESH_LAT_RANGE[1]):
        return None
    if not (_MESH_LON_RANGE[0] <= lon <= _MESH_LON_RANGE[1]):
        return None

    # Latitude, in minutes
    lat_in_min = lat * 60
    code1_lat = math.floor(lat_in_min / 40)
    lat_rest = lat_in_min - code1_lat * 40
    code2_lat = math.floor(lat_rest / 5)
    code15_lat = math.floor(lat_rest / 10)
    lat_rest = lat_rest - code2_lat * 5
    code3_lat = math.floor(lat_rest / (5 / 10))
    lat_rest = lat_rest - (code3_lat * 5) / 10
    code4_lat = math.floor(lat_rest / (5 / 100))

    # Longitude, in degrees
    code1_lon = math.floor(lon) - 100
    lon_rest = lon - math.floor(lon)
    code2_lon = math.floor(lon_rest * 8)
    code15_lon = math.floor(lon_rest * 4)
    lon_rest = lon_rest - code2_lon / 8
    code3_lon = math.floor(lon_rest / (1 / 80))
    lon_rest = lon_rest - code3_lon / 80
    code4_lon = math.floor(lon_rest / (1 / 800))

    if not (0 <= code1_lat <= 99 and 0 <= code1_lon <= 99):
        return None
    if not (0 <= code2_lat <= 7 and 0 <= code2_lon <= 7):
        return None
    if not (0 <= code3_lat <= 9 and 0 <= code3_lon <= 9):
        return None
    if order >= 4 and not (0 <= code4_lat <= 9 and 0 <= code4_lon <= 9):
        return None

    code = f"{code1_lat:02d}{code1_lon:02d}"

    if order == 1.5:
        return f"{code}_{code15_lat}{code15_lon}"

    if order >= 2:
        code += f"{code2_lat}{code2_lon}"
    if order >= 3:
        code += f"{code3_lat}{code3_lon}"
    if order >= 4:
        code += f"{code4_lat}{code4_lon}"

    if order == 2.5:
        if code3_lat <= 4 and code3_lon <= 4:
            quadrant = 1
        elif code3_lat <= 4:
            quadrant = 2
        elif code3_lon <= 4:
            quadrant = 3
        else:
            quadrant = 4
        code += str(quadrant)

    result = int(code)
    if order == 3 and not (10000000 <= result <= 99999999):
        return None
    return result


# ===========================================================================
# World grid keys
# ===========================================================================

def grid_key(lon: float, lat: float, minute: float = 10) -> str | None:
    """Convert lon/lat to a world grid key "{lon}_{lat}".

    Each axis keeps its integer degree (truncated toward zero); the
    remainder is bucketed down to *minute*-minute cells and replaced by
    the cell midpoint. Both axes are rounded to 2 decimals, which keeps
    the key stable when it is fed back in.

    Returns:
        The key, or None for non-numeric or out-of-range coordinates.

    Raises:
        ValueError: If *minute* is not in (0, 60].
    """
    if not (0 < minute <= 60):
        raise ValueError(f"Grid minute size must be in (0, 60]: {minute}")
    if not is_valid_longitude(lon) or not is_valid_latitude(lat):
        return None

    x = _grid_axis(lon, minute, 180)
    y = _grid_axis(lat, minute, 90)
    return f"{format_number(x)}_{format_number(y)}"


def _grid_axis(value: float, minute: float, limit: int) -> float:
    degree = math.trunc(value)
    remainder_min = abs(value - degree) * 60
    bucket = math.floor(remainder_min / minute)
    if abs(value) >= limit:
        # The edge belongs to the last cell inside the range
        degree = int(math.copysign(limit - 1, value))
        bucket = math.ceil(60 / minute) - 1
    bucket_center_min = bucket * minute + minute / 2
    offset = bucket_center_min / 60
    combined = degree + offset if value >= 0 else degree - offset
    return _round_half_up(combined, 2)


def parse_grid_key(key: str) -> tuple[float, float] | None:
    """Split a grid key back into (lon, lat)."""
    parts = key.split("_")
    if len(parts) != 2:
        return None
    try:
        return float(parts[0]), float(parts[1])
    except ValueError:
        return None


def grid_indices(lat: float, lon: float) -> dict[str, int | str]:
    """Index of the global 10-minute cell containing lat/lon.

    Indices are clamped to the grid (lat 0..1079, lon 0..2159).
    """
    lat_index = math.floor((lat + 90) / _GRID_SIZE_DEG)
    lon_index = math.floor((lon + 180) / _GRID_SIZE_DEG)
    lat_index = max(0, min(_GRID_LAT_CELLS - 1, lat_index))
    lon_index = max(0, min(_GRID_LON_CELLS - 1, lon_index))
    return {"lat": lat_index, "lon": lon_index, "grid_id": f"{lat_index}_{lon_index}"}


def grid_center(lat_index: int, lon_index: int) -> tuple[float, float]:
    """Center (lat, lon) of a global 10-minute cell."""
    center_lat = lat_index * _GRID_SIZE_DEG - 90 + _GRID_SIZE_DEG / 2
    center_lon = lon_index * _GRID_SIZE_DEG - 180 + _GRID_SIZE_DEG / 2
    return center_lat, center_lon


# ===========================================================================
# Coordinate text
# ===========================================================================

_COORD_PATTERNS = [
    # "35.6895,139.69171" or "35.6895, 139.69171"
    re.compile(r"^(-?\d+\.?\d*)\s*,\s*(-?\d+\.?\d*)$"),
    # "35.6895 139.69171"
    re.compile(r"^(-?\d+\.?\d*)\s+(-?\d+\.?\d*)$"),
    # compact integers "30 120"
    re.compile(r"^(-?\d{1,2})\s+(-?\d{2,3})$"),
]


def parse_coordinates(text: str | None) -> Coordinate | None:
    """Parse "lat,lon", "lat lon" or a compact integer pair.

    Returns:
        The validated Coordinate, or None if the text does not match or
        the values are out of range.
    """
    if not text or not isinstance(text, str):
        return None

    cleaned = text.strip()
    for pattern in _COORD_PATTERNS:
        match = pattern.match(cleaned)
        if not match:
            continue
        lat = float(match.group(1))
        lon = float(match.group(2))
        if is_valid_latitude(lat) and is_valid_longitude(lon):
            return Coordinate(lat, lon)
    return None


def require_coordinates(text: str | None) -> Coordinate:
    """Like parse_coordinates, but raise on failure.

    Raises:
        InvalidInputError: If the text is not a valid coordinate pair.
    """
    coordinate = parse_coordinates(text)
    if coordinate is None:
        raise InvalidInputError(f"Unparsable location text: {text!r}")
    return coordinate
