from pinpoint.codec.location import (
    Coordinate,
    grid_center,
    grid_indices,
    grid_key,
    mesh_code,
    parse_coordinates,
    parse_grid_key,
    require_coordinates,
)

__all__ = [
    "Coordinate",
    "grid_center",
    "grid_indices",
    "grid_key",
    "mesh_code",
    "parse_coordinates",
    "parse_grid_key",
    "require_coordinates",
]
