# trun/utils/geo.py

"""
Geospatial utility functions: great-circle distance and the tile grid.
"""

import math
from typing import Iterable, Sequence, Tuple

EARTH_RADIUS_M = 6371000.0
GRID_SIZE = 0.0002  # degrees, roughly 22 m of latitude

Coordinate = Tuple[float, float]


def haversine(a: Coordinate, b: Coordinate) -> float:
    """
    Compute the great-circle distance between two points on the Earth.

    Parameters
    ----------
    a
        (latitude, longitude) of point A, in decimal degrees.
    b
        (latitude, longitude) of point B, in decimal degrees.

    Returns
    -------
    float
        Distance between A and B in metres.
    """
    lat1, lon1 = a
    lat2, lon2 = b
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = phi2 - phi1
    d_lam = math.radians(lon2 - lon1)
    h = math.sin(d_phi/2)**2 + math.cos(phi1)*math.cos(phi2)*math.sin(d_lam/2)**2
    # clamp: rounding can push h a hair above 1 for antipodal points
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def path_distance(path: Iterable[Sequence[float]]) -> float:
    """
    Sum of the haversine legs between consecutive points of a path.
    """
    total = 0.0
    prev = None
    for point in path:
        if prev is not None:
            total += haversine((prev[0], prev[1]), (point[0], point[1]))
        prev = point
    return total


def coordinate_to_tile_key(c: Coordinate, grid_size: float = GRID_SIZE) -> str:
    """
    Map a coordinate to the key of the grid tile containing it.

    The key is ``"tileX:tileY"`` with ``tileX = floor(lng / grid_size)`` and
    ``tileY = floor(lat / grid_size)``. Floor (not truncation) keeps negative
    coordinates in the right tile: -0.00005 lands in tile -1.

    Parameters
    ----------
    c
        (latitude, longitude) in decimal degrees.
    grid_size
        Tile edge length in degrees.

    Returns
    -------
    str
        Tile key.
    """
    lat, lng = c
    tile_x = math.floor(lng / grid_size)
    tile_y = math.floor(lat / grid_size)
    return f"{tile_x}:{tile_y}"


def parse_tile_key(key: str) -> tuple[int, int]:
    """
    Split a tile key into its integer (tileX, tileY) indices.

    Raises
    ------
    ValueError
        If the key is not two integers separated by a colon.
    """
    parts = key.split(":")
    if len(parts) != 2:
        raise ValueError(f"malformed tile key: {key!r}")
    return int(parts[0]), int(parts[1])


def tile_key_to_bounds(
    key: str, grid_size: float = GRID_SIZE
) -> tuple[Coordinate, Coordinate]:
    """
    Inverse of `coordinate_to_tile_key`: the rectangle a tile covers.

    Returns
    -------
    tuple
        ((south, west), (north, east)) in decimal degrees. The south/west
        edges belong to the tile, the north/east edges to its neighbours.
    """
    tile_x, tile_y = parse_tile_key(key)
    south = tile_y * grid_size
    north = (tile_y + 1) * grid_size
    west = tile_x * grid_size
    east = (tile_x + 1) * grid_size
    return (south, west), (north, east)
