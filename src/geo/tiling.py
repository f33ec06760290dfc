"""Tile index math for the geographic (EPSG:4326) tiling scheme."""

from __future__ import annotations

import math

from domain.models import TileCoordinate
from shared.constants import (
    GEOGRAPHIC_LAT_SPAN_DEG,
    GEOGRAPHIC_LON_SPAN_DEG,
    SPLIT_FACTOR,
    WORLD_LAT_MAX_DEG,
    WORLD_LNG_HALF_SPAN_DEG,
)


def lon_lat_to_tile(lon: float, lat: float, level: int) -> tuple[int, int]:
    """
    Return (row, col) of the tile containing the point at the given level.

    Rows grow southward from the north pole, columns eastward from the
    antimeridian; each level doubles both counts.
    """
    scale = 2**level
    row = math.floor(scale * (WORLD_LAT_MAX_DEG - lat) / GEOGRAPHIC_LAT_SPAN_DEG)
    col = math.floor(scale * (WORLD_LNG_HALF_SPAN_DEG + lon) / GEOGRAPHIC_LON_SPAN_DEG)
    return row, col


def children(tile: TileCoordinate) -> list[TileCoordinate]:
    """Four children on the next level, in x-major order."""
    level = tile.level + 1
    return [
        TileCoordinate(level, tile.x * SPLIT_FACTOR + i, tile.y * SPLIT_FACTOR + j)
        for i in range(SPLIT_FACTOR)
        for j in range(SPLIT_FACTOR)
    ]


def ancestor_by_factor(tile: TileCoordinate, target_level: int) -> TileCoordinate:
    """
    Tile at target_level that a finer tile is merged into.

    The divisor is 2 * (level difference), not 2 ** (level difference): the two
    agree for one level and diverge from two levels up.
    """
    diff = tile.level - target_level
    if diff <= 0:
        return tile
    factor = SPLIT_FACTOR * diff
    return TileCoordinate(target_level, tile.x // factor, tile.y // factor)
