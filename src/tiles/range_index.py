from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from domain.models import ROOT_TILE_RANGE, TileCoordinate, TileRange
from geo.tiling import lon_lat_to_tile

if TYPE_CHECKING:
    from domain.models import Rectangle

logger = logging.getLogger(__name__)


class TileRangeIndex:
    """Per-level tile rectangle covering the data extent.

    Level 0 always holds the single synthetic root tile so that ancestor
    lookups at the coarsest level never miss.
    """

    def __init__(self, rectangle: Rectangle, minimum_level: int, maximum_level: int):
        self.rectangle = rectangle
        self.minimum_level = minimum_level
        self.maximum_level = maximum_level
        self._ranges: dict[int, TileRange] = {}

        west, south = rectangle.south_west
        east, north = rectangle.north_east
        for z in range(minimum_level, maximum_level + 1):
            sw_row, sw_col = lon_lat_to_tile(west, south, z)
            ne_row, ne_col = lon_lat_to_tile(east, north, z)
            self._ranges[z] = TileRange(
                min_row=min(sw_row, ne_row),
                max_row=max(sw_row, ne_row),
                min_col=min(sw_col, ne_col),
                max_col=max(sw_col, ne_col),
            )
        self._ranges[0] = ROOT_TILE_RANGE
        logger.debug(
            'Tile ranges computed for levels %d..%d over %s',
            minimum_level,
            maximum_level,
            rectangle,
        )

    @property
    def levels(self) -> list[int]:
        return sorted(self._ranges)

    def range_for(self, level: int) -> TileRange | None:
        return self._ranges.get(level)

    def is_in_range(self, tile: TileCoordinate) -> bool:
        tile_range = self._ranges.get(tile.level)
        if tile_range is None:
            return False
        return tile_range.contains(tile)

    def __len__(self) -> int:
        return len(self._ranges)
