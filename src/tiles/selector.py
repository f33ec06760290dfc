from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from domain.models import TileCoordinate
from shared.constants import MAX_LEVEL_SPREAD

if TYPE_CHECKING:
    from collections.abc import Iterable

    from tiles.range_index import TileRangeIndex

logger = logging.getLogger(__name__)


class ViewportTileSelector:
    """Reduce the renderer's visible tiles to the ones worth fetching."""

    def __init__(self, range_index: TileRangeIndex, lower_level_limit: int):
        self.range_index = range_index
        self.lower_level_limit = lower_level_limit

    def select(self, visible_tiles: Iterable[Any]) -> list[TileCoordinate]:
        """
        Filter the visible tiles down to the ones to fetch.

        - nothing when the finest visible level is below lower_level_limit;
        - keeps at most MAX_LEVEL_SPREAD + 1 levels below the finest one;
        - orders finest first (stable within a level);
        - drops tiles outside the data extent.
        """
        tiles = [TileCoordinate.of(t) for t in visible_tiles]
        if not tiles:
            return []

        levels = [t.level for t in tiles]
        min_level = min(levels)
        max_level = max(levels)

        if max_level < self.lower_level_limit:
            logger.debug(
                'Finest visible level %d below limit %d, nothing to render',
                max_level,
                self.lower_level_limit,
            )
            return []

        if max_level - min_level > MAX_LEVEL_SPREAD:
            tiles = [t for t in tiles if t.level >= max_level - MAX_LEVEL_SPREAD]

        tiles.sort(key=lambda t: -t.level)
        return [t for t in tiles if self.range_index.is_in_range(t)]
