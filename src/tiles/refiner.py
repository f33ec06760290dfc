from __future__ import annotations

from typing import TYPE_CHECKING

from geo.tiling import ancestor_by_factor, children

if TYPE_CHECKING:
    from collections.abc import Iterable

    from domain.models import TileCoordinate


def refine(tiles: Iterable[TileCoordinate], target_level: int) -> list[TileCoordinate]:
    """
    Normalize a mixed-level tile list towards target_level.

    Tiles one level coarser than the target are split into their four
    children, finer tiles are merged into their target-level ancestor, and
    anything coarser still is passed through untouched. Order of first
    appearance is kept and every tile is emitted at most once.
    """
    out: list[TileCoordinate] = []
    seen: set[TileCoordinate] = set()

    def emit(tile: TileCoordinate) -> None:
        if tile not in seen:
            seen.add(tile)
            out.append(tile)

    for tile in tiles:
        if tile.level < target_level - 1:
            emit(tile)
        elif tile.level == target_level - 1:
            for child in children(tile):
                emit(child)
        else:
            emit(ancestor_by_factor(tile, target_level))
    return out


class LODRefiner:
    """Refinement bound to a fixed target level (the upper level limit)."""

    def __init__(self, target_level: int):
        self.target_level = target_level

    def refine(self, tiles: Iterable[TileCoordinate]) -> list[TileCoordinate]:
        return refine(tiles, self.target_level)
