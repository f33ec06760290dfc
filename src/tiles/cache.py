"""Render object cache keyed by tile identity.

This module provides RenderObjectCache, which owns the renderer handles of
materialized tiles and releases them when their tiles leave the view.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from domain.models import TileCoordinate
    from tiles.host import Renderer

logger = logging.getLogger(__name__)


class RenderObjectCache:
    """Mapping tile -> renderable handle, reconciled against the active tiles.

    Entries are never updated in place: a tile is inserted once after its
    fetch succeeds and removed when it drops out of the active key set or
    when the cache is cleared.

    Usage:
        cache = RenderObjectCache(renderer)
        cache.insert(tile, handle)
        evicted = cache.reconcile(active_keys)
        cache.clear()
    """

    def __init__(self, renderer: Renderer) -> None:
        self.renderer = renderer
        self._handles: dict[TileCoordinate, Any] = {}

    def __contains__(self, tile: object) -> bool:
        return tile in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    def __iter__(self) -> Iterator[TileCoordinate]:
        return iter(self._handles)

    def keys(self) -> set[TileCoordinate]:
        return set(self._handles)

    def get(self, tile: TileCoordinate) -> Any | None:
        return self._handles.get(tile)

    def insert(self, tile: TileCoordinate, handle: Any) -> None:
        """Store a freshly built handle.

        A handle already cached for the tile is released first so the
        renderer never holds two objects for one tile.
        """
        previous = self._handles.pop(tile, None)
        if previous is not None:
            self._release(tile, previous)
        self._handles[tile] = handle

    def _release(self, tile: TileCoordinate, handle: Any) -> bool:
        try:
            removed = self.renderer.remove(handle)
        except Exception:
            logger.exception('Renderer failed to release handle of tile %s', tile)
            return False
        if not removed:
            logger.warning('Renderer did not release handle of tile %s', tile)
        return bool(removed)

    def reconcile(self, active_keys: Iterable[TileCoordinate]) -> list[TileCoordinate]:
        """
        Evict every entry whose tile is not in active_keys.

        An entry the renderer refuses to release stays cached and is retried
        on the next reconciliation.

        Returns:
            Tiles actually evicted.
        """
        active = set(active_keys)
        evicted: list[TileCoordinate] = []
        for tile in [t for t in self._handles if t not in active]:
            if self._release(tile, self._handles[tile]):
                del self._handles[tile]
                evicted.append(tile)
        if evicted:
            logger.debug('Evicted %d tile(s): %s', len(evicted), ', '.join(map(str, evicted)))
        return evicted

    def clear(self) -> int:
        """Release every handle (teardown). Returns the number of entries dropped."""
        count = len(self._handles)
        for tile, handle in self._handles.items():
            self._release(tile, handle)
        self._handles.clear()
        return count
