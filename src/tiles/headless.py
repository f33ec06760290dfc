"""In-process viewport host without a 3D engine.

Used by the command line driver to replay camera views, and handy for tests.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from domain.models import TileCoordinate
from tiles.host import MotionEvent

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from geo.features import Extrusion
    from tiles.host import TerrainSampler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderHandle:
    id: int
    extrusions: tuple[Extrusion, ...]


class HeadlessRenderer:
    """Keeps built handles in memory instead of drawing them."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.live: dict[int, RenderHandle] = {}

    def build(self, extrusions: Sequence[Extrusion]) -> RenderHandle:
        return RenderHandle(next(self._ids), tuple(extrusions))

    def add(self, handle: RenderHandle) -> None:
        self.live[handle.id] = handle

    def remove(self, handle: RenderHandle) -> bool:
        return self.live.pop(handle.id, None) is not None

    @property
    def extrusion_count(self) -> int:
        return sum(len(h.extrusions) for h in self.live.values())


class FlatTerrain:
    def __init__(self, height: float = 0.0) -> None:
        self.height = height

    def get_height(self, lon: float, lat: float) -> float | None:
        return self.height


class HeadlessHost:
    """Viewport host whose visible tile set is set explicitly."""

    def __init__(
        self,
        renderer: HeadlessRenderer | None = None,
        terrain: TerrainSampler | None = None,
    ) -> None:
        self.motion_start = MotionEvent('motion_start')
        self.motion_end = MotionEvent('motion_end')
        self.renderer = renderer or HeadlessRenderer()
        self.terrain = terrain
        self._visible: list[TileCoordinate] = []

    def visible_tiles(self) -> list[TileCoordinate]:
        return list(self._visible)

    def set_view(self, tiles: Iterable[Any]) -> None:
        self._visible = [TileCoordinate.of(t) for t in tiles]

    def move_to(self, tiles: Iterable[Any]) -> None:
        """Simulate a camera flight ending on a view showing `tiles`."""
        self.motion_start.raise_event()
        self.set_view(tiles)
        self.motion_end.raise_event()
