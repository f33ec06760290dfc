"""Collaborator interfaces the pipeline is attached to.

The host platform (a 3D globe, a test double, a headless driver) provides the
renderer, terrain sampling and camera motion events.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from geo.features import Extrusion


@runtime_checkable
class Renderer(Protocol):
    def build(self, extrusions: Sequence[Extrusion]) -> Any:
        """Build an opaque renderable handle from a tile's extrusions."""

    def add(self, handle: Any) -> None: ...

    def remove(self, handle: Any) -> bool:
        """Release a handle; False when the renderer did not hold it."""


@runtime_checkable
class TerrainSampler(Protocol):
    def get_height(self, lon: float, lat: float) -> float | None: ...


class MotionEvent:
    """Listener list for one camera event (motion start or motion end)."""

    def __init__(self, name: str = 'motion') -> None:
        self.name = name
        self._listeners: list[Callable[[], None]] = []

    def add_listener(self, listener: Callable[[], None]) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[], None]) -> bool:
        try:
            self._listeners.remove(listener)
        except ValueError:
            return False
        return True

    def raise_event(self) -> None:
        # Copy: a listener may detach itself while the event is dispatched
        for listener in list(self._listeners):
            listener()

    def __len__(self) -> int:
        return len(self._listeners)


@runtime_checkable
class ViewportHost(Protocol):
    motion_start: MotionEvent
    motion_end: MotionEvent
    renderer: Renderer
    terrain: TerrainSampler | None

    def visible_tiles(self) -> Sequence[Any]:
        """Tiles the globe currently renders, each exposing level, x, y."""
