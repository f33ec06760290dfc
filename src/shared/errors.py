"""Error taxonomy for tile streaming.

None of these escape the public provider surface: they are raised inside a
single tile's fetch completion (or a single feature) and handled there.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from domain.models import TileCoordinate


class TileStreamError(Exception):
    """Base class for tile streaming failures."""


class TransportError(TileStreamError):
    """Network-level failure or non-success HTTP status."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class MalformedPayloadError(TileStreamError):
    """Body is not JSON or does not follow the feature collection schema."""


class StaleResultDiscard(TileStreamError):
    """A fetch finished for a view that is no longer current.

    Expected control flow, not a failure.
    """

    def __init__(self, tile: TileCoordinate, reason: str) -> None:
        super().__init__(f'{tile}: {reason}')
        self.tile = tile
        self.reason = reason


class UnsupportedGeometryError(TileStreamError):
    """Feature geometry is neither Polygon nor MultiPolygon."""

    def __init__(self, geometry_type: str | None) -> None:
        super().__init__(f'geometry type "{geometry_type}" is not rendered')
        self.geometry_type = geometry_type
