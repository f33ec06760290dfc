"""Shared constants and error types."""
from shared.errors import (
    MalformedPayloadError,
    StaleResultDiscard,
    TileStreamError,
    TransportError,
    UnsupportedGeometryError,
)

__all__ = [
    'MalformedPayloadError',
    'StaleResultDiscard',
    'TileStreamError',
    'TransportError',
    'UnsupportedGeometryError',
]
