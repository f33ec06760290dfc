"""HTTP client infrastructure."""
from infrastructure.http.client import make_http_session, resolve_cache_dir
from infrastructure.http.urls import (
    build_url_template,
    encode_component,
    serialize_params,
    tile_url,
)

__all__ = [
    'build_url_template',
    'encode_component',
    'make_http_session',
    'resolve_cache_dir',
    'serialize_params',
    'tile_url',
]
