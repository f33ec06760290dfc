from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from shared.constants import (
    URI_COMPONENT_SAFE,
    URL_PLACEHOLDER_X,
    URL_PLACEHOLDER_Y,
    URL_PLACEHOLDER_Z,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from domain.models import TileCoordinate


def encode_component(value: str) -> str:
    """Percent-encode like JavaScript's encodeURIComponent."""
    return quote(value, safe=URI_COMPONENT_SAFE)


def _param_text(value: Any) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if value is None or isinstance(value, (dict, list, tuple)):
        return json.dumps(value, separators=(',', ':'), ensure_ascii=False)
    return str(value)


def serialize_params(params: Mapping[str, Any] | None) -> str:
    """Serialize query parameters; structured values are sent as JSON."""
    if not params:
        return ''
    return '&'.join(
        f'{encode_component(str(key))}={encode_component(_param_text(value))}'
        for key, value in params.items()
    )


def build_url_template(url: str, params: Mapping[str, Any] | None = None) -> str:
    """
    Join the service URL and its (encoded) parameters.

    Placeholders inside params end up percent-encoded, placeholders in the
    URL path stay raw; tile_url() substitutes both forms.
    """
    query = serialize_params(params)
    if not query:
        return url
    sep = '&' if '?' in url else '?'
    return f'{url}{sep}{query}'


def tile_url(template: str, tile: TileCoordinate) -> str:
    values = {
        URL_PLACEHOLDER_X: str(tile.x),
        URL_PLACEHOLDER_Y: str(tile.y),
        URL_PLACEHOLDER_Z: str(tile.level),
    }
    url = template
    for placeholder, value in values.items():
        url = url.replace(encode_component(placeholder), value).replace(placeholder, value)
    return url
