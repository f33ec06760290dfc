from __future__ import annotations

import contextlib
import logging
import os
import sqlite3
import ssl
from datetime import timedelta
from pathlib import Path

import aiohttp
import certifi
from aiohttp_client_cache import CachedSession, SQLiteBackend

from shared.constants import (
    HTTP_ACCEPT_GEOJSON,
    HTTP_CACHE_DIR,
    HTTP_CACHE_ENABLED,
    HTTP_CACHE_EXPIRE_HOURS,
    HTTP_CACHE_FILE_NAME,
    HTTP_CACHE_RESPECT_HEADERS,
    HTTP_CACHE_STALE_IF_ERROR_HOURS,
    HTTP_OK,
)

logger = logging.getLogger(__name__)


def resolve_cache_dir() -> Path:
    """Directory of the on-disk HTTP response cache."""
    raw_dir = Path(HTTP_CACHE_DIR)
    if raw_dir.is_absolute():
        return raw_dir

    cache_home = os.getenv('XDG_CACHE_HOME')
    if cache_home:
        return (Path(cache_home) / raw_dir).resolve()
    return (Path.home() / raw_dir).resolve()


def _cache_backend(cache_dir: Path) -> SQLiteBackend:
    cache_dir.mkdir(parents=True, exist_ok=True)
    cache_path = cache_dir / HTTP_CACHE_FILE_NAME
    with contextlib.suppress(sqlite3.Error):
        if not cache_path.exists():
            with sqlite3.connect(cache_path) as conn:
                conn.execute('PRAGMA journal_mode=WAL;')
    expire_after = timedelta(hours=max(0, int(HTTP_CACHE_EXPIRE_HOURS)))
    return SQLiteBackend(
        str(cache_path),
        expire_after=expire_after,
        allowed_codes=(HTTP_OK,),
        allowed_methods=('GET',),
        cache_control=bool(HTTP_CACHE_RESPECT_HEADERS),
    )


def make_http_session(
    cache_dir: Path | None,
    *,
    use_cache: bool = HTTP_CACHE_ENABLED,
) -> aiohttp.ClientSession:
    """
    Open the session tile payloads are downloaded through.

    With a cache directory (and caching enabled) successful GET responses are
    kept in an SQLite cache, so revisiting a view does not hit the server
    again until the entries expire.
    """
    ssl_context = ssl.create_default_context(cafile=certifi.where())
    connector = aiohttp.TCPConnector(ssl=ssl_context)
    headers = {'Accept': HTTP_ACCEPT_GEOJSON}

    if not use_cache or cache_dir is None:
        logger.debug('HTTP session without response cache')
        return aiohttp.ClientSession(connector=connector, headers=headers)

    stale_hours = int(HTTP_CACHE_STALE_IF_ERROR_HOURS)
    stale_if_error: bool | timedelta
    stale_if_error = timedelta(hours=stale_hours) if stale_hours > 0 else False
    logger.debug('HTTP response cache at %s', cache_dir)
    return CachedSession(
        cache=_cache_backend(cache_dir),
        connector=connector,
        headers=headers,
        stale_if_error=stale_if_error,
    )
