from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

import aiohttp

from geo.features import features_of
from infrastructure.http.urls import tile_url
from shared.constants import DOWNLOAD_CONCURRENCY, HTTP_OK, HTTP_TIMEOUT_DEFAULT
from shared.errors import MalformedPayloadError, TransportError

if TYPE_CHECKING:
    from domain.models import TileCoordinate

logger = logging.getLogger(__name__)


class PayloadFetcher:
    """GeoJSON tile downloader with a bound on concurrent requests.

    One attempt per call: a failure surfaces as TransportError or
    MalformedPayloadError and is never retried here.
    """

    def __init__(
        self,
        client: aiohttp.ClientSession,
        url_template: str,
        *,
        concurrency: int = DOWNLOAD_CONCURRENCY,
        timeout_s: float = HTTP_TIMEOUT_DEFAULT,
    ):
        self.client = client
        self.url_template = url_template
        self.timeout_s = timeout_s
        self._sem = asyncio.Semaphore(concurrency)
        self._stats_downloads = 0
        self._stats_errors = 0

    @property
    def stats(self) -> dict[str, int]:
        return {'downloads': self._stats_downloads, 'errors': self._stats_errors}

    async def __call__(self, tile: TileCoordinate) -> dict[str, Any]:
        return await self.fetch(tile)

    async def fetch(self, tile: TileCoordinate) -> dict[str, Any]:
        url = tile_url(self.url_template, tile)
        try:
            async with self._sem:
                body = await self._get(url)
            payload = _decode(body, url)
        except (TransportError, MalformedPayloadError):
            self._stats_errors += 1
            raise
        self._stats_downloads += 1
        return payload

    async def _get(self, url: str) -> bytes:
        timeout = aiohttp.ClientTimeout(total=self.timeout_s)
        try:
            resp = await self.client.get(url, timeout=timeout)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            msg = f'request failed: {url}: {e!r}'
            raise TransportError(msg) from e
        try:
            if resp.status != HTTP_OK:
                msg = f'[{resp.status}] request failed: {url}'
                raise TransportError(msg, status=resp.status)
            try:
                return await resp.read()
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                msg = f'reading body failed: {url}: {e!r}'
                raise TransportError(msg) from e
        finally:
            # Освобождение ресурсов ответа (aiohttp и CachedResponse)
            release = getattr(resp, 'release', None)
            if callable(release):
                release()


def _decode(body: bytes, url: str) -> dict[str, Any]:
    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, ValueError) as e:
        msg = f'INVALID RESPONSE from {url}'
        raise MalformedPayloadError(msg) from e
    features_of(payload)
    return payload
