"""
GeoJSON vector tile provider.

Wires the range index, viewport selector, LOD refiner, fetch orchestrator and
render cache to a viewport host:

    provider = VectorTileProvider(settings)
    provider.attach(host)          # inside a running event loop
    provider.set_filter('house_id', ['hn_fw_1955708'])
    ...
    await provider.aclose()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from geo.features import FeatureFilter
from infrastructure.http.client import make_http_session, resolve_cache_dir
from infrastructure.http.urls import build_url_template
from tiles.cache import RenderObjectCache
from tiles.fetcher import PayloadFetcher
from tiles.orchestrator import PipelineState, TileFetchOrchestrator
from tiles.range_index import TileRangeIndex
from tiles.refiner import LODRefiner
from tiles.selector import ViewportTileSelector

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    import aiohttp

    from domain.models import ProviderSettings, TileCoordinate
    from tiles.host import ViewportHost

logger = logging.getLogger(__name__)


class VectorTileProvider:
    def __init__(
        self,
        settings: ProviderSettings,
        *,
        fetch_payload: Callable[[TileCoordinate], Awaitable[Any]] | None = None,
        client: aiohttp.ClientSession | None = None,
    ):
        """
        Args:
            settings: Validated provider settings.
            fetch_payload: Coroutine function returning a tile's GeoJSON. When
                omitted, tiles are downloaded from settings.url.
            client: HTTP session for downloads. When omitted (and no
                fetch_payload is given) the provider opens its own session on
                first attach and closes it in aclose().
        """
        self.settings = settings
        self.url_template = build_url_template(settings.url, settings.url_params)
        self.height_by_id: dict[Any, float] = {}

        self.state = PipelineState()
        self.range_index = TileRangeIndex(
            settings.rectangle, settings.minimum_level, settings.maximum_level
        )
        self.selector = ViewportTileSelector(self.range_index, settings.lower_level_limit)
        refiner = (
            LODRefiner(settings.upper_level_limit)
            if settings.upper_level_limit is not None
            else None
        )

        self._client = client
        self._owns_client = False
        self._fetcher: PayloadFetcher | None = None
        self.orchestrator = TileFetchOrchestrator(
            self.state,
            self.selector,
            fetch_payload or self._download,
            refiner=refiner,
            id_property=settings.id_property,
            height_property=settings.height_property,
            height_by_id=self.height_by_id,
        )
        self._host: ViewportHost | None = None

    async def _download(self, tile: TileCoordinate) -> Any:
        if self._fetcher is None:
            if self._client is None:
                self._client = make_http_session(resolve_cache_dir())
                self._owns_client = True
            self._fetcher = PayloadFetcher(
                self._client,
                self.url_template,
                concurrency=self.settings.concurrency,
                timeout_s=self.settings.request_timeout_s,
            )
        return await self._fetcher.fetch(tile)

    # --- camera events

    def _on_motion_start(self) -> None:
        self.orchestrator.on_motion_start()

    def _on_motion_end(self) -> None:
        host = self._host
        if host is None:
            return
        self.orchestrator.on_motion_end(host.visible_tiles())

    # --- public surface

    def attach(self, host: ViewportHost) -> None:
        """Subscribe to the host's camera events and run a first pass immediately."""
        if self._host is not None:
            self.detach()
        self._host = host
        self.orchestrator.bind(RenderObjectCache(host.renderer), host.terrain)
        host.motion_end.add_listener(self._on_motion_end)
        host.motion_start.add_listener(self._on_motion_start)
        logger.info('Provider attached: %s', self.url_template)
        self._on_motion_end()

    def detach(self) -> None:
        """Release every rendered tile and stop reacting to camera events."""
        host = self._host
        if host is None:
            return
        host.motion_end.remove_listener(self._on_motion_end)
        host.motion_start.remove_listener(self._on_motion_start)
        released = self.orchestrator.teardown()
        self._host = None
        logger.info(
            'Provider detached: %d tile(s) released, %d fetch(es) still in flight',
            released,
            self.orchestrator.in_flight,
        )

    def is_detached(self) -> bool:
        return self.state.detached

    def set_filter(self, property_name: str, excluded_values: Iterable[Any]) -> None:
        """Hide features whose property value is listed; applies to future fetches only.

        Raises:
            TypeError: excluded_values is a bare string instead of a list.
        """
        self.state.feature_filter = FeatureFilter.by(property_name, excluded_values)

    def clear_filter(self) -> None:
        self.state.feature_filter = FeatureFilter()

    @property
    def feature_filter(self) -> FeatureFilter:
        return self.state.feature_filter

    @property
    def active_keys(self) -> frozenset[TileCoordinate]:
        return self.state.active_keys

    @property
    def stats(self) -> dict[str, int]:
        stats = self.orchestrator.stats.as_dict()
        if self._fetcher is not None:
            stats.update(self._fetcher.stats)
        return stats

    async def drain(self) -> None:
        await self.orchestrator.drain()

    async def aclose(self) -> None:
        """Detach, let in-flight fetches settle and close an owned HTTP session."""
        self.detach()
        await self.drain()
        if self._owns_client and self._client is not None:
            await self._client.close()
        self._client = None
        self._fetcher = None
        self._owns_client = False
