"""
Generation-tagged asynchronous tile loading.

Each camera motion end starts a new view generation. Tile payloads are
fetched as asyncio tasks that run to completion even when the view moves on;
their results are materialized only if the pipeline is attached, the camera
is at rest and the generation that spawned them is still the current one.
Otherwise the result is discarded. Nothing is ever cancelled.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from geo.features import FeatureFilter, extrude_features
from shared.constants import DEFAULT_HEIGHT_PROPERTY, DEFAULT_ID_PROPERTY
from shared.errors import MalformedPayloadError, StaleResultDiscard, TransportError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, MutableMapping

    from domain.models import TileCoordinate
    from tiles.cache import RenderObjectCache
    from tiles.host import TerrainSampler
    from tiles.refiner import LODRefiner
    from tiles.selector import ViewportTileSelector

    FetchPayload = Callable[[TileCoordinate], Awaitable[Any]]

logger = logging.getLogger(__name__)


class PipelinePhase(str, Enum):
    IDLE = 'IDLE'
    SELECTING = 'SELECTING'
    FETCHING = 'FETCHING'


@dataclass
class PipelineState:
    """Mutable state of one pipeline instance.

    Fetch completions receive this object explicitly; there is no module
    level state, so independent pipelines never interfere.
    """

    generation: int = 0
    moving: bool = False
    detached: bool = True
    phase: PipelinePhase = PipelinePhase.IDLE
    active_keys: frozenset[TileCoordinate] = frozenset()
    feature_filter: FeatureFilter = field(default_factory=FeatureFilter)
    # fetches of the current generation not yet completed
    outstanding: int = 0

    def next_generation(self) -> int:
        self.generation += 1
        return self.generation


def stale_reason(captured_generation: int, state: PipelineState) -> str | None:
    """Why a completion of captured_generation must be discarded, or None."""
    if state.detached:
        return 'pipeline detached'
    if state.moving:
        return 'camera is moving'
    if captured_generation != state.generation:
        return f'generation {captured_generation} superseded by {state.generation}'
    return None


def is_stale(captured_generation: int, state: PipelineState) -> bool:
    return stale_reason(captured_generation, state) is not None


@dataclass
class OrchestratorStats:
    passes: int = 0
    scheduled: int = 0
    rendered: int = 0
    discarded: int = 0
    failed: int = 0
    evicted: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            'passes': self.passes,
            'scheduled': self.scheduled,
            'rendered': self.rendered,
            'discarded': self.discarded,
            'failed': self.failed,
            'evicted': self.evicted,
        }


class TileFetchOrchestrator:
    """Runs one selection pass per motion end and materializes fetched tiles."""

    def __init__(
        self,
        state: PipelineState,
        selector: ViewportTileSelector,
        fetch_payload: FetchPayload,
        *,
        refiner: LODRefiner | None = None,
        id_property: str = DEFAULT_ID_PROPERTY,
        height_property: str = DEFAULT_HEIGHT_PROPERTY,
        height_by_id: MutableMapping[Any, float] | None = None,
    ):
        self.state = state
        self.selector = selector
        self.refiner = refiner
        self.fetch_payload = fetch_payload
        self.id_property = id_property
        self.height_property = height_property
        self.height_by_id = height_by_id
        self.cache: RenderObjectCache | None = None
        self.terrain: TerrainSampler | None = None
        self.stats = OrchestratorStats()
        self._tasks: set[asyncio.Task[None]] = set()

    def bind(self, cache: RenderObjectCache, terrain: TerrainSampler | None) -> None:
        """Connect to a host's render cache and terrain; the pipeline becomes live."""
        self.cache = cache
        self.terrain = terrain
        self.state.detached = False

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def on_motion_start(self) -> None:
        self.state.moving = True

    def on_motion_end(self, visible_tiles: Iterable[Any]) -> list[TileCoordinate]:
        """
        Run one selection pass.

        Must be called from within the running event loop: payload fetches
        are scheduled as tasks and this method returns without awaiting them.

        Returns:
            The selected (and refined) tiles, finest first.
        """
        state = self.state
        cache = self.cache
        if state.detached or cache is None:
            logger.debug('Motion end ignored: pipeline detached')
            return []

        state.phase = PipelinePhase.SELECTING
        generation = state.next_generation()
        state.moving = False

        tiles = self.selector.select(visible_tiles)
        if self.refiner is not None:
            tiles = self.refiner.refine(tiles)

        state.active_keys = frozenset(tiles)
        state.outstanding = 0
        scheduled: set[TileCoordinate] = set()
        for tile in tiles:
            if tile in cache or tile in scheduled:
                continue
            scheduled.add(tile)
            self._schedule(tile, generation)

        evicted = cache.reconcile(state.active_keys)
        self.stats.passes += 1
        self.stats.evicted += len(evicted)
        state.phase = PipelinePhase.FETCHING if state.outstanding else PipelinePhase.IDLE
        logger.info(
            'Pass %d: %d tile(s) active, %d fetch(es) scheduled, %d evicted',
            generation,
            len(tiles),
            len(scheduled),
            len(evicted),
        )
        return tiles

    def _schedule(self, tile: TileCoordinate, generation: int) -> None:
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._load(tile, generation), name=f'tile-{tile}')
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self.state.outstanding += 1
        self.stats.scheduled += 1

    def _ensure_current(self, tile: TileCoordinate, generation: int) -> None:
        reason = stale_reason(generation, self.state)
        if reason is not None:
            raise StaleResultDiscard(tile, reason)

    async def _load(self, tile: TileCoordinate, generation: int) -> None:
        try:
            payload = await self.fetch_payload(tile)
            # Nothing below suspends: the check holds until the handle is cached
            self._ensure_current(tile, generation)
            self._materialize(tile, payload)
        except StaleResultDiscard as e:
            self.stats.discarded += 1
            logger.debug('Discarding tile %s', e)
        except (TransportError, MalformedPayloadError) as e:
            self.stats.failed += 1
            logger.warning('Tile %s not rendered: %s', tile, e)
        except Exception:
            self.stats.failed += 1
            logger.exception('Unexpected error while materializing tile %s', tile)
        finally:
            self._finish(generation)

    def _materialize(self, tile: TileCoordinate, payload: Any) -> None:
        cache = self.cache
        if cache is None:
            raise StaleResultDiscard(tile, 'no render cache bound')
        extrusions = extrude_features(
            payload,
            self.state.feature_filter,
            self.terrain,
            id_property=self.id_property,
            height_property=self.height_property,
            height_by_id=self.height_by_id,
        )
        handle = cache.renderer.build(extrusions)
        cache.renderer.add(handle)
        cache.insert(tile, handle)
        self.stats.rendered += 1
        logger.debug('Tile %s rendered with %d extrusion(s)', tile, len(extrusions))

    def _finish(self, generation: int) -> None:
        state = self.state
        if generation != state.generation:
            return
        state.outstanding = max(0, state.outstanding - 1)
        if state.outstanding == 0 and state.phase is PipelinePhase.FETCHING:
            state.phase = PipelinePhase.IDLE

    async def drain(self) -> None:
        """Wait until every scheduled fetch has completed (or been discarded)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def teardown(self) -> int:
        """Mark the pipeline detached and release every cached handle.

        In-flight fetches keep running; their completions see the detached
        flag and discard.
        """
        self.state.detached = True
        self.state.active_keys = frozenset()
        self.state.phase = PipelinePhase.IDLE
        released = 0
        if self.cache is not None:
            released = self.cache.clear()
        self.cache = None
        self.terrain = None
        return released
