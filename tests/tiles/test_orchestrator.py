"""Tests for the generation-tagged fetch orchestrator."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest

from domain.models import TileCoordinate
from geo.features import FeatureFilter
from shared.errors import TransportError
from tiles.cache import RenderObjectCache
from tiles.headless import FlatTerrain
from tiles.orchestrator import PipelinePhase, PipelineState, is_stale, stale_reason
from tiles.refiner import LODRefiner

A = TileCoordinate(10, 100, 200)
B = TileCoordinate(10, 101, 200)


def _live_state(generation=3):
    return PipelineState(generation=generation, moving=False, detached=False)


class TestStaleness:
    def test_current_generation_at_rest(self):
        assert not is_stale(3, _live_state())
        assert stale_reason(3, _live_state()) is None

    def test_superseded_generation(self):
        assert is_stale(2, _live_state())
        assert 'superseded' in stale_reason(2, _live_state())

    def test_moving(self):
        state = _live_state()
        state.moving = True
        assert is_stale(3, state)
        assert stale_reason(3, state) == 'camera is moving'

    def test_detached_wins(self):
        state = _live_state()
        state.detached = True
        state.moving = True
        assert stale_reason(1, state) == 'pipeline detached'

    def test_fresh_state_is_detached(self):
        state = PipelineState()
        assert state.detached
        assert is_stale(state.generation, state)

    def test_next_generation_monotonic(self):
        state = PipelineState()
        assert [state.next_generation() for _ in range(3)] == [1, 2, 3]


@pytest.fixture
def bound(make_orchestrator, controlled_fetch, renderer):
    """Orchestrator bound to a headless renderer on terrain 5 m high."""

    def _bound(**kwargs):
        orchestrator = make_orchestrator(controlled_fetch, **kwargs)
        orchestrator.bind(RenderObjectCache(renderer), FlatTerrain(5.0))
        return orchestrator

    return _bound


class TestMotionEnd:
    """Selection passes and materialization."""

    @pytest.mark.asyncio
    async def test_detached_pass_does_nothing(self, settle, make_orchestrator, controlled_fetch):
        orchestrator = make_orchestrator(controlled_fetch)
        assert orchestrator.on_motion_end([A]) == []
        await settle()
        assert controlled_fetch.calls == []
        assert orchestrator.state.generation == 0

    @pytest.mark.asyncio
    async def test_fetch_and_render(
        self, settle, bound, controlled_fetch, renderer, feature_collection, polygon_feature
    ):
        orchestrator = bound()
        tiles = orchestrator.on_motion_end([A, B])

        assert tiles == [A, B]
        assert orchestrator.state.phase is PipelinePhase.FETCHING
        assert orchestrator.state.active_keys == {A, B}
        await settle()
        assert controlled_fetch.calls == [A, B]

        payload = feature_collection(polygon_feature(house_id='H1', height=10.0))
        controlled_fetch.resolve(A, payload)
        controlled_fetch.resolve(B, feature_collection())
        await orchestrator.drain()

        assert orchestrator.cache.keys() == {A, B}
        assert orchestrator.state.phase is PipelinePhase.IDLE
        assert orchestrator.stats.rendered == 2
        handle = orchestrator.cache.get(A)
        assert handle.id in renderer.live
        (extrusion,) = handle.extrusions
        assert extrusion.base_height == 5.0
        assert extrusion.extruded_height == 15.0

    @pytest.mark.asyncio
    async def test_cached_tiles_not_refetched(
        self, settle, bound, controlled_fetch, feature_collection
    ):
        orchestrator = bound()
        orchestrator.on_motion_end([A])
        await settle()
        controlled_fetch.resolve(A, feature_collection())
        await orchestrator.drain()

        orchestrator.on_motion_end([A])
        await settle()
        assert controlled_fetch.calls == [A]
        assert orchestrator.state.phase is PipelinePhase.IDLE

    @pytest.mark.asyncio
    async def test_duplicates_scheduled_once(self, settle, bound, controlled_fetch):
        orchestrator = bound()
        orchestrator.on_motion_end([A, A, {'level': 10, 'x': 100, 'y': 200}])
        await settle()
        assert controlled_fetch.calls == [A]
        assert orchestrator.state.outstanding == 1

    @pytest.mark.asyncio
    async def test_motion_end_clears_moving(self, bound):
        orchestrator = bound()
        orchestrator.on_motion_start()
        assert orchestrator.state.moving
        orchestrator.on_motion_end([])
        assert not orchestrator.state.moving

    @pytest.mark.asyncio
    async def test_generation_advances_per_pass(self, bound):
        orchestrator = bound()
        orchestrator.on_motion_end([])
        orchestrator.on_motion_end([])
        assert orchestrator.state.generation == 2
        assert orchestrator.stats.passes == 2

    @pytest.mark.asyncio
    async def test_eviction_after_pass(
        self, settle, bound, controlled_fetch, renderer, feature_collection
    ):
        """Tiles no longer selected are removed from the renderer."""
        orchestrator = bound()
        orchestrator.on_motion_end([A, B])
        await settle()
        controlled_fetch.resolve(A, feature_collection())
        controlled_fetch.resolve(B, feature_collection())
        await orchestrator.drain()
        handle_b = orchestrator.cache.get(B)

        orchestrator.on_motion_end([B])

        assert orchestrator.cache.keys() == {B}
        assert list(renderer.live) == [handle_b.id]
        assert orchestrator.stats.evicted == 1

    @pytest.mark.asyncio
    async def test_lower_level_limit_drops_coarse_tiles(self, settle, bound, controlled_fetch):
        orchestrator = bound(lower_level_limit=6)
        fine = TileCoordinate(8, 10, 10)
        orchestrator.on_motion_end([TileCoordinate(5, 1, 1), fine])
        await settle()
        assert controlled_fetch.calls == [fine]

    @pytest.mark.asyncio
    async def test_refined_tiles_fetched(self, settle, bound, controlled_fetch):
        orchestrator = bound(refiner=LODRefiner(5))
        tiles = orchestrator.on_motion_end([TileCoordinate(4, 3, 5)])
        await settle()
        assert len(tiles) == 4
        assert controlled_fetch.calls == tiles
        assert all(t.level == 5 for t in tiles)


class TestStaleCompletions:
    """Completions that arrive for an outdated view never touch the cache."""

    @pytest.mark.asyncio
    async def test_superseded_generation_discarded(
        self, settle, bound, controlled_fetch, renderer, feature_collection
    ):
        orchestrator = bound()
        orchestrator.on_motion_end([A])
        await settle()
        orchestrator.on_motion_end([B])
        await settle()

        controlled_fetch.resolve(A, feature_collection())
        await settle()
        assert A not in orchestrator.cache
        assert orchestrator.stats.discarded == 1
        assert renderer.live == {}
        assert orchestrator.state.phase is PipelinePhase.FETCHING

        controlled_fetch.resolve(B, feature_collection())
        await orchestrator.drain()
        assert orchestrator.cache.keys() == {B}
        assert orchestrator.state.phase is PipelinePhase.IDLE

    @pytest.mark.asyncio
    async def test_same_tile_refetched_in_new_generation(
        self, settle, bound, controlled_fetch, feature_collection
    ):
        orchestrator = bound()
        orchestrator.on_motion_end([A])
        await settle()
        orchestrator.on_motion_end([A])
        await settle()
        assert controlled_fetch.pending(A) == 2

        controlled_fetch.resolve(A, feature_collection())
        controlled_fetch.resolve(A, feature_collection())
        await orchestrator.drain()

        assert orchestrator.stats.discarded == 1
        assert orchestrator.stats.rendered == 1
        assert len(orchestrator.cache) == 1

    @pytest.mark.asyncio
    async def test_moving_camera_discards(
        self, settle, bound, controlled_fetch, feature_collection
    ):
        orchestrator = bound()
        orchestrator.on_motion_end([A])
        await settle()
        orchestrator.on_motion_start()
        controlled_fetch.resolve(A, feature_collection())
        await orchestrator.drain()
        assert A not in orchestrator.cache
        assert orchestrator.stats.discarded == 1

    @pytest.mark.asyncio
    async def test_teardown_with_fetches_in_flight(
        self, settle, bound, controlled_fetch, renderer, feature_collection
    ):
        orchestrator = bound()
        orchestrator.on_motion_end([A, B])
        await settle()
        assert orchestrator.in_flight == 2

        orchestrator.teardown()
        controlled_fetch.resolve(A, feature_collection())
        controlled_fetch.resolve(B, feature_collection())
        await orchestrator.drain()

        assert orchestrator.cache is None
        assert renderer.live == {}
        assert orchestrator.stats.discarded == 2
        assert orchestrator.stats.rendered == 0

    @pytest.mark.asyncio
    async def test_teardown_releases_cached(
        self, settle, bound, controlled_fetch, renderer, feature_collection
    ):
        orchestrator = bound()
        orchestrator.on_motion_end([A])
        await settle()
        controlled_fetch.resolve(A, feature_collection())
        await orchestrator.drain()

        assert orchestrator.teardown() == 1
        assert renderer.live == {}
        assert orchestrator.state.detached
        assert orchestrator.state.active_keys == frozenset()


class TestFeatureHandling:
    @pytest.mark.asyncio
    async def test_filter_read_at_completion(
        self, settle, bound, controlled_fetch, feature_collection, polygon_feature
    ):
        orchestrator = bound()
        orchestrator.on_motion_end([A])
        await settle()
        orchestrator.state.feature_filter = FeatureFilter.by('house_id', ['A'])

        payload = feature_collection(
            polygon_feature(house_id='A', height=3.0),
            polygon_feature(house_id='B', height=7.0, lon=100.01),
        )
        controlled_fetch.resolve(A, payload)
        await orchestrator.drain()

        (extrusion,) = orchestrator.cache.get(A).extrusions
        assert extrusion.extruded_height == 12.0

    @pytest.mark.asyncio
    async def test_heights_recorded_by_id(
        self,
        settle,
        make_orchestrator,
        controlled_fetch,
        renderer,
        feature_collection,
        polygon_feature,
    ):
        heights = {}
        orchestrator = make_orchestrator(controlled_fetch, height_by_id=heights)
        orchestrator.bind(RenderObjectCache(renderer), None)
        orchestrator.on_motion_end([A])
        await settle()
        payload = feature_collection(polygon_feature(house_id='H7', height=21.5))
        controlled_fetch.resolve(A, payload)
        await orchestrator.drain()

        assert heights == {'H7': 21.5}
        (extrusion,) = orchestrator.cache.get(A).extrusions
        assert extrusion.base_height == 0.0


class TestFailures:
    """A failed tile stays absent; other tiles are unaffected."""

    @pytest.mark.asyncio
    async def test_transport_error(
        self, settle, bound, controlled_fetch, feature_collection, caplog
    ):
        orchestrator = bound()
        orchestrator.on_motion_end([A, B])
        await settle()

        with caplog.at_level(logging.WARNING, logger='tiles.orchestrator'):
            controlled_fetch.fail(A, TransportError('[503] request failed', status=503))
            controlled_fetch.resolve(B, feature_collection())
            await orchestrator.drain()

        assert orchestrator.cache.keys() == {B}
        assert orchestrator.stats.failed == 1
        assert 'not rendered' in caplog.text
        assert orchestrator.state.phase is PipelinePhase.IDLE

    @pytest.mark.asyncio
    async def test_malformed_payload(self, settle, bound, controlled_fetch):
        orchestrator = bound()
        orchestrator.on_motion_end([A])
        await settle()
        controlled_fetch.resolve(A, {'type': 'FeatureCollection'})
        await orchestrator.drain()
        assert A not in orchestrator.cache
        assert orchestrator.stats.failed == 1

    @pytest.mark.asyncio
    async def test_failed_tile_retried_next_pass(
        self, settle, bound, controlled_fetch, feature_collection
    ):
        orchestrator = bound()
        orchestrator.on_motion_end([A])
        await settle()
        controlled_fetch.fail(A, TransportError('boom'))
        await orchestrator.drain()

        orchestrator.on_motion_end([A])
        await settle()
        controlled_fetch.resolve(A, feature_collection())
        await orchestrator.drain()
        assert A in orchestrator.cache
        assert controlled_fetch.calls == [A, A]

    @pytest.mark.asyncio
    async def test_unexpected_renderer_error_contained(
        self, settle, make_orchestrator, controlled_fetch, feature_collection, caplog
    ):
        renderer = MagicMock()
        renderer.build.side_effect = RuntimeError('gpu lost')
        orchestrator = make_orchestrator(controlled_fetch)
        orchestrator.bind(RenderObjectCache(renderer), None)
        orchestrator.on_motion_end([A])
        await settle()

        with caplog.at_level(logging.ERROR, logger='tiles.orchestrator'):
            controlled_fetch.resolve(A, feature_collection())
            await orchestrator.drain()

        assert orchestrator.stats.failed == 1
        assert len(orchestrator.cache) == 0
        assert 'Unexpected error' in caplog.text


class TestRendererRemovalErrors:
    @pytest.mark.asyncio
    async def test_pass_survives_raising_remove(
        self, settle, make_orchestrator, controlled_fetch, feature_collection
    ):
        renderer = MagicMock()
        renderer.remove.side_effect = RuntimeError('primitive already destroyed')
        orchestrator = make_orchestrator(controlled_fetch)
        orchestrator.bind(RenderObjectCache(renderer), None)
        orchestrator.on_motion_end([A])
        await settle()
        controlled_fetch.resolve(A, feature_collection())
        await orchestrator.drain()

        tiles = orchestrator.on_motion_end([B])

        assert tiles == [B]
        assert A in orchestrator.cache
        assert orchestrator.state.phase is PipelinePhase.FETCHING
        await settle()
        assert controlled_fetch.calls == [A, B]
