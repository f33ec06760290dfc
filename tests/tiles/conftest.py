"""Fixtures for pipeline tests: controllable fetches and a headless host."""

import asyncio

import pytest

from domain.models import ProviderSettings, Rectangle
from tiles.headless import HeadlessHost, HeadlessRenderer
from tiles.orchestrator import PipelineState, TileFetchOrchestrator
from tiles.range_index import TileRangeIndex
from tiles.selector import ViewportTileSelector

WORLD = Rectangle.from_degrees(-180, -90, 180, 90)


class ControlledFetch:
    """Fetch double whose completions are resolved explicitly by the test."""

    def __init__(self):
        self.calls = []
        self._pending = {}

    async def __call__(self, tile):
        future = asyncio.get_running_loop().create_future()
        self._pending.setdefault(tile, []).append(future)
        self.calls.append(tile)
        return await future

    def pending(self, tile):
        return len([f for f in self._pending.get(tile, []) if not f.done()])

    def _next(self, tile):
        for future in self._pending[tile]:
            if not future.done():
                return future
        raise AssertionError(f'no pending fetch for {tile}')

    def resolve(self, tile, payload):
        self._next(tile).set_result(payload)

    def fail(self, tile, exc):
        self._next(tile).set_exception(exc)


async def _settle(rounds=3):
    """Let scheduled tasks run up to their next suspension point."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def controlled_fetch():
    return ControlledFetch()


@pytest.fixture
def renderer():
    return HeadlessRenderer()


@pytest.fixture
def host(renderer):
    return HeadlessHost(renderer=renderer)


@pytest.fixture
def world_settings():
    return ProviderSettings(url='http://tiles.test/{z}/{x}/{y}.json', rectangle=WORLD)


@pytest.fixture
def make_orchestrator():
    """Orchestrator over the whole globe, fetching through `fetch`."""

    def _make(fetch, *, refiner=None, lower_level_limit=1, height_by_id=None):
        state = PipelineState()
        index = TileRangeIndex(WORLD, 1, 19)
        selector = ViewportTileSelector(index, lower_level_limit)
        return TileFetchOrchestrator(
            state,
            selector,
            fetch,
            refiner=refiner,
            height_by_id=height_by_id,
        )

    return _make


@pytest.fixture
def settle():
    return _settle
