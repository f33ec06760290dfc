"""Viewport-driven vector tile streaming.

This package provides:
- TileRangeIndex: per-level tile ranges of the data extent
- ViewportTileSelector: filtering of the renderer's visible tiles
- LODRefiner / refine: split/merge normalization to a target level
- TileFetchOrchestrator: generation-tagged asynchronous loading
- RenderObjectCache: tile -> renderable handle, reconciled per pass
- VectorTileProvider: the public attach/detach/filter surface
"""

from tiles.cache import RenderObjectCache
from tiles.fetcher import PayloadFetcher
from tiles.host import MotionEvent, Renderer, TerrainSampler, ViewportHost
from tiles.orchestrator import (
    PipelinePhase,
    PipelineState,
    TileFetchOrchestrator,
    is_stale,
)
from tiles.provider import VectorTileProvider
from tiles.range_index import TileRangeIndex
from tiles.refiner import LODRefiner, refine
from tiles.selector import ViewportTileSelector

__all__ = [
    'LODRefiner',
    'MotionEvent',
    'PayloadFetcher',
    'PipelinePhase',
    'PipelineState',
    'RenderObjectCache',
    'Renderer',
    'TerrainSampler',
    'TileFetchOrchestrator',
    'TileRangeIndex',
    'VectorTileProvider',
    'ViewportHost',
    'ViewportTileSelector',
    'is_stale',
    'refine',
]
