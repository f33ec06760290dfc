"""Command line driver for the GeoJSON vector tile provider."""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from domain.models import TileCoordinate
from domain.profiles import load_profile
from geo.features import FeatureFilter, extrude_features
from infrastructure.http.client import make_http_session, resolve_cache_dir
from shared.constants import APP_DIR_NAME, LOG_FILE_NAME
from shared.errors import TileStreamError
from tiles.fetcher import PayloadFetcher
from tiles.headless import FlatTerrain, HeadlessHost
from tiles.provider import VectorTileProvider

logger = logging.getLogger(__name__)


def setup_logging(level: int = logging.INFO) -> Path:
    """Configure application logging to stdout and the user state directory.

    Returns:
        Path of the log file.
    """
    state_base = Path(os.getenv('XDG_STATE_HOME') or Path.home() / '.local' / 'state')
    log_dir = state_base / APP_DIR_NAME / 'log'
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(str(log_file), encoding='utf-8'),
        ],
    )
    return log_file


def _parse_tiles(values: list[str]) -> list[TileCoordinate]:
    tiles: list[TileCoordinate] = []
    for value in values:
        tiles.extend(TileCoordinate.parse(t) for t in value.split(',') if t.strip())
    return tiles


def cmd_plan(args: argparse.Namespace) -> int:
    """Print the tiles a pass would fetch for the given visible tiles."""
    settings = load_profile(args.profile)
    provider = VectorTileProvider(settings)
    tiles = provider.selector.select(_parse_tiles(args.tiles))
    if provider.orchestrator.refiner is not None:
        tiles = provider.orchestrator.refiner.refine(tiles)
    for tile in tiles:
        print(f'{tile.level}/{tile.x}/{tile.y}')
    return 0


async def _fetch(args: argparse.Namespace) -> int:
    settings = load_profile(args.profile)
    provider = VectorTileProvider(settings)
    tile = TileCoordinate.parse(args.tile)
    cache_dir = None if args.no_cache else resolve_cache_dir()
    async with make_http_session(cache_dir, use_cache=not args.no_cache) as client:
        fetcher = PayloadFetcher(
            client,
            provider.url_template,
            concurrency=1,
            timeout_s=settings.request_timeout_s,
        )
        payload = await fetcher.fetch(tile)
    extrusions = extrude_features(
        payload,
        FeatureFilter(),
        None,
        id_property=settings.id_property,
        height_property=settings.height_property,
    )
    print(f'{tile}: {len(payload["features"])} feature(s), {len(extrusions)} extrusion(s)')
    return 0


def cmd_fetch(args: argparse.Namespace) -> int:
    return asyncio.run(_fetch(args))


async def _stream(args: argparse.Namespace) -> int:
    settings = load_profile(args.profile)
    provider = VectorTileProvider(settings)
    host = HeadlessHost(terrain=FlatTerrain(args.ground))
    views = [_parse_tiles([view]) for view in args.view]
    try:
        if views:
            host.set_view(views[0])
        provider.attach(host)
        for view in views[1:]:
            await provider.drain()
            host.move_to(view)
        await provider.drain()
        active = sorted(provider.active_keys, key=lambda t: (t.level, t.x, t.y))
        print(f'active tiles: {", ".join(map(str, active)) or "-"}')
        print(f'extrusions rendered: {host.renderer.extrusion_count}')
        print(f'stats: {provider.stats}')
    finally:
        await provider.aclose()
    return 0


def cmd_stream(args: argparse.Namespace) -> int:
    return asyncio.run(_stream(args))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='geojson-tiles', description=__doc__)
    parser.add_argument('-v', '--verbose', action='store_true', help='debug logging')
    sub = parser.add_subparsers(dest='command', required=True)

    plan = sub.add_parser('plan', help='show the tiles selected for a view')
    plan.add_argument('profile', help='profile name or path to a TOML file')
    plan.add_argument('tiles', nargs='+', help='visible tiles as z/x/y (comma lists allowed)')
    plan.set_defaults(func=cmd_plan)

    fetch = sub.add_parser('fetch', help='download one tile payload')
    fetch.add_argument('profile')
    fetch.add_argument('tile', help='tile as z/x/y')
    fetch.add_argument('--no-cache', action='store_true', help='bypass the HTTP cache')
    fetch.set_defaults(func=cmd_fetch)

    stream = sub.add_parser('stream', help='replay camera views through the full pipeline')
    stream.add_argument('profile')
    stream.add_argument(
        '--view',
        action='append',
        default=[],
        help='visible tiles of one view, comma separated z/x/y; repeat per view',
    )
    stream.add_argument('--ground', type=float, default=0.0, help='flat terrain height')
    stream.set_defaults(func=cmd_stream)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main application entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)
    try:
        return args.func(args)
    except (FileNotFoundError, ValueError, TileStreamError) as e:
        logger.error('%s', e)
        return 2


if __name__ == '__main__':
    sys.exit(main())
