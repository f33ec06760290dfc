"""Domain layer - tile models, settings and profiles."""
from domain.models import ProviderSettings, Rectangle, TileCoordinate, TileRange
from domain.profiles import (
    delete_profile,
    ensure_profiles_dir,
    list_profiles,
    load_profile,
    save_profile,
)

__all__ = [
    'ProviderSettings',
    'Rectangle',
    'TileCoordinate',
    'TileRange',
    'delete_profile',
    'ensure_profiles_dir',
    'list_profiles',
    'load_profile',
    'save_profile',
]
