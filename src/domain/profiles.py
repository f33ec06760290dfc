from __future__ import annotations

import logging
import os
from pathlib import Path

import tomlkit

from domain.models import ProviderSettings
from domain.toml_sections import flat_to_sectioned, sectioned_to_flat
from shared.constants import APP_DIR_NAME, PROFILES_DIR

logger = logging.getLogger(__name__)


def _user_profiles_dir() -> Path:
    """
    Determine profiles directory.

    1) If <project_root>/configs/profiles exists, use it (run-from-repo setups).
    2) Otherwise fall back to the user config directory:
       $XDG_CONFIG_HOME/GeoJSONTiles/profiles or ~/.config/GeoJSONTiles/profiles.
    """
    project_root = Path(__file__).resolve().parent.parent.parent
    local_profiles = project_root / PROFILES_DIR
    if local_profiles.exists():
        return local_profiles

    base = Path(os.getenv('XDG_CONFIG_HOME') or (Path.home() / '.config'))
    return base / APP_DIR_NAME / 'profiles'


def ensure_profiles_dir() -> Path:
    profiles_dir = _user_profiles_dir()
    profiles_dir.mkdir(parents=True, exist_ok=True)
    return profiles_dir


def list_profiles() -> list[str]:
    """Список имён профилей без расширения."""
    folder = ensure_profiles_dir()
    return sorted(p.stem for p in folder.glob('*.toml') if p.is_file())


def profile_path(name: str) -> Path:
    """Путь к файлу профиля по имени."""
    return ensure_profiles_dir() / f'{name}.toml'


def _resolve(name_or_path: str | Path) -> Path:
    p = Path(name_or_path)
    if p.suffix.lower() == '.toml':
        return p
    return profile_path(str(name_or_path))


def load_profile(name_or_path: str | Path) -> ProviderSettings:
    """
    Загрузка и валидация профиля TOML -> ProviderSettings.

    Принимает имя профиля из каталога профилей или путь к файлу TOML.
    Понимает как секционный формат, так и плоский список ключей.
    """
    path = _resolve(name_or_path)
    if not path.exists():
        msg = f'Профиль не найден: {path}'
        raise FileNotFoundError(msg)
    data = tomlkit.parse(path.read_text(encoding='utf-8')).unwrap()
    settings = ProviderSettings.model_validate(sectioned_to_flat(data))
    logger.info(
        'Profile %s loaded: url=%s levels=[%d, %d] upper_limit=%s',
        path.name,
        settings.url,
        settings.minimum_level,
        settings.maximum_level,
        settings.upper_level_limit,
    )
    return settings


def save_profile(name_or_path: str | Path, settings: ProviderSettings) -> Path:
    """Сохранение профиля в TOML (без атомарности и бэкапов)."""
    path = _resolve(name_or_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = flat_to_sectioned(settings.model_dump(mode='json'))
    path.write_text(tomlkit.dumps(data), encoding='utf-8')
    return path


def delete_profile(name: str) -> None:
    """Удаление файла профиля, если он существует."""
    path = profile_path(name)
    if path.exists():
        path.unlink()
