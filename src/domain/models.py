from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, field_validator, model_validator

from shared.constants import (
    DEFAULT_HEIGHT_PROPERTY,
    DEFAULT_ID_PROPERTY,
    DEFAULT_LOWER_LEVEL_LIMIT,
    DEFAULT_MAXIMUM_LEVEL,
    DEFAULT_MINIMUM_LEVEL,
    DOWNLOAD_CONCURRENCY,
    HTTP_TIMEOUT_DEFAULT,
    WORLD_LAT_MAX_DEG,
    WORLD_LNG_HALF_SPAN_DEG,
)


@dataclass(frozen=True)
class TileCoordinate:
    """Tile identity in the quadtree: (level, x, y).

    Instances are the cache keys of the pipeline, so equality and hash are
    defined over the triple only.
    """

    level: int
    x: int
    y: int

    def __post_init__(self) -> None:
        if self.level < 0 or self.x < 0 or self.y < 0:
            msg = f'Tile fields must be non-negative: z={self.level} x={self.x} y={self.y}'
            raise ValueError(msg)

    @classmethod
    def of(cls, tile: Any) -> TileCoordinate:
        """Normalize a renderer tile (object or mapping with level/x/y)."""
        if isinstance(tile, TileCoordinate):
            return tile
        if isinstance(tile, Mapping):
            return cls(int(tile['level']), int(tile['x']), int(tile['y']))
        return cls(int(tile.level), int(tile.x), int(tile.y))

    @classmethod
    def parse(cls, text: str) -> TileCoordinate:
        """Parse 'z/x/y' notation."""
        parts = text.strip().split('/')
        if len(parts) != 3:
            msg = f'Expected z/x/y, got {text!r}'
            raise ValueError(msg)
        z, x, y = (int(p) for p in parts)
        return cls(z, x, y)

    def __str__(self) -> str:
        return f'z{self.level}x{self.x}y{self.y}'


@dataclass(frozen=True)
class TileRange:
    """Inclusive tile rectangle of one level."""

    min_row: int
    max_row: int
    min_col: int
    max_col: int

    def contains(self, tile: TileCoordinate) -> bool:
        return (
            self.min_col <= tile.x <= self.max_col
            and self.min_row <= tile.y <= self.max_row
        )


ROOT_TILE_RANGE = TileRange(0, 0, 0, 0)


class Rectangle(BaseModel):
    """Geographic extent of the tile data, in degrees."""

    model_config = {'frozen': True}

    west: float
    south: float
    east: float
    north: float

    @field_validator('west', 'east')
    @classmethod
    def validate_lon(cls, v: float) -> float:
        v = float(v)
        if not (-WORLD_LNG_HALF_SPAN_DEG <= v <= WORLD_LNG_HALF_SPAN_DEG):
            msg = 'Долгота должна быть в диапазоне [-180, 180]'
            raise ValueError(msg)
        return v

    @field_validator('south', 'north')
    @classmethod
    def validate_lat(cls, v: float) -> float:
        v = float(v)
        if not (-WORLD_LAT_MAX_DEG <= v <= WORLD_LAT_MAX_DEG):
            msg = 'Широта должна быть в диапазоне [-90, 90]'
            raise ValueError(msg)
        return v

    @model_validator(mode='after')
    def validate_order(self) -> Rectangle:
        # west > east допустимо: прямоугольник пересекает антимеридиан
        if self.south > self.north:
            msg = 'Прямоугольник задан некорректно: south <= north'
            raise ValueError(msg)
        return self

    @classmethod
    def from_degrees(
        cls, west: float, south: float, east: float, north: float
    ) -> Rectangle:
        return cls(west=west, south=south, east=east, north=north)

    @classmethod
    def from_radians(
        cls, west: float, south: float, east: float, north: float
    ) -> Rectangle:
        return cls(
            west=math.degrees(west),
            south=math.degrees(south),
            east=math.degrees(east),
            north=math.degrees(north),
        )

    @property
    def south_west(self) -> tuple[float, float]:
        return self.west, self.south

    @property
    def north_east(self) -> tuple[float, float]:
        return self.east, self.north


class ProviderSettings(BaseModel):
    """Настройки поставщика векторных тайлов GeoJSON."""

    model_config = {
        'extra': 'ignore',  # игнорировать лишние поля из профилей
    }

    # Адрес сервиса тайлов; плейсхолдеры {x}, {y}, {z} допустимы в пути
    url: str
    # Параметры запроса (например, WMTS KVP), сериализуются в query string
    url_params: dict[str, Any] | None = None

    # Область данных
    rectangle: Rectangle

    # Окно уровней, для которых строятся диапазоны тайлов
    minimum_level: int = DEFAULT_MINIMUM_LEVEL
    maximum_level: int = DEFAULT_MAXIMUM_LEVEL
    # Ниже этого уровня данные не запрашиваются
    lower_level_limit: int = DEFAULT_LOWER_LEVEL_LIMIT
    # Выше этого уровня тайлы объединяются до него (None: без уточнения)
    upper_level_limit: int | None = None

    # Сеть
    concurrency: int = DOWNLOAD_CONCURRENCY
    request_timeout_s: float = HTTP_TIMEOUT_DEFAULT

    # Свойства объектов
    id_property: str = DEFAULT_ID_PROPERTY
    height_property: str = DEFAULT_HEIGHT_PROPERTY

    @field_validator('minimum_level', 'maximum_level', 'lower_level_limit')
    @classmethod
    def validate_level(cls, v: int) -> int:
        v = int(v)
        if v < 0:
            msg = 'Уровень не может быть отрицательным'
            raise ValueError(msg)
        return v

    @field_validator('upper_level_limit')
    @classmethod
    def validate_upper_level(cls, v: int | None) -> int | None:
        # 0 трактуется как «не задано»
        if not v:
            return None
        if v < 0:
            msg = 'Уровень не может быть отрицательным'
            raise ValueError(msg)
        return int(v)

    @field_validator('concurrency')
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        return max(1, int(v))

    @field_validator('request_timeout_s')
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        v = float(v)
        if v <= 0:
            msg = 'Таймаут должен быть положительным'
            raise ValueError(msg)
        return v

    @model_validator(mode='after')
    def validate_level_window(self) -> ProviderSettings:
        if self.minimum_level > self.maximum_level:
            msg = 'minimum_level должен быть не больше maximum_level'
            raise ValueError(msg)
        return self
