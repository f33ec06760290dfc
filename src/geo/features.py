"""
Обработка объектов GeoJSON тайла: фильтр по свойству и выдавливание полигонов.

Призмы строятся только из Polygon и MultiPolygon; прочие геометрии
пропускаются с предупреждением в журнале.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, MutableMapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from shared.constants import (
    DEFAULT_HEIGHT_PROPERTY,
    DEFAULT_ID_PROPERTY,
    GEOMETRY_MULTIPOLYGON,
    GEOMETRY_POLYGON,
    MIN_POINTS_FOR_RING,
)
from shared.errors import MalformedPayloadError, UnsupportedGeometryError

if TYPE_CHECKING:
    from tiles.host import TerrainSampler

logger = logging.getLogger(__name__)

Position = tuple[float, float]
Ring = list[Position]


@dataclass(frozen=True)
class FeatureFilter:
    """Exclude features whose `property_name` value is one of `excluded_values`.

    An unset property or value list means every feature is kept.
    """

    property_name: str | None = None
    excluded_values: tuple[Any, ...] | None = None

    @classmethod
    def by(cls, property_name: str, values: Iterable[Any] | None) -> FeatureFilter:
        if isinstance(values, (str, bytes)):
            msg = f'Excluded values must be a list of values, got {type(values).__name__}'
            raise TypeError(msg)
        return cls(property_name, None if values is None else tuple(values))

    @property
    def active(self) -> bool:
        return bool(self.property_name) and self.excluded_values is not None

    def excludes(self, properties: Mapping[str, Any]) -> bool:
        if not self.active:
            return False
        return properties.get(self.property_name) in self.excluded_values


@dataclass(frozen=True)
class Footprint:
    """Outer ring plus holes, positions as (lon, lat) degrees."""

    outer: Ring
    holes: list[Ring] = field(default_factory=list)

    def center(self) -> Position:
        """Центр описывающего прямоугольника внешнего кольца."""
        lons = [p[0] for p in self.outer]
        lats = [p[1] for p in self.outer]
        return (min(lons) + max(lons)) / 2, (min(lats) + max(lats)) / 2


@dataclass(frozen=True)
class Extrusion:
    """One prism handed to the renderer: footprint, top and base heights."""

    footprint: Footprint
    extruded_height: float
    base_height: float


def _parse_ring(raw: Any) -> Ring:
    if not isinstance(raw, list) or len(raw) < MIN_POINTS_FOR_RING:
        msg = f'Polygon ring must be a list of at least {MIN_POINTS_FOR_RING} positions'
        raise MalformedPayloadError(msg)
    ring: Ring = []
    for pos in raw:
        try:
            ring.append((float(pos[0]), float(pos[1])))
        except (TypeError, ValueError, IndexError) as e:
            msg = f'Invalid position {pos!r}'
            raise MalformedPayloadError(msg) from e
    return ring


def _parse_polygon(raw: Any) -> Footprint:
    if not isinstance(raw, list) or not raw:
        msg = 'Polygon coordinates must be a non-empty list of rings'
        raise MalformedPayloadError(msg)
    rings = [_parse_ring(r) for r in raw]
    return Footprint(outer=rings[0], holes=rings[1:])


def footprints_of(geometry: Any) -> list[Footprint]:
    """Split a Polygon/MultiPolygon geometry into footprints.

    Raises:
        UnsupportedGeometryError: any other geometry type.
        MalformedPayloadError: structurally invalid coordinates.
    """
    if not isinstance(geometry, Mapping):
        msg = 'Feature has no geometry object'
        raise MalformedPayloadError(msg)
    geometry_type = geometry.get('type')
    coordinates = geometry.get('coordinates')
    if geometry_type == GEOMETRY_POLYGON:
        return [_parse_polygon(coordinates)]
    if geometry_type == GEOMETRY_MULTIPOLYGON:
        if not isinstance(coordinates, list):
            msg = 'MultiPolygon coordinates must be a list of polygons'
            raise MalformedPayloadError(msg)
        return [_parse_polygon(polygon) for polygon in coordinates]
    raise UnsupportedGeometryError(geometry_type)


def features_of(payload: Any) -> list[Mapping[str, Any]]:
    """Validate the feature collection envelope and return its features."""
    if not isinstance(payload, Mapping):
        msg = 'Payload is not a JSON object'
        raise MalformedPayloadError(msg)
    features = payload.get('features')
    if not isinstance(features, list):
        msg = 'Payload has no "features" list'
        raise MalformedPayloadError(msg)
    for feature in features:
        if not isinstance(feature, Mapping):
            msg = f'Feature is not an object: {feature!r}'
            raise MalformedPayloadError(msg)
    return features


def _height(properties: Mapping[str, Any], height_property: str) -> float:
    value = properties.get(height_property)
    if value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        msg = f'Non-numeric {height_property}: {value!r}'
        raise MalformedPayloadError(msg) from e


def extrude_features(
    payload: Any,
    feature_filter: FeatureFilter,
    terrain: TerrainSampler | None,
    *,
    id_property: str = DEFAULT_ID_PROPERTY,
    height_property: str = DEFAULT_HEIGHT_PROPERTY,
    height_by_id: MutableMapping[Any, float] | None = None,
) -> list[Extrusion]:
    """
    Превращает полезную нагрузку тайла в список призм для рендерера.

    Основание каждого контура берётся из рельефа в центре его охватывающего
    прямоугольника (0, если высота неизвестна), верх выше основания на
    значение свойства высоты. Исключённые фильтром объекты и неподдерживаемые
    геометрии пропускаются.

    Raises:
        MalformedPayloadError: некорректная полезная нагрузка или объект.
    """
    extrusions: list[Extrusion] = []
    skipped: dict[str, int] = {}
    for feature in features_of(payload):
        properties = feature.get('properties') or {}
        if not isinstance(properties, Mapping):
            msg = 'Feature properties must be an object'
            raise MalformedPayloadError(msg)
        if feature_filter.excludes(properties):
            continue
        try:
            footprints = footprints_of(feature.get('geometry'))
        except UnsupportedGeometryError as e:
            key = str(e.geometry_type)
            skipped[key] = skipped.get(key, 0) + 1
            continue

        height = _height(properties, height_property)
        if height_by_id is not None and id_property in properties:
            height_by_id[properties[id_property]] = height

        for footprint in footprints:
            base = _sample_terrain(terrain, footprint)
            extrusions.append(Extrusion(footprint, base + height, base))

    for geometry_type, count in skipped.items():
        logger.warning(
            'Geometry type "%s" detected in %d feature(s), but is not going to be rendered',
            geometry_type,
            count,
        )
    return extrusions


def _sample_terrain(terrain: TerrainSampler | None, footprint: Footprint) -> float:
    if terrain is None:
        return 0.0
    lon, lat = footprint.center()
    height = terrain.get_height(lon, lat)
    return float(height) if height is not None else 0.0
