"""Geo module - tiling scheme math and GeoJSON feature processing."""

from .features import Extrusion, FeatureFilter, Footprint, extrude_features
from .tiling import ancestor_by_factor, children, lon_lat_to_tile

__all__ = [
    'Extrusion',
    'FeatureFilter',
    'Footprint',
    'ancestor_by_factor',
    'children',
    'extrude_features',
    'lon_lat_to_tile',
]
