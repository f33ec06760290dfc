"""Pytest configuration and fixtures for tile streaming tests."""

import sys
from pathlib import Path

import pytest

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))


def make_polygon_feature(
    house_id='H1',
    height=10.0,
    lon=100.0,
    lat=10.0,
    size=0.001,
    **extra_properties,
):
    """GeoJSON Polygon feature with a square footprint."""
    ring = [
        [lon, lat],
        [lon + size, lat],
        [lon + size, lat + size],
        [lon, lat + size],
        [lon, lat],
    ]
    properties = {'house_id': house_id, 'height': height, **extra_properties}
    return {
        'type': 'Feature',
        'geometry': {'type': 'Polygon', 'coordinates': [ring]},
        'properties': properties,
    }


def make_feature_collection(*features):
    return {'type': 'FeatureCollection', 'features': list(features)}


@pytest.fixture
def polygon_feature():
    return make_polygon_feature


@pytest.fixture
def feature_collection():
    return make_feature_collection
