"""Mapping layer between flat ProviderSettings fields and sectioned TOML format.

ProviderSettings remains a flat Pydantic model (apart from the nested
rectangle). This module provides two functions:
- flat_to_sectioned(): flat dict -> sectioned dict (for TOML save)
- sectioned_to_flat(): sectioned dict -> flat dict (for TOML load)
"""

from __future__ import annotations

# {section_name: {flat_field_name: short_name_in_toml}}
SECTION_MAP: dict[str, dict[str, str]] = {
    'source': {
        'url': 'url',
        'url_params': 'params',
        'concurrency': 'concurrency',
        'request_timeout_s': 'timeout_s',
    },
    'levels': {
        'minimum_level': 'minimum',
        'maximum_level': 'maximum',
        'lower_level_limit': 'lower_limit',
        'upper_level_limit': 'upper_limit',
    },
    'features': {
        'id_property': 'id_property',
        'height_property': 'height_property',
    },
}

# The rectangle is stored as its own table rather than as prefixed fields
EXTENT_SECTION = 'extent'
EXTENT_FIELD = 'rectangle'

# Reverse index: flat_field -> (section, short_name)
_FLAT_TO_SECTION: dict[str, tuple[str, str]] = {}
for _section, _fields in SECTION_MAP.items():
    for _flat, _short in _fields.items():
        _FLAT_TO_SECTION[_flat] = (_section, _short)

# Reverse index: section -> {short_name: flat_field}
_SECTION_TO_FLAT: dict[str, dict[str, str]] = {}
for _section, _fields in SECTION_MAP.items():
    _SECTION_TO_FLAT[_section] = {v: k for k, v in _fields.items()}


def flat_to_sectioned(flat: dict) -> dict:
    """Convert flat ProviderSettings dict to sectioned dict for TOML output."""
    result: dict = {}
    for key, value in flat.items():
        if value is None:
            # TOML has no null
            continue
        if key == EXTENT_FIELD:
            result[EXTENT_SECTION] = dict(value)
        elif key in _FLAT_TO_SECTION:
            section, short_name = _FLAT_TO_SECTION[key]
            result.setdefault(section, {})[short_name] = value
        else:
            result.setdefault('common', {})[key] = value
    return result


def sectioned_to_flat(data: dict) -> dict:
    """Convert sectioned TOML dict to flat dict for ProviderSettings validation."""
    flat: dict = {}
    for key, value in data.items():
        if key == EXTENT_SECTION and isinstance(value, dict):
            flat[EXTENT_FIELD] = dict(value)
        elif isinstance(value, dict) and key in _SECTION_TO_FLAT:
            mapping = _SECTION_TO_FLAT[key]
            for short_name, field_value in value.items():
                flat[mapping.get(short_name, short_name)] = field_value
        elif isinstance(value, dict) and key == 'common':
            flat.update(value)
        else:
            # Top-level key (flat TOML)
            flat[key] = value
    return flat
