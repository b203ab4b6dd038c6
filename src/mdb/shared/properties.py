"""
Typed property bags (extension maps) for files, operations, units and collections.

Every entity carries a JSON ``properties`` column. Values are restricted to
scalars (str, int, float, bool, None) or flat lists of scalars so merges stay
predictable. Dates and datetimes are stored as ISO strings.

Merge-patch semantics: keys in the patch are added or overwritten, keys absent
from the patch are left alone. Deleting a key is always an explicit call to
``without_keys``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date, datetime
from typing import Any, Union

Scalar = Union[str, int, float, bool, None]
PropertyValue = Union[Scalar, list[Scalar]]
Properties = dict[str, PropertyValue]

_SCALAR_TYPES = (str, int, float, bool, type(None))


class PropertyValueError(ValueError):
    """Raised when a property value is not a scalar or a flat list of scalars."""

    def __init__(self, key: str, value: Any):
        super().__init__(f"Property {key!r} has unsupported value type {type(value).__name__}")
        self.key = key


def _coerce_scalar(key: str, value: Any) -> Scalar:
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, _SCALAR_TYPES):
        return value
    raise PropertyValueError(key, value)


def coerce_value(key: str, value: Any) -> PropertyValue:
    """Coerce a single property value, raising PropertyValueError for nested structures."""
    if isinstance(value, list | tuple):
        return [_coerce_scalar(key, v) for v in value]
    return _coerce_scalar(key, value)


def coerce_properties(values: Mapping[str, Any] | None) -> Properties:
    if not values:
        return {}
    return {str(k): coerce_value(str(k), v) for k, v in values.items()}


def merge_properties(current: Mapping[str, Any] | None, patch: Mapping[str, Any] | None) -> Properties:
    """Return a new property bag with ``patch`` merged over ``current``."""
    merged: Properties = dict(current or {})
    merged.update(coerce_properties(patch))
    return merged


def without_keys(current: Mapping[str, Any] | None, keys: Iterable[str]) -> Properties:
    drop = set(keys)
    return {k: v for k, v in (current or {}).items() if k not in drop}
