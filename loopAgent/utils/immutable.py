"""Deep-freezing helpers for values that cross isolation boundaries."""

from __future__ import annotations

import copy
import dataclasses
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

_SCALARS = (str, bytes, int, float, complex, bool, type(None), Enum)


def deep_freeze(value: Any) -> Any:
    """Return an immutable deep copy of ``value``.

    dict -> read-only mapping over a fresh dict, list/tuple -> tuple,
    set -> frozenset. Scalars pass through unchanged. A frozen dataclass is
    returned as is when its fields are already immutable, otherwise as a copy
    with every field frozen.
    Anything else is converted to its string form so no mutable object can
    leak across.
    """
    if isinstance(value, _SCALARS):
        return value
    if isinstance(value, Mapping):
        return MappingProxyType({key: deep_freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        items = tuple(deep_freeze(item) for item in value)
        if isinstance(value, tuple) and all(new is old for new, old in zip(items, value)):
            return value
        return items
    if isinstance(value, (set, frozenset)):
        return frozenset(deep_freeze(item) for item in value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        params = getattr(type(value), "__dataclass_params__", None)
        if params is not None and params.frozen:
            return _freeze_record(value)
    return str(value)


def _freeze_record(record: Any) -> Any:
    current = {f.name: getattr(record, f.name) for f in dataclasses.fields(record)}
    frozen = {name: deep_freeze(item) for name, item in current.items()}
    if all(frozen[name] is item for name, item in current.items()):
        return record
    clone = copy.copy(record)
    for name, item in frozen.items():
        object.__setattr__(clone, name, item)
    return clone


def thaw(value: Any) -> Any:
    """Return a plain mutable copy of a deep-frozen value."""
    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [thaw(item) for item in value]
    if isinstance(value, frozenset):
        return {thaw(item) for item in value}
    return value
