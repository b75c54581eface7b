"""Shared validation helpers for frozen dataclass models.

Private module -- not part of the public API. Used by ``__post_init__``
methods in sibling model modules to enforce runtime type constraints and
deep immutability of JSON payloads.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any


_DEFAULT_MAX_DEPTH: int = 64


def validate_instance(value: Any, expected: type | tuple[type, ...], name: str) -> None:
    """Raise ``TypeError`` if *value* is not an instance of *expected*."""
    if not isinstance(value, expected):
        names = (
            " or ".join(t.__name__ for t in expected)
            if isinstance(expected, tuple)
            else expected.__name__
        )
        raise TypeError(f"{name} must be {names}, got {type(value).__name__}")


def validate_optional_instance(value: Any, expected: type, name: str) -> None:
    """Like :func:`validate_instance` but also accepts ``None``."""
    if value is not None:
        validate_instance(value, expected, name)


def validate_json(
    obj: Any, name: str, *, max_depth: int = _DEFAULT_MAX_DEPTH, _depth: int = 0
) -> None:
    """Raise ``TypeError`` if *obj* is not a JSON-representable value.

    Accepts ``None``, ``bool``, ``int``, finite ``float``, ``str``, lists,
    and mappings with string keys, nested up to *max_depth* levels.
    """
    if _depth > max_depth:
        raise ValueError(f"{name} exceeds maximum nesting depth of {max_depth}")
    if obj is None or isinstance(obj, bool | int | str):
        return
    if isinstance(obj, float):
        if not math.isfinite(obj):
            raise ValueError(f"{name} contains a non-finite float")
        return
    if isinstance(obj, Mapping):
        for key, value in obj.items():
            if not isinstance(key, str):
                raise TypeError(f"{name} keys must be str, got {type(key).__name__}")
            validate_json(value, name, max_depth=max_depth, _depth=_depth + 1)
        return
    if isinstance(obj, list | tuple):
        for item in obj:
            validate_json(item, name, max_depth=max_depth, _depth=_depth + 1)
        return
    raise TypeError(f"{name} contains a non-JSON value of type {type(obj).__name__}")


def deep_freeze(obj: Any) -> Any:
    """Recursively wrap dicts with ``MappingProxyType`` and lists as tuples."""
    if isinstance(obj, Mapping):
        return MappingProxyType({k: deep_freeze(v) for k, v in obj.items()})
    if isinstance(obj, list | tuple):
        return tuple(deep_freeze(item) for item in obj)
    return obj


def thaw(obj: Any) -> Any:
    """Inverse of :func:`deep_freeze`: return plain, mutable ``dict``/``list`` copies."""
    if isinstance(obj, Mapping):
        return {k: thaw(v) for k, v in obj.items()}
    if isinstance(obj, list | tuple):
        return [thaw(item) for item in obj]
    return obj
