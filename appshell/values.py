"""
Conversions between script values and plain JSON-compatible data.

Script values are ordinary Python objects. The bridge understands the
serializable subset (scalars, bytes, lists, tuples, dicts and read-only
mappings) and refuses everything else.
"""

from __future__ import annotations

import base64
from types import MappingProxyType
from typing import Any

SCALAR_TYPES = (bool, int, float, str)


class UnconvertibleValue(TypeError):
    """Raised when a value has no plain-data representation."""

    pass


def type_name(value: Any) -> str:
    """Name of a value's type as shown in argument errors."""
    if value is None:
        return "undefined"
    return type(value).__name__


def to_string(value: Any) -> str:
    """Stringify a value the way print and fmt do: strings raw, others via repr."""
    if isinstance(value, str):
        return value
    return repr(value)


def to_interface(value: Any) -> Any:
    """
    Convert a script value into plain JSON-compatible data.

    Bytes are rendered as base64 text. Tuples become lists and read-only
    mappings become dicts. Functions, modules, instances, non-string map keys
    and cyclic containers raise UnconvertibleValue.
    """
    return _to_interface(value, set())


def _to_interface(value: Any, active: set[int]) -> Any:
    if value is None or type(value) in SCALAR_TYPES:
        return value
    if type(value) is bytes:
        return base64.b64encode(value).decode("ascii")

    if type(value) in (list, tuple, dict, MappingProxyType):
        if id(value) in active:
            raise UnconvertibleValue(f"cyclic {type_name(value)}")
        active.add(id(value))
        try:
            if type(value) in (list, tuple):
                return [_to_interface(item, active) for item in value]
            out: dict[str, Any] = {}
            for key, item in value.items():
                if not isinstance(key, str):
                    raise UnconvertibleValue(f"map key of type {type_name(key)}")
                out[key] = _to_interface(item, active)
            return out
        finally:
            active.discard(id(value))

    raise UnconvertibleValue(f"cannot convert {type_name(value)}")


def from_interface(data: Any) -> Any:
    """Convert decoded JSON data into a script value."""
    if data is None or type(data) in SCALAR_TYPES:
        return data
    if isinstance(data, (list, tuple)):
        return [from_interface(item) for item in data]
    if isinstance(data, dict):
        return {str(key): from_interface(item) for key, item in data.items()}
    raise UnconvertibleValue(f"cannot convert {type_name(data)}")


__all__ = [
    "UnconvertibleValue",
    "from_interface",
    "to_interface",
    "to_string",
    "type_name",
]
