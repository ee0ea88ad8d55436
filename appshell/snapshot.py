"""
Snapshot engine: capture and restore the serializable part of a session.

Values are dispatched on their exact runtime type. Containers are converted in
one pass through the value bridge, so a container shared between two globals
is written twice and restores as two independent copies. Functions, modules,
class instances and other opaque values are never written; their names are
listed under "failed" instead.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any, TextIO

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import SnapshotError
from .values import UnconvertibleValue, from_interface, to_interface

logger = logging.getLogger(__name__)

Snapshotter = Callable[[dict[int, Any], Any], tuple[Any, bool]]


class SnapshotDocument(BaseModel):
    """On-disk snapshot: serialized globals plus the names that were skipped."""

    model_config = ConfigDict(extra="ignore")

    data: dict[str, Any] = Field(default_factory=dict)
    failed: dict[str, dict[str, Any]] = Field(default_factory=dict)


def _snapshot_atom(seen: dict[int, Any], value: Any) -> tuple[Any, bool]:
    converted = to_interface(value)
    seen[id(value)] = (value, converted, True)
    return converted, True


def _snapshot_container(seen: dict[int, Any], value: Any) -> tuple[Any, bool]:
    try:
        return to_interface(value), True
    except UnconvertibleValue:
        return None, False


SNAPSHOTTERS: dict[type, Snapshotter] = {
    str: _snapshot_atom,
    int: _snapshot_atom,
    float: _snapshot_atom,
    bool: _snapshot_atom,
    bytes: _snapshot_atom,
    dict: _snapshot_container,
    MappingProxyType: _snapshot_container,
    list: _snapshot_container,
    tuple: _snapshot_container,
}


class Snapshot:
    """
    Walks a global environment and keeps what can be serialized.

    The seen table maps id(value) to (value, converted, ok). Holding the value
    keeps its id from being reused while the walk is running.
    """

    def __init__(self) -> None:
        self.items: dict[str, Any] = {}
        self.failed: set[str] = set()
        self._seen: dict[int, tuple[Any, Any, bool]] = {}

    def take(self, env: Mapping[str, Any]) -> Snapshot:
        self._seen = {}
        self.items = {}
        self.failed = set()
        for name, value in env.items():
            converted, ok = self._take_one(value)
            if ok:
                self.items[name] = converted
            else:
                self.failed.add(name)
        return self

    def _take_one(self, value: Any) -> tuple[Any, bool]:
        entry = self._seen.get(id(value))
        if entry is not None:
            return entry[1], entry[2]

        handler = SNAPSHOTTERS.get(type(value))
        # sentinel first so a cycle back to this value stops here
        self._seen[id(value)] = (value, None, False)
        if handler is None:
            return None, False

        converted, ok = handler(self._seen, value)
        if ok:
            self._seen[id(value)] = (value, converted, True)
        return converted, ok

    def document(self) -> SnapshotDocument:
        """Build the snapshot document, moving strictly non-JSON values to failed."""
        doc = SnapshotDocument()
        for name, converted in self.items.items():
            try:
                json.dumps(converted, allow_nan=False)
            except (TypeError, ValueError):
                doc.failed[name] = {}
                continue
            doc.data[name] = converted
        for name in self.failed:
            doc.failed[name] = {}
        return doc


def write_snapshot(env: Mapping[str, Any], out: TextIO) -> SnapshotDocument:
    """Serialize env as a single JSON object followed by a newline."""
    doc = Snapshot().take(env).document()
    logger.debug("snapshot: %d saved, %d failed", len(doc.data), len(doc.failed))
    out.write(doc.model_dump_json())
    out.write("\n")
    return doc


def read_snapshot(inp: TextIO | None) -> dict[str, Any]:
    """
    Decode a snapshot document and convert its data back into script values.

    Raises:
        SnapshotError: If the input is missing or not a snapshot document,
            or a value cannot be converted.
    """
    if inp is None:
        raise SnapshotError("no snapshot input")
    try:
        doc = SnapshotDocument.model_validate_json(inp.read())
    except ValidationError as e:
        raise SnapshotError(f"invalid snapshot: {e}") from e

    values: dict[str, Any] = {}
    for name, data in doc.data.items():
        try:
            values[name] = from_interface(data)
        except UnconvertibleValue as e:
            raise SnapshotError(f"cannot restore {name!r}: {e}") from e
    logger.debug("restore: %d values, %d previously failed", len(values), len(doc.failed))
    return values


__all__ = [
    "SNAPSHOTTERS",
    "Snapshot",
    "SnapshotDocument",
    "read_snapshot",
    "write_snapshot",
]
