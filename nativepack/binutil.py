"""Field-by-field binary serialization of dataclass trees.

A structure is a dataclass whose fixed-width fields declare a ``struct``
format in their metadata (see ``u8``/``u16``/``u32``/``fixed``). Lists and
nested dataclasses are walked in declared order; ``bytes`` values are sized
blobs written verbatim.
"""

from __future__ import annotations

import dataclasses
import struct
from typing import Any, Iterator, NamedTuple

NodePath = tuple  # ("field", index, "field", ...)


def u8(default: int = 0) -> Any:
    return dataclasses.field(default=default, metadata={"fmt": "<B"})


def u16(default: int = 0) -> Any:
    return dataclasses.field(default=default, metadata={"fmt": "<H"})


def u32(default: int = 0) -> Any:
    return dataclasses.field(default=default, metadata={"fmt": "<I"})


def fixed(length: int, default: bytes = b"") -> Any:
    return dataclasses.field(default=default, metadata={"fmt": f"<{length}s"})


def hidden(default: Any = None) -> Any:
    """A field kept on the structure but never serialized."""
    return dataclasses.field(default=default, metadata={"skip": True})


class Node(NamedTuple):
    path: NodePath
    value: Any
    fmt: str | None

    @property
    def size(self) -> int:
        if self.fmt:
            return struct.calcsize(self.fmt)
        if isinstance(self.value, (bytes, bytearray)):
            return len(self.value)
        return 0


def walk(value: Any, path: NodePath = ()) -> Iterator[Node]:
    """Yield every node of ``value`` in pre-order."""
    if value is None:
        return
    if isinstance(value, (bytes, bytearray)):
        yield Node(path, value, None)
    elif isinstance(value, (list, tuple)):
        yield Node(path, value, None)
        for index, item in enumerate(value):
            yield from walk(item, path + (index,))
    elif dataclasses.is_dataclass(value):
        yield Node(path, value, None)
        for f in dataclasses.fields(value):
            if f.metadata.get("skip"):
                continue
            child = getattr(value, f.name)
            fmt = f.metadata.get("fmt")
            if fmt:
                yield Node(path + (f.name,), child, fmt)
            else:
                yield from walk(child, path + (f.name,))
    else:
        raise TypeError(f"cannot serialize {type(value).__name__} at {path}")


def offsets(value: Any) -> Iterator[tuple[NodePath, int]]:
    """Yield each node's path with the byte offset at which it starts."""
    offset = 0
    for node in walk(value):
        yield node.path, offset
        offset += node.size


def size_of(value: Any) -> int:
    return sum(node.size for node in walk(value))


def dump(value: Any) -> bytes:
    out = bytearray()
    for node in walk(value):
        if node.fmt:
            out += struct.pack(node.fmt, node.value)
        elif isinstance(node.value, (bytes, bytearray)):
            out += node.value
    return bytes(out)
