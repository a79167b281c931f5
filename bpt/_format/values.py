"""
Value tree — the in-memory form of a serialized payload.

Every node is one of seven dataclasses; ``Value`` is their closed union.
Arrays and objects are ordered association lists (``list`` of pairs), never
dicts: legacy consumers read members positionally and producers may emit
duplicate keys, so both order and duplicates survive a load/save cycle.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterator, Union


@dataclass
class Null:
    pass


@dataclass
class Bool:
    value: bool


@dataclass
class Int:
    value: int


@dataclass
class Float:
    """64-bit float.

    ``raw`` is the lexeme the reader saw (e.g. ``b"0.10000000000000001"``).
    The writer re-emits it while it still denotes ``value``, so untouched
    floats keep their original spelling. It is ignored by ``==``.
    """

    value: float
    raw: bytes | None = field(default=None, compare=False, repr=False)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Float):
            return NotImplemented
        if math.isnan(self.value) and math.isnan(other.value):
            return True
        return self.value == other.value and (
            math.copysign(1.0, self.value) == math.copysign(1.0, other.value)
        )


@dataclass
class Str:
    """Byte string. Length prefixes count these bytes, not characters."""

    data: bytes

    @classmethod
    def of(cls, text: str) -> Str:
        return cls(text.encode("utf-8"))

    @property
    def text(self) -> str | None:
        """UTF-8 text, or None if the bytes are not valid UTF-8."""
        try:
            return self.data.decode("utf-8")
        except UnicodeDecodeError:
            return None

    def __str__(self) -> str:
        return self.data.decode("utf-8", errors="replace")


Key = Union[Int, Str]


@dataclass
class Array:
    items: list[tuple[Key, "Value"]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[tuple[Key, "Value"]]:
        return iter(self.items)

    def keys(self) -> list[Key]:
        return [k for k, _ in self.items]

    def get(self, key: Key | int | str | bytes, default: "Value | None" = None) -> "Value | None":
        """First value stored under ``key`` (Int/Str node, int, text or bytes)."""
        wanted = _key_node(key)
        for k, v in self.items:
            if k == wanted:
                return v
        return default

    def set(self, key: Key | int | str | bytes, value: "Value") -> None:
        """Replace the first pair under ``key`` in place, or append a new pair."""
        wanted = _key_node(key)
        for i, (k, _) in enumerate(self.items):
            if k == wanted:
                self.items[i] = (k, value)
                return
        self.items.append((wanted, value))

    def append(self, value: "Value") -> None:
        """Append under the next integer key, like PHP's ``$a[] = ...``."""
        ints = [k.value for k, _ in self.items if isinstance(k, Int)]
        next_key = max(ints) + 1 if ints and max(ints) >= 0 else 0
        self.items.append((Int(next_key), value))

    def is_list(self) -> bool:
        """True when the keys are exactly 0..n-1 in order."""
        return all(
            isinstance(k, Int) and k.value == i for i, (k, _) in enumerate(self.items)
        )


@dataclass
class Object:
    class_name: Str
    properties: list[tuple[Str, "Value"]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.properties)

    def get(self, name: Str | str | bytes, default: "Value | None" = None) -> "Value | None":
        wanted = _key_node(name)
        for k, v in self.properties:
            if k == wanted:
                return v
        return default


Value = Union[Null, Bool, Int, Float, Str, Array, Object]


def _key_node(key: Key | int | str | bytes) -> Key:
    if isinstance(key, (Int, Str)):
        return key
    if isinstance(key, bool):
        raise TypeError("bool is not a valid array key")
    if isinstance(key, int):
        return Int(key)
    if isinstance(key, str):
        return Str.of(key)
    if isinstance(key, bytes):
        return Str(key)
    raise TypeError(f"Unsupported key type: {type(key).__name__}")
