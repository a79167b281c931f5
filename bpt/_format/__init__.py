"""
Internal serialized-value engine — PHP ``serialize()`` grammar subset.

The payload of every .bpt container is one serialized value, usually an
array with VERSION, TEMPLATE, PARAMETERS, VARIABLES, CONSTANTS and
DOCUMENT_FIELDS members. This package reads and writes that grammar; it
knows nothing about compression.
"""

from bpt._format.spec import looks_like_serialized
from bpt._format.values import (
    Array, Bool, Float, Int, Key, Null, Object, Str, Value,
)
from bpt._format.reader import PHPReader
from bpt._format.writer import PHPWriter, format_float


def loads(data: bytes | str, max_depth: int | None = None) -> Value:
    """Parse serialized bytes (or text) into a value tree."""
    if max_depth is None:
        return PHPReader.parse(data)
    return PHPReader.parse(data, max_depth=max_depth)


def dumps(value: Value, max_depth: int | None = None) -> bytes:
    """Serialize a value tree into bytes."""
    if max_depth is None:
        return PHPWriter.serialize(value)
    return PHPWriter.serialize(value, max_depth=max_depth)
