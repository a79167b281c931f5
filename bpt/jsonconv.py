"""
JSON bridge — the "edit as JSON, convert back" pathway of the legacy editor.

JSON is a lossy view of a value tree. The rules, in both directions:

    tree -> JSON                         JSON -> tree
    Null / Bool / Int                    null / true,false / integer
    Float (INF, -INF, NAN as strings)    number with '.' or exponent -> Float
    Str (invalid UTF-8 replaced)         string -> Str (numeric strings stay Str)
    Array keyed 0..n-1 in order -> list  list -> Array keyed 0..n-1
    any other Array -> object            object -> Array, keys that are canonical
                                           int64 decimals ("7", "-3") -> Int keys
    Object -> object with "__class__"    object whose first key is "__class__" -> Object

Lost on the way to JSON: duplicate keys (last wins), the Int/Str distinction
of keys like "7", bytes that are not UTF-8, Float spellings.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any

from bpt import INT_MAX, INT_MIN, MAX_DEPTH
from bpt.errors import JSONConversionError
from bpt._format.values import Array, Bool, Float, Int, Key, Null, Object, Str, Value

CLASS_KEY = "__class__"

# PHP turns these string keys into integer keys
_CANONICAL_INT_RE = re.compile(r"^(0|-?[1-9][0-9]*)\Z")

_NON_FINITE = {"INF": math.inf, "-INF": -math.inf, "NAN": math.nan}


def _key_text(key: Key) -> str:
    if isinstance(key, Int):
        return str(key.value)
    return str(key)


def to_jsonable(value: Value) -> Any:
    """Convert a value tree into plain Python data for json.dumps()."""
    if isinstance(value, Null):
        return None
    if isinstance(value, Bool):
        return value.value
    if isinstance(value, Int):
        return value.value
    if isinstance(value, Float):
        v = value.value
        if math.isnan(v):
            return "NAN"
        if math.isinf(v):
            return "INF" if v > 0 else "-INF"
        return float(v)
    if isinstance(value, Str):
        return str(value)
    if isinstance(value, Array):
        if value.is_list():
            return [to_jsonable(v) for _, v in value.items]
        return {_key_text(k): to_jsonable(v) for k, v in value.items}
    if isinstance(value, Object):
        out: dict[str, Any] = {CLASS_KEY: str(value.class_name)}
        for name, v in value.properties:
            out[str(name)] = to_jsonable(v)
        return out
    raise JSONConversionError(f"Not a value node: {type(value).__name__}")


def to_json(value: Value, indent: int | None = 2) -> str:
    return json.dumps(to_jsonable(value), indent=indent, ensure_ascii=False)


def _array_key(name: str) -> Key:
    if _CANONICAL_INT_RE.match(name):
        number = int(name)
        if INT_MIN <= number <= INT_MAX:
            return Int(number)
    return Str.of(name)


def _from_pairs(pairs: list[tuple[str, Any]], depth: int, max_depth: int) -> Value:
    if pairs and pairs[0][0] == CLASS_KEY and isinstance(pairs[0][1], str):
        if not pairs[0][1]:
            raise JSONConversionError("__class__ must be a non-empty string")
        properties = [(Str.of(name), _convert(v, depth, max_depth)) for name, v in pairs[1:]]
        return Object(Str.of(pairs[0][1]), properties)
    return Array([(_array_key(name), _convert(v, depth, max_depth)) for name, v in pairs])


class _Pairs(list):
    """Object members in document order (json object_pairs_hook result)."""


def from_jsonable(obj: Any, max_depth: int = MAX_DEPTH) -> Value:
    """Convert plain Python data (as produced by json.loads) into a value tree.

    Lists and objects nested deeper than ``max_depth`` raise JSONConversionError,
    the same bound the reader puts on arrays and objects.
    """
    return _convert(obj, 0, max_depth)


def _convert(obj: Any, depth: int, max_depth: int) -> Value:
    if isinstance(obj, (list, dict)):
        depth += 1
        if depth > max_depth:
            raise JSONConversionError(f"Nesting deeper than {max_depth} levels")
    if obj is None:
        return Null()
    if isinstance(obj, bool):
        return Bool(obj)
    if isinstance(obj, int):
        if not INT_MIN <= obj <= INT_MAX:
            raise JSONConversionError(f"Integer out of 64-bit range: {obj}")
        return Int(obj)
    if isinstance(obj, float):
        return Float(obj)
    if isinstance(obj, str):
        return Str.of(obj)
    if isinstance(obj, _Pairs):
        return _from_pairs(list(obj), depth, max_depth)
    if isinstance(obj, dict):
        return _from_pairs(list(obj.items()), depth, max_depth)
    if isinstance(obj, list):
        return Array([(Int(i), _convert(v, depth, max_depth)) for i, v in enumerate(obj)])
    raise JSONConversionError(f"Unsupported JSON value: {type(obj).__name__}")


def from_json(text: str | bytes, non_finite: bool = False, max_depth: int = MAX_DEPTH) -> Value:
    """Parse JSON text into a value tree, preserving member order.

    With ``non_finite=True`` the strings "INF", "-INF" and "NAN" become
    Float nodes again (the reverse of to_jsonable); by default they stay strings.
    """
    try:
        data = json.loads(text, object_pairs_hook=_Pairs)
    except ValueError as e:
        raise JSONConversionError(f"Invalid JSON: {e}") from e
    except RecursionError as e:
        raise JSONConversionError(f"JSON nested too deeply to decode: {e}") from e
    tree = from_jsonable(data, max_depth=max_depth)
    if non_finite:
        tree = _restore_non_finite(tree)
    return tree


def _restore_non_finite(value: Value) -> Value:
    if isinstance(value, Str) and value.text in _NON_FINITE:
        return Float(_NON_FINITE[value.text])
    if isinstance(value, Array):
        return Array([(k, _restore_non_finite(v)) for k, v in value.items])
    if isinstance(value, Object):
        return Object(
            value.class_name,
            [(k, _restore_non_finite(v)) for k, v in value.properties],
        )
    return value
