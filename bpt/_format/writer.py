"""
Writer — serializes value trees back into the classic grammar.

Rules:
  1. Strings carry their exact UTF-8 byte length, never a character count
  2. Arrays/objects carry their exact pair count; pairs are written in stored order
  3. Floats use the shortest text that reads back to the same double, spelled
     the way PHP's serialize() spells it (d:1; d:0.1; d:1.0E+25; d:-0; d:INF;)
  4. Floats that still hold the value they were parsed with keep their original lexeme

The tree is validated while it is written into a private buffer, so a bad
node raises SerializationError and no bytes are returned.
"""

from __future__ import annotations

import io
import math
from decimal import Decimal

from bpt import INT_MAX, INT_MIN, MAX_DEPTH
from bpt.errors import SerializationError
from bpt._format.spec import FLOAT_INF, FLOAT_NAN, FLOAT_NEG_INF, FLOAT_PRECISION
from bpt._format.values import Array, Bool, Float, Int, Null, Object, Str, Value


def format_float(value: float) -> bytes:
    """PHP ``serialize_precision = -1`` text for a double."""
    if math.isnan(value):
        return FLOAT_NAN
    if math.isinf(value):
        return FLOAT_INF if value > 0 else FLOAT_NEG_INF
    if value == 0.0:
        return b"-0" if math.copysign(1.0, value) < 0 else b"0"

    # repr() is the shortest round-trip form; Decimal splits it into digits
    _, digit_tuple, exponent = Decimal(repr(abs(value))).as_tuple()
    digits = list(digit_tuple)
    while len(digits) > 1 and digits[-1] == 0:
        digits.pop()
        exponent += 1
    while len(digits) > 1 and digits[0] == 0:
        digits.pop(0)
    text = "".join(str(d) for d in digits)
    # value == 0.<digits> * 10**decpt
    decpt = len(digits) + exponent
    sign = "-" if value < 0 else ""

    if (decpt < -3) if decpt < 0 else (decpt > FLOAT_PRECISION):
        exp = decpt - 1
        mantissa = text[0] + "." + (text[1:] or "0")
        out = f"{mantissa}E{'-' if exp < 0 else '+'}{abs(exp)}"
    elif decpt <= 0:
        out = "0." + "0" * (-decpt) + text
    elif decpt >= len(text):
        out = text + "0" * (decpt - len(text))
    else:
        out = text[:decpt] + "." + text[decpt:]
    return (sign + out).encode("ascii")


def _raw_still_valid(node: Float) -> bool:
    raw = node.raw
    if raw is None:
        return False
    if raw == FLOAT_INF:
        parsed = float("inf")
    elif raw == FLOAT_NEG_INF:
        parsed = float("-inf")
    elif raw == FLOAT_NAN:
        parsed = float("nan")
    else:
        try:
            parsed = float(raw)
        except ValueError:
            return False
    return Float(parsed) == Float(node.value)


class PHPWriter:

    def __init__(self, max_depth: int = MAX_DEPTH) -> None:
        self._max_depth = max_depth
        self._out = io.BytesIO()

    @classmethod
    def serialize(cls, value: Value, max_depth: int = MAX_DEPTH) -> bytes:
        """Serialize a value tree to bytes. Pure — does not mutate the input."""
        writer = cls(max_depth=max_depth)
        writer._write_value(value, 0)
        return writer._out.getvalue()

    def _write_value(self, node: Value, depth: int) -> None:
        out = self._out
        if isinstance(node, Null):
            out.write(b"N;")
        elif isinstance(node, Bool):
            out.write(b"b:1;" if node.value else b"b:0;")
        elif isinstance(node, Int):
            self._write_int(node)
        elif isinstance(node, Float):
            self._write_float(node)
        elif isinstance(node, Str):
            self._write_str(node)
        elif isinstance(node, Array):
            self._write_array(node, depth + 1)
        elif isinstance(node, Object):
            self._write_object(node, depth + 1)
        else:
            raise SerializationError(
                f"Not a value node: {type(node).__name__}"
            )

    def _write_int(self, node: Int) -> None:
        value = node.value
        if isinstance(value, bool) or not isinstance(value, int):
            raise SerializationError(f"Int holds a non-integer: {value!r}")
        if not INT_MIN <= value <= INT_MAX:
            raise SerializationError(f"Integer out of 64-bit range: {value}")
        self._out.write(b"i:%d;" % value)

    def _write_float(self, node: Float) -> None:
        value = node.value
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise SerializationError(f"Float holds a non-number: {value!r}")
        text = node.raw if _raw_still_valid(node) else format_float(float(value))
        self._out.write(b"d:" + text + b";")

    def _write_counted(self, data: bytes) -> None:
        if not isinstance(data, bytes):
            raise SerializationError(
                f"Str holds {type(data).__name__}, expected bytes (use Str.of() for text)"
            )
        self._out.write(b'%d:"' % len(data))
        self._out.write(data)
        self._out.write(b'"')

    def _write_str(self, node: Str) -> None:
        self._out.write(b"s:")
        self._write_counted(node.data)
        self._out.write(b";")

    def _enter(self, depth: int) -> None:
        if depth > self._max_depth:
            raise SerializationError(f"Nesting deeper than {self._max_depth} levels")

    def _write_array(self, node: Array, depth: int) -> None:
        self._enter(depth)
        self._out.write(b"a:%d:{" % len(node.items))
        for pair in node.items:
            key, value = pair
            if isinstance(key, Int):
                self._write_int(key)
            elif isinstance(key, Str):
                self._write_str(key)
            else:
                raise SerializationError(
                    f"Array key must be Int or Str, got {type(key).__name__}"
                )
            self._write_value(value, depth)
        self._out.write(b"}")

    def _write_object(self, node: Object, depth: int) -> None:
        self._enter(depth)
        if not isinstance(node.class_name, Str) or not node.class_name.data:
            raise SerializationError("Object class name must be a non-empty Str")
        self._out.write(b"O:")
        self._write_counted(node.class_name.data)
        self._out.write(b":%d:{" % len(node.properties))
        for name, value in node.properties:
            if not isinstance(name, Str):
                raise SerializationError(
                    f"Object property name must be Str, got {type(name).__name__}"
                )
            self._write_str(name)
            self._write_value(value, depth)
        self._out.write(b"}")
