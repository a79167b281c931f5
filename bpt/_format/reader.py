"""
Reader — recursive-descent parser for serialized payloads.

Works on bytes, never on decoded text: ``s:<N>:`` counts bytes, and a
character-based scan would split multi-byte UTF-8 sequences (Cyrillic
labels dominate real templates).

Safety features:
  - Explicit nesting bound (NestingTooDeep instead of RecursionError)
  - Every length prefix checked against the actual terminator position
  - Atomic: either a complete tree or MalformedSerializedData, never a partial tree
"""

from __future__ import annotations

from typing import NoReturn

from bpt import INT_MAX, INT_MIN, MAX_DEPTH
from bpt.errors import MalformedSerializedData, NestingTooDeep
from bpt._format.spec import (
    CLOSE_BRACE, COLON, FLOAT_INF, FLOAT_NAN, FLOAT_NEG_INF, FLOAT_RE, INT_RE,
    KEY_TAGS, OPEN_BRACE, QUOTE, SEMICOLON, TAG_ARRAY, TAG_BOOL, TAG_FLOAT,
    TAG_INT, TAG_NULL, TAG_OBJECT, TAG_STRING, VALID_TAGS,
)
from bpt._format.values import Array, Bool, Float, Int, Key, Null, Object, Str, Value

# Bytes of context quoted in error messages
_TOKEN_CONTEXT = 16


class PHPReader:
    """
    Parser for one serialized value.

    Usage:
        tree = PHPReader.parse(b'a:1:{s:3:"key";i:42;}')
    """

    def __init__(self, data: bytes, max_depth: int = MAX_DEPTH) -> None:
        self._data = data
        self._pos = 0
        self._max_depth = max_depth

    @classmethod
    def parse(cls, data: bytes | str, max_depth: int = MAX_DEPTH) -> Value:
        """Parse a complete payload. Trailing bytes are an error."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        reader = cls(data, max_depth=max_depth)
        value = reader._read_value(0)
        if reader._pos != len(data):
            reader._fail("Trailing data after value")
        return value

    # ------------------------------------------------------------------
    # Low-level cursor helpers
    # ------------------------------------------------------------------

    def _fail(self, reason: str, offset: int | None = None) -> NoReturn:
        pos = self._pos if offset is None else offset
        token = self._data[pos:pos + _TOKEN_CONTEXT]
        raise MalformedSerializedData(pos, token, reason)

    def _peek(self) -> bytes:
        return self._data[self._pos:self._pos + 1]

    def _expect(self, literal: bytes) -> None:
        end = self._pos + len(literal)
        if self._data[self._pos:end] != literal:
            if end > len(self._data):
                self._fail(f"Unexpected end of input, expected {literal.decode()!r}")
            self._fail(f"Expected {literal.decode()!r}")
        self._pos = end

    def _read_until(self, terminator: bytes) -> bytes:
        """Consume up to and including ``terminator``; return what precedes it."""
        end = self._data.find(terminator, self._pos)
        if end < 0:
            self._fail(f"Unterminated token, missing {terminator.decode()!r}")
        lexeme = self._data[self._pos:end]
        self._pos = end + len(terminator)
        return lexeme

    def _read_length(self, terminator: bytes) -> int:
        start = self._pos
        lexeme = self._read_until(terminator)
        if not lexeme.isdigit():
            self._fail("Invalid length prefix", start)
        return int(lexeme)

    # ------------------------------------------------------------------
    # Productions
    # ------------------------------------------------------------------

    def _read_value(self, depth: int) -> Value:
        tag = self._peek()
        if not tag:
            self._fail("Unexpected end of input, expected a value")
        if tag not in VALID_TAGS:
            self._fail(f"Unknown type tag {tag.decode('latin-1')!r}")

        if tag == TAG_NULL:
            self._expect(b"N;")
            return Null()
        if tag == TAG_BOOL:
            return self._read_bool()
        if tag == TAG_INT:
            return self._read_int()
        if tag == TAG_FLOAT:
            return self._read_float()
        if tag == TAG_STRING:
            return self._read_string()
        if tag == TAG_ARRAY:
            return self._read_array(depth + 1)
        return self._read_object(depth + 1)

    def _read_key(self) -> Key:
        tag = self._peek()
        if not tag:
            self._fail("Unexpected end of input, expected a key")
        if tag not in KEY_TAGS:
            self._fail("Array key must be an int or a string")
        if tag == TAG_INT:
            return self._read_int()
        return self._read_string()

    def _read_bool(self) -> Bool:
        self._expect(b"b:")
        digit = self._peek()
        if digit not in (b"0", b"1"):
            self._fail("Bool must be 0 or 1")
        self._pos += 1
        self._expect(SEMICOLON)
        return Bool(digit == b"1")

    def _read_int(self) -> Int:
        self._expect(b"i:")
        start = self._pos
        lexeme = self._read_until(SEMICOLON)
        if not INT_RE.match(lexeme):
            self._fail("Invalid integer", start)
        value = int(lexeme)
        if not INT_MIN <= value <= INT_MAX:
            self._fail("Integer out of 64-bit range", start)
        return Int(value)

    def _read_float(self) -> Float:
        self._expect(b"d:")
        start = self._pos
        lexeme = self._read_until(SEMICOLON)
        if lexeme == FLOAT_INF:
            return Float(float("inf"), raw=lexeme)
        if lexeme == FLOAT_NEG_INF:
            return Float(float("-inf"), raw=lexeme)
        if lexeme == FLOAT_NAN:
            return Float(float("nan"), raw=lexeme)
        if not FLOAT_RE.match(lexeme):
            self._fail("Invalid float", start)
        return Float(float(lexeme), raw=lexeme)

    def _read_counted_bytes(self) -> bytes:
        """``<N>:"<N bytes>"`` — shared by strings and class names."""
        length = self._read_length(COLON)
        self._expect(QUOTE)
        start = self._pos
        end = start + length
        if end > len(self._data):
            self._fail(f"String length {length} runs past end of input", start)
        if self._data[end:end + 1] != QUOTE:
            self._fail(f"String length {length} does not match closing quote", end)
        self._pos = end + 1
        return self._data[start:end]

    def _read_string(self) -> Str:
        self._expect(b"s:")
        payload = self._read_counted_bytes()
        self._expect(SEMICOLON)
        return Str(payload)

    def _enter(self, depth: int) -> None:
        if depth > self._max_depth:
            pos = self._pos
            raise NestingTooDeep(
                pos,
                self._data[pos:pos + _TOKEN_CONTEXT],
                f"Nesting deeper than {self._max_depth} levels",
            )

    def _read_count_and_open(self) -> int:
        count = self._read_length(COLON)
        self._expect(OPEN_BRACE)
        return count

    def _check_member(self, count: int, found: int, what: str) -> None:
        if self._peek() == CLOSE_BRACE:
            self._fail(f"{what} declares {count} members, found {found}")
        if not self._peek():
            self._fail(f"Unexpected end of input inside {what.lower()}, missing '}}'")

    def _close(self, count: int, what: str) -> None:
        if self._peek() != CLOSE_BRACE:
            if not self._peek():
                self._fail(f"Unexpected end of input inside {what.lower()}, missing '}}'")
            self._fail(f"{what} declares {count} members, found more")
        self._pos += 1

    def _read_array(self, depth: int) -> Array:
        self._enter(depth)
        self._expect(b"a:")
        count = self._read_count_and_open()
        items: list[tuple[Key, Value]] = []
        for found in range(count):
            self._check_member(count, found, "Array")
            key = self._read_key()
            items.append((key, self._read_value(depth)))
        self._close(count, "Array")
        return Array(items)

    def _read_object(self, depth: int) -> Object:
        self._enter(depth)
        self._expect(b"O:")
        start = self._pos
        class_name = self._read_counted_bytes()
        if not class_name:
            self._fail("Object class name must be non-empty", start)
        self._expect(COLON)
        count = self._read_count_and_open()
        properties: list[tuple[Str, Value]] = []
        for found in range(count):
            self._check_member(count, found, "Object")
            if self._peek() != TAG_STRING:
                self._fail("Object property name must be a string")
            name = self._read_string()
            properties.append((name, self._read_value(depth)))
        self._close(count, "Object")
        return Object(Str(class_name), properties)
