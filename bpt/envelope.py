"""
Compression envelope — sniff, unwrap and produce the outer wrapper of a container.

A container never says how it was compressed. Decoding walks a fixed
strategy list from most specific evidence to none:

    1. gzip         only if the header is 1F 8B
    2. zlib         only if the first byte is 78
    3. raw deflate  always (headerless, nothing to sniff)
    4. plain UTF-8  always, last, so garbage is never "decoded" as text

A compressed strategy only succeeds on a complete stream with no trailing
bytes. Adding a kind is one entry in _STRATEGIES.
"""

from __future__ import annotations

import logging
import zlib
from enum import Enum
from typing import Callable, Optional

from bpt import MAX_OUTPUT_SIZE
from bpt.errors import DecompressionError, PayloadTooLarge, UnsupportedCompressionKind

log = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"
ZLIB_FIRST_BYTE = b"\x78"

# zlib window sizes: gzip container, zlib container, headerless
_WBITS_GZIP = 16 + zlib.MAX_WBITS
_WBITS_ZLIB = zlib.MAX_WBITS
_WBITS_RAW = -zlib.MAX_WBITS

# Z_DEFAULT_COMPRESSION resolves to 6; the legacy producer uses the same default
_LEVEL = 6


class CompressionKind(str, Enum):
    PLAIN = "plain"
    GZIP = "gzip"
    ZLIB = "zlib"
    DEFLATE = "deflate"
    UNKNOWN = "unknown"  # detection hint only, never encodable

    @classmethod
    def parse(cls, name: str) -> CompressionKind:
        """Case-insensitive lookup by name ("gzip", "GZip", "raw" for deflate)."""
        key = name.strip().lower()
        if key == "raw":
            key = "deflate"
        if key == "none":
            key = "plain"
        for kind in cls:
            if kind.value == key and kind is not cls.UNKNOWN:
                return kind
        raise UnsupportedCompressionKind(f"Unknown compression kind: {name!r}")


ENCODABLE_KINDS = (
    CompressionKind.GZIP,
    CompressionKind.ZLIB,
    CompressionKind.DEFLATE,
    CompressionKind.PLAIN,
)

_LABELS = {
    CompressionKind.GZIP: "GZip (1F 8B)",
    CompressionKind.ZLIB: "ZLib (78 ??)",
    CompressionKind.DEFLATE: "Raw Deflate",
    CompressionKind.PLAIN: "Plain UTF-8 (no compression)",
    CompressionKind.UNKNOWN: "Unknown",
}

_DESCRIPTIONS = {
    CompressionKind.GZIP: "Best ratio, universal format",
    CompressionKind.ZLIB: "Fast compression, common in legacy exports",
    CompressionKind.DEFLATE: "Low-level compression without headers",
    CompressionKind.PLAIN: "No compression, readable text",
    CompressionKind.UNKNOWN: "Unknown format",
}


def describe(kind: CompressionKind) -> str:
    """Short human label for a kind."""
    return _LABELS.get(kind, _LABELS[CompressionKind.UNKNOWN])


def describe_long(kind: CompressionKind) -> str:
    """One-line description of what a kind means for the exported file."""
    return _DESCRIPTIONS.get(kind, _DESCRIPTIONS[CompressionKind.UNKNOWN])


def detect(data: bytes) -> CompressionKind:
    """Guess the kind from the first bytes. Only a hint for decode()."""
    if data[:2] == GZIP_MAGIC:
        return CompressionKind.GZIP
    if data[:1] == ZLIB_FIRST_BYTE:
        return CompressionKind.ZLIB
    return CompressionKind.UNKNOWN


# ---------------------------------------------------------------------------
# Decoders — each returns the payload or raises zlib.error / ValueError
# ---------------------------------------------------------------------------

def _inflate_stream(data: bytes, wbits: int, max_output: int) -> tuple[bytes, bytes]:
    """Inflate one complete stream. Returns (payload, bytes after the stream)."""
    d = zlib.decompressobj(wbits)
    out = d.decompress(data, max_output + 1)
    if len(out) > max_output:
        raise PayloadTooLarge(
            f"Inflated payload exceeds maximum {max_output} bytes. "
            f"Pass max_output= to override."
        )
    if not d.eof:
        raise zlib.error("incomplete or truncated stream")
    return out, d.unused_data


def _gunzip(data: bytes, max_output: int) -> bytes:
    # gzip allows several members back to back
    chunks: list[bytes] = []
    remaining = data
    total = 0
    while True:
        out, remaining = _inflate_stream(remaining, _WBITS_GZIP, max_output - total)
        chunks.append(out)
        total += len(out)
        if not remaining:
            return b"".join(chunks)
        if remaining[:2] != GZIP_MAGIC:
            raise zlib.error("trailing data after gzip stream")


def _inflate_zlib(data: bytes, max_output: int) -> bytes:
    out, rest = _inflate_stream(data, _WBITS_ZLIB, max_output)
    if rest:
        raise zlib.error("trailing data after zlib stream")
    return out


def _inflate_raw(data: bytes, max_output: int) -> bytes:
    out, rest = _inflate_stream(data, _WBITS_RAW, max_output)
    if rest:
        raise zlib.error("trailing data after deflate stream")
    return out


def _as_plain(data: bytes, max_output: int) -> bytes:
    data.decode("utf-8")  # strict: raises UnicodeDecodeError on binary garbage
    return data


Decoder = Callable[[bytes, int], bytes]

# (kind, required header hint or None, decoder), tried in order
_STRATEGIES: list[tuple[CompressionKind, Optional[CompressionKind], Decoder]] = [
    (CompressionKind.GZIP, CompressionKind.GZIP, _gunzip),
    (CompressionKind.ZLIB, CompressionKind.ZLIB, _inflate_zlib),
    (CompressionKind.DEFLATE, None, _inflate_raw),
    (CompressionKind.PLAIN, None, _as_plain),
]


def unwrap(data: bytes, max_output: int = MAX_OUTPUT_SIZE) -> tuple[bytes, CompressionKind]:
    """Run the fallback chain. Returns (payload bytes, kind that succeeded).

    Raises DecompressionError if every strategy fails, PayloadTooLarge if a
    stream inflates past max_output.
    """
    hint = detect(data)
    for kind, required_hint, decoder in _STRATEGIES:
        if required_hint is not None and hint is not required_hint:
            continue
        try:
            payload = decoder(data, max_output)
        except (zlib.error, ValueError) as e:
            log.debug("Envelope strategy %s failed: %s", kind.value, e)
            continue
        log.debug(
            "Envelope unwrapped as %s (%d -> %d bytes, hint %s)",
            kind.value, len(data), len(payload), hint.value,
        )
        return payload, kind
    raise DecompressionError(len(data), hint.value)


def decode(data: bytes, max_output: int = MAX_OUTPUT_SIZE) -> tuple[str, CompressionKind]:
    """Unwrap and decode the payload as UTF-8 text.

    Invalid sequences inside a compressed payload are replaced (U+FFFD);
    use unwrap() when the exact bytes matter.
    """
    payload, kind = unwrap(data, max_output=max_output)
    return payload.decode("utf-8", errors="replace"), kind


def encode(payload: str | bytes, kind: CompressionKind) -> bytes:
    """Wrap a payload with exactly one algorithm. Deterministic."""
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    if kind is CompressionKind.PLAIN:
        return bytes(payload)
    if kind is CompressionKind.GZIP:
        c = zlib.compressobj(_LEVEL, zlib.DEFLATED, _WBITS_GZIP)
    elif kind is CompressionKind.ZLIB:
        c = zlib.compressobj(_LEVEL, zlib.DEFLATED, _WBITS_ZLIB)
    elif kind is CompressionKind.DEFLATE:
        c = zlib.compressobj(_LEVEL, zlib.DEFLATED, _WBITS_RAW)
    else:
        raise UnsupportedCompressionKind(f"Cannot encode with compression kind: {kind!r}")
    return c.compress(payload) + c.flush()
