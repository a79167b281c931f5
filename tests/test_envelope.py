"""
Tests for the compression envelope — detection, fallback chain, encoding.
"""

from __future__ import annotations

import gzip
import logging
import zlib

import pytest

from bpt.envelope import (
    ENCODABLE_KINDS,
    CompressionKind,
    decode,
    describe,
    describe_long,
    detect,
    encode,
    unwrap,
)
from bpt.errors import DecompressionError, PayloadTooLarge, UnsupportedCompressionKind


PAYLOAD = 'a:1:{s:5:"Title";s:6:"Дом";}'.encode("utf-8")


def _raw_deflate(data: bytes) -> bytes:
    c = zlib.compressobj(6, zlib.DEFLATED, -zlib.MAX_WBITS)
    return c.compress(data) + c.flush()


# ---------------------------------------------------------------------------
# TestDetect
# ---------------------------------------------------------------------------

class TestDetect:

    def test_gzip_magic(self):
        assert detect(b"\x1f\x8b\x08\x00rest") is CompressionKind.GZIP

    def test_zlib_first_byte(self):
        assert detect(b"\x78\x9c\x01\x02") is CompressionKind.ZLIB
        assert detect(b"\x78\xda") is CompressionKind.ZLIB

    def test_unknown(self):
        assert detect(b"a:0:{}") is CompressionKind.UNKNOWN
        assert detect(b"") is CompressionKind.UNKNOWN
        assert detect(b"\x1f") is CompressionKind.UNKNOWN


# ---------------------------------------------------------------------------
# TestUnwrap
# ---------------------------------------------------------------------------

class TestUnwrap:

    def test_gzip(self):
        data = gzip.compress(PAYLOAD)
        assert unwrap(data) == (PAYLOAD, CompressionKind.GZIP)

    def test_zlib(self):
        data = zlib.compress(PAYLOAD)
        assert data[:2] == b"\x78\x9c"
        assert unwrap(data) == (PAYLOAD, CompressionKind.ZLIB)

    def test_plain(self):
        assert unwrap(PAYLOAD) == (PAYLOAD, CompressionKind.PLAIN)

    def test_raw_deflate_without_header(self):
        data = _raw_deflate(PAYLOAD)
        assert detect(data) is CompressionKind.UNKNOWN
        assert unwrap(data) == (PAYLOAD, CompressionKind.DEFLATE)

    def test_multi_member_gzip(self):
        data = gzip.compress(PAYLOAD[:10]) + gzip.compress(PAYLOAD[10:])
        assert unwrap(data) == (PAYLOAD, CompressionKind.GZIP)

    def test_truncated_gzip_is_not_accepted(self):
        data = gzip.compress(PAYLOAD * 50)[:-12]
        with pytest.raises(DecompressionError) as exc:
            unwrap(data)
        assert exc.value.hint == "gzip"

    def test_text_starting_with_x_is_plain(self):
        data = b"xyz plain text"
        assert detect(data) is CompressionKind.ZLIB
        assert unwrap(data) == (data, CompressionKind.PLAIN)

    def test_truncated_zlib_is_not_accepted(self):
        data = zlib.compress(PAYLOAD * 50)[:-10]
        with pytest.raises(DecompressionError):
            unwrap(data)

    def test_binary_garbage_fails(self):
        data = b"\xff\xfe\xfd\x00\x80\x81"
        with pytest.raises(DecompressionError) as exc:
            unwrap(data)
        assert exc.value.size == len(data)
        assert exc.value.hint == "unknown"

    def test_error_carries_hint(self):
        data = b"\x1f\x8b\xff\xfe\xfd"
        with pytest.raises(DecompressionError) as exc:
            unwrap(data)
        assert exc.value.hint == "gzip"
        assert "5 bytes" in str(exc.value)

    def test_output_limit(self):
        data = zlib.compress(b"a" * 10_000)
        with pytest.raises(PayloadTooLarge):
            unwrap(data, max_output=1_000)

    def test_failed_strategies_logged(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="bpt.envelope"):
            unwrap(PAYLOAD)
        assert "deflate failed" in caplog.text


# ---------------------------------------------------------------------------
# TestDecode
# ---------------------------------------------------------------------------

class TestDecode:

    def test_returns_text(self):
        text, kind = decode(gzip.compress(PAYLOAD))
        assert text == PAYLOAD.decode("utf-8")
        assert kind is CompressionKind.GZIP

    def test_invalid_utf8_inside_compressed_payload_replaced(self):
        text, kind = decode(zlib.compress(b"s:1:\"\xff\";"))
        assert kind is CompressionKind.ZLIB
        assert "\ufffd" in text


# ---------------------------------------------------------------------------
# TestEncode
# ---------------------------------------------------------------------------

class TestEncode:

    @pytest.mark.parametrize("kind", ENCODABLE_KINDS)
    def test_round_trip(self, kind):
        data = encode(PAYLOAD, kind)
        assert unwrap(data) == (PAYLOAD, kind)

    def test_accepts_text(self):
        assert encode(PAYLOAD.decode("utf-8"), CompressionKind.PLAIN) == PAYLOAD

    def test_gzip_header(self):
        assert encode(PAYLOAD, CompressionKind.GZIP)[:2] == b"\x1f\x8b"

    def test_zlib_header(self):
        assert encode(PAYLOAD, CompressionKind.ZLIB)[:1] == b"\x78"

    @pytest.mark.parametrize("kind", ENCODABLE_KINDS)
    def test_deterministic(self, kind):
        assert encode(PAYLOAD, kind) == encode(PAYLOAD, kind)

    def test_unknown_not_encodable(self):
        with pytest.raises(UnsupportedCompressionKind):
            encode(PAYLOAD, CompressionKind.UNKNOWN)

    def test_foreign_value_rejected(self):
        with pytest.raises(UnsupportedCompressionKind):
            encode(PAYLOAD, "brotli")


# ---------------------------------------------------------------------------
# TestKinds
# ---------------------------------------------------------------------------

class TestKinds:

    @pytest.mark.parametrize("name,kind", [
        ("gzip", CompressionKind.GZIP),
        ("GZip", CompressionKind.GZIP),
        ("zlib", CompressionKind.ZLIB),
        ("deflate", CompressionKind.DEFLATE),
        ("raw", CompressionKind.DEFLATE),
        ("plain", CompressionKind.PLAIN),
        ("none", CompressionKind.PLAIN),
    ])
    def test_parse(self, name, kind):
        assert CompressionKind.parse(name) is kind

    @pytest.mark.parametrize("name", ["unknown", "brotli", ""])
    def test_parse_rejects(self, name):
        with pytest.raises(UnsupportedCompressionKind):
            CompressionKind.parse(name)

    def test_labels(self):
        assert describe(CompressionKind.GZIP) == "GZip (1F 8B)"
        assert describe(CompressionKind.ZLIB) == "ZLib (78 ??)"
        assert describe(CompressionKind.DEFLATE) == "Raw Deflate"
        assert describe(CompressionKind.PLAIN).startswith("Plain UTF-8")
        assert describe(CompressionKind.UNKNOWN) == "Unknown"

    def test_every_kind_has_description(self):
        for kind in CompressionKind:
            assert describe_long(kind)
