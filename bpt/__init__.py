"""
bpt — codec for legacy workflow-template (.bpt) containers.

Layout:
    Envelope:  plain / gzip / zlib / raw deflate (never declared, sniffed on load)
    Payload:   PHP-style serialized value tree, UTF-8, byte-length-prefixed strings
    Bridge:    bpt info / bpt dump / bpt repack / bpt build / bpt check CLI commands
"""

__version__ = "0.1.0"

# Safety limits
MAX_INPUT_SIZE = 64 * 1024 * 1024  # 64 MB of container bytes
MAX_OUTPUT_SIZE = 256 * 1024 * 1024  # 256 MB after inflating
MAX_DEPTH = 256  # array/object nesting; each level costs two stack frames

# Validity heuristic scans at most this many characters
HEURISTIC_PREFIX = 200

# Int range of the legacy producer (64-bit PHP builds)
INT_MIN = -(2 ** 63)
INT_MAX = 2 ** 63 - 1

from bpt.errors import BptError  # noqa: E402
from bpt._format import (  # noqa: E402
    Array,
    Bool,
    Float,
    Int,
    Null,
    Object,
    Str,
    Value,
    dumps,
    loads,
)
from bpt.envelope import CompressionKind, describe  # noqa: E402
from bpt.container import ContainerService, EditSession, LoadedContainer  # noqa: E402

__all__ = [
    "Array",
    "Bool",
    "BptError",
    "CompressionKind",
    "ContainerService",
    "EditSession",
    "Float",
    "Int",
    "LoadedContainer",
    "Null",
    "Object",
    "Str",
    "Value",
    "describe",
    "dumps",
    "loads",
]
