"""
Serialized value grammar v1 — PHP ``serialize()`` subset used by .bpt payloads.

Productions:
    N;                                   <- null
    b:<0|1>;                             <- bool
    i:<-?digits>;                        <- int (64-bit)
    d:<float>;                           <- float, PHP textual form (1, 0.5, 1.0E+25, INF, NAN)
    s:<N>:"<N bytes>";                   <- string, N counts BYTES of the payload
    a:<N>:{<key><value>...}              <- array, N pairs, keys are i: or s:
    O:<L>:"<class>":<N>:{<name><value>...}  <- object, L bytes of class name, N properties

No whitespace, no separators between pairs, no trailing data.

Not supported: references (r:, R:), custom serialization (C:), enums (E:).
"""

from __future__ import annotations

import re

from bpt import HEURISTIC_PREFIX

# Type tags
TAG_NULL = b"N"
TAG_BOOL = b"b"
TAG_INT = b"i"
TAG_FLOAT = b"d"
TAG_STRING = b"s"
TAG_ARRAY = b"a"
TAG_OBJECT = b"O"

VALID_TAGS = frozenset({TAG_NULL, TAG_BOOL, TAG_INT, TAG_FLOAT, TAG_STRING, TAG_ARRAY, TAG_OBJECT})
KEY_TAGS = frozenset({TAG_INT, TAG_STRING})

# Punctuation
COLON = b":"
SEMICOLON = b";"
QUOTE = b'"'
OPEN_BRACE = b"{"
CLOSE_BRACE = b"}"

# Non-finite float spellings
FLOAT_INF = b"INF"
FLOAT_NEG_INF = b"-INF"
FLOAT_NAN = b"NAN"

# Leading tokens a serialized payload can start with
LEADING_TOKENS = ("a:", "s:", "i:", "b:", "N;", "O:", "d:")
_LEADING_RE = re.compile(r"^(a|s|i|b|d|O):\d+[:;{]")

# Int/float lexemes
INT_RE = re.compile(rb"-?\d+\Z")
FLOAT_RE = re.compile(rb"-?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\Z")

# php_gcvt switches to exponent form past this many significant digits
FLOAT_PRECISION = 17


def looks_like_serialized(text: str) -> bool:
    """Cheap pre-check on the first HEURISTIC_PREFIX characters.

    Passing does not mean the payload parses; it only rules out text that
    is obviously something else (prose, HTML, JSON).
    """
    if not text:
        return False
    head = text[:HEURISTIC_PREFIX]
    if head.startswith(LEADING_TOKENS):
        return True
    return _LEADING_RE.match(head) is not None
