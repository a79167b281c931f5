"""Exception hierarchy shared by the envelope, codec and container layers."""

from __future__ import annotations


class BptError(Exception):
    """Base class for every error raised by bpt."""


class DecompressionError(BptError):
    """No strategy in the envelope fallback chain produced a payload."""

    def __init__(self, size: int, hint: str) -> None:
        self.size = size
        self.hint = hint
        super().__init__(
            f"Could not unwrap {size} bytes with any compression strategy "
            f"(header hint: {hint})"
        )


class PayloadTooLarge(BptError):
    """Inflated payload exceeded the configured output limit."""


class UnsupportedCompressionKind(BptError):
    """Compression kind outside plain/gzip/zlib/deflate."""


class MalformedSerializedData(BptError):
    """Payload is not a well-formed serialized value."""

    def __init__(self, offset: int, token: bytes, reason: str) -> None:
        self.offset = offset
        self.token = token
        self.reason = reason
        super().__init__(f"{reason} at offset {offset} (near {token!r})")


class NestingTooDeep(MalformedSerializedData):
    """Array/object nesting exceeded the configured depth."""


class SerializationError(BptError):
    """Value tree cannot be represented in the serialized grammar."""


class InputTooLarge(BptError):
    """Container bytes exceed the configured input limit."""


class JSONConversionError(BptError):
    """JSON text cannot be converted to a value tree."""


class ConfigError(BptError):
    """Invalid configuration value."""
