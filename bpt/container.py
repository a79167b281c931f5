"""
Container service — load and save whole .bpt containers.

Load path:  bytes -> envelope.unwrap -> looks_like_serialized -> PHPReader.parse -> tree
Save path:  tree  -> PHPWriter.serialize -> envelope.encode(kind) -> bytes

Every call is a pure function of its arguments. The service keeps no cache;
"reset to original" is just another load of the pristine bytes, which the
caller (or EditSession) holds on to.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from bpt import MAX_DEPTH, MAX_INPUT_SIZE, MAX_OUTPUT_SIZE
from bpt.errors import InputTooLarge, MalformedSerializedData
from bpt._format import PHPReader, PHPWriter, Value, looks_like_serialized
from bpt.envelope import CompressionKind, describe, encode, unwrap

log = logging.getLogger(__name__)


@dataclass
class LoadedContainer:
    """Result of ContainerService.load().

    ``looks_valid`` is False when the payload failed the cheap prefix check
    (no parse was attempted). ``looks_valid and not parse_succeeded`` means the
    payload looked right but is structurally broken; ``error`` says where.
    """

    compression: CompressionKind
    payload: bytes
    looks_valid: bool
    parse_succeeded: bool
    tree: Value | None = None
    error: MalformedSerializedData | None = None
    size: int = 0

    @property
    def text(self) -> str:
        """Decompressed payload as text (invalid UTF-8 replaced)."""
        return self.payload.decode("utf-8", errors="replace")

    @property
    def compression_label(self) -> str:
        return describe(self.compression)


class ContainerService:
    """Stateless orchestration of envelope + value codec.

    Usage:
        service = ContainerService()
        loaded = service.load(data)
        if loaded.parse_succeeded:
            data = service.save(loaded.tree, loaded.compression)
    """

    def __init__(
        self,
        max_input_size: int = MAX_INPUT_SIZE,
        max_output_size: int = MAX_OUTPUT_SIZE,
        max_depth: int = MAX_DEPTH,
    ) -> None:
        self.max_input_size = max_input_size
        self.max_output_size = max_output_size
        self.max_depth = max_depth

    @classmethod
    def from_config(cls, config: dict) -> ContainerService:
        return cls(
            max_input_size=config["max_input_size"],
            max_output_size=config["max_output_size"],
            max_depth=config["max_depth"],
        )

    def load(self, data: bytes) -> LoadedContainer:
        """Unwrap, pre-check and parse a container.

        Raises InputTooLarge, DecompressionError or PayloadTooLarge. A payload
        that does not parse is reported on the result, not raised.
        """
        if len(data) > self.max_input_size:
            raise InputTooLarge(
                f"Input size {len(data)} exceeds maximum {self.max_input_size} bytes. "
                f"Pass max_input_size= to override."
            )
        payload, kind = unwrap(data, max_output=self.max_output_size)
        # the heuristic only needs the head; avoid decoding megabytes for it
        head = payload[:1024].decode("utf-8", errors="replace")
        looks_valid = looks_like_serialized(head)

        loaded = LoadedContainer(
            compression=kind,
            payload=payload,
            looks_valid=looks_valid,
            parse_succeeded=False,
            size=len(data),
        )
        if not looks_valid:
            log.info("Payload (%s, %d bytes) does not look serialized", kind.value, len(payload))
            return loaded

        try:
            loaded.tree = PHPReader.parse(payload, max_depth=self.max_depth)
        except MalformedSerializedData as e:
            log.info("Payload looked serialized but failed to parse: %s", e)
            loaded.error = e
            return loaded

        loaded.parse_succeeded = True
        log.info(
            "Loaded container: %d bytes, %s, payload %d bytes",
            len(data), kind.value, len(payload),
        )
        return loaded

    def serialize(self, tree: Value) -> bytes:
        return PHPWriter.serialize(tree, max_depth=self.max_depth)

    def save(self, tree: Value, kind: CompressionKind) -> bytes:
        """Serialize a tree and wrap it with the chosen compression."""
        data = encode(self.serialize(tree), kind)
        log.info("Saved container: %s, %d bytes", kind.value, len(data))
        return data

    def save_text(self, text: str | bytes, kind: CompressionKind) -> bytes:
        """Wrap already-serialized text (raw editing) without touching it."""
        return encode(text, kind)

    def reset_to_original(self, original: bytes) -> LoadedContainer:
        return self.load(original)

    @staticmethod
    def describe_compression(kind: CompressionKind) -> str:
        return describe(kind)


@dataclass
class EditSession:
    """Caller-side editing state: the pristine bytes plus the current tree.

    Usage:
        session = EditSession.open(data)
        session.tree.set("VERSION", Int(2))
        output = session.save()            # same compression as loaded
        session.reset()                    # back to the pristine tree
    """

    original: bytes
    service: ContainerService = field(default_factory=ContainerService)
    loaded: LoadedContainer = field(init=False)

    def __post_init__(self) -> None:
        self.loaded = self.service.load(self.original)

    @classmethod
    def open(cls, data: bytes, service: ContainerService | None = None) -> EditSession:
        return cls(original=bytes(data), service=service or ContainerService())

    @property
    def tree(self) -> Value | None:
        return self.loaded.tree

    @property
    def compression(self) -> CompressionKind:
        return self.loaded.compression

    @property
    def is_modified(self) -> bool:
        if self.loaded.tree is None:
            return False
        return self.service.serialize(self.loaded.tree) != self.loaded.payload

    def reset(self) -> LoadedContainer:
        """Discard edits by re-loading the pristine bytes."""
        self.loaded = self.service.reset_to_original(self.original)
        return self.loaded

    def save(self, kind: CompressionKind | None = None) -> bytes:
        """Encode the current tree.

        An unedited tree saved with its original compression returns the
        original bytes, so foreign compressor output survives untouched.
        """
        kind = kind or self.loaded.compression
        if self.loaded.tree is None:
            raise MalformedSerializedData(
                self.loaded.error.offset if self.loaded.error else 0,
                self.loaded.error.token if self.loaded.error else b"",
                "Nothing to save: the container did not parse",
            )
        if kind is self.loaded.compression and not self.is_modified:
            return self.original
        return self.service.save(self.loaded.tree, kind)
