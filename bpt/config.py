"""
Configuration — ~/.bpt/config.toml merged over built-in defaults.

    max_input_size = 67108864      # container bytes accepted by load
    max_output_size = 268435456    # inflated payload bytes
    max_depth = 256                # array/object nesting
    default_compression = "keep"   # or plain / gzip / zlib / deflate
    log_level = "WARNING"

The path can be overridden with BPT_CONFIG or ``bpt --config``.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from bpt import MAX_DEPTH, MAX_INPUT_SIZE, MAX_OUTPUT_SIZE
from bpt.errors import ConfigError, UnsupportedCompressionKind
from bpt.envelope import CompressionKind

log = logging.getLogger(__name__)

KEEP_COMPRESSION = "keep"

DEFAULT_CONFIG: dict[str, Any] = {
    "max_input_size": MAX_INPUT_SIZE,
    "max_output_size": MAX_OUTPUT_SIZE,
    "max_depth": MAX_DEPTH,
    "default_compression": KEEP_COMPRESSION,
    "log_level": "WARNING",
}

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def default_config_path() -> Path:
    env = os.environ.get("BPT_CONFIG", "")
    if env:
        return Path(env)
    return Path.home() / ".bpt" / "config.toml"


def load_config(config_path: Path | None = None) -> dict[str, Any]:
    """Load config from TOML file, falling back to defaults."""
    config = dict(DEFAULT_CONFIG)

    path = config_path or default_config_path()
    if path.is_file():
        try:
            import tomllib
        except ImportError:
            try:
                import tomli as tomllib
            except ImportError:
                log.warning("tomllib/tomli not available, using default config")
                return config

        try:
            with open(path, "rb") as f:
                file_config = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            log.warning("Failed to load config from %s: %s", path, e)
            return config

        unknown = sorted(set(file_config) - set(DEFAULT_CONFIG))
        if unknown:
            raise ConfigError(f"Unknown config keys in {path}: {', '.join(unknown)}")
        config.update(file_config)

    validate_config(config)
    return config


def validate_config(config: dict[str, Any]) -> None:
    """Raise ConfigError on out-of-range or mistyped values."""
    for key in ("max_input_size", "max_output_size", "max_depth"):
        value = config[key]
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ConfigError(f"{key} must be a positive integer, got {value!r}")

    compression = config["default_compression"]
    if not isinstance(compression, str):
        raise ConfigError(f"default_compression must be a string, got {compression!r}")
    if compression.lower() != KEEP_COMPRESSION:
        try:
            CompressionKind.parse(compression)
        except UnsupportedCompressionKind as e:
            raise ConfigError(f"default_compression: {e}") from e

    level = config["log_level"]
    if not isinstance(level, str) or level.upper() not in _LOG_LEVELS:
        raise ConfigError(f"log_level must be one of {sorted(_LOG_LEVELS)}, got {level!r}")


def resolve_compression(
    config: dict[str, Any], loaded: CompressionKind | None = None
) -> CompressionKind | None:
    """Kind to save with: the configured one, or ``loaded`` when set to keep."""
    name = config["default_compression"]
    if name.lower() == KEEP_COMPRESSION:
        return loaded
    return CompressionKind.parse(name)
