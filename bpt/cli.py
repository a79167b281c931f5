"""
bpt CLI — inspect, convert and repack workflow-template containers.

Commands:
  bpt info    - Show size, compression and template summary of a .bpt file
  bpt dump    - Print the decompressed payload as raw serialized text or JSON
  bpt repack  - Re-save a container with another (or the same) compression
  bpt build   - Pack edited serialized text or JSON into a container
  bpt check   - Run export diagnostics on a container or an edited payload
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import tempfile
from pathlib import Path

_KIND_CHOICES = ["plain", "gzip", "zlib", "deflate"]


def format_size(size: int) -> str:
    """Human-readable byte count: 0 B, 512 B, 1.5 KB, 2 MB."""
    if size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {units[i]}"


def _read_input(path: str, max_size: int) -> bytes:
    p = Path(path)
    if not p.is_file():
        print(f"Error: File not found: {path}", file=sys.stderr)
        sys.exit(1)
    size = p.stat().st_size
    if size > max_size:
        print(
            f"Error: File size {size} exceeds maximum {max_size} bytes "
            f"(raise max_input_size in the config)",
            file=sys.stderr,
        )
        sys.exit(1)
    return p.read_bytes()


def _write_output(path: str, data: bytes, mode: int = 0o644) -> int:
    """Write bytes atomically (temp file + os.replace). Returns bytes written."""
    dir_name = os.path.dirname(os.path.abspath(path)) or "."
    fd, tmp_path = tempfile.mkstemp(dir=dir_name, suffix=".bpt.tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return len(data)


def _load_settings(args: argparse.Namespace) -> dict:
    from bpt.config import load_config
    from bpt.errors import ConfigError

    config_path = Path(args.config) if getattr(args, "config", None) else None
    try:
        return load_config(config_path)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def _service(config: dict):
    from bpt.container import ContainerService
    return ContainerService.from_config(config)


def _load(args: argparse.Namespace, config: dict):
    """Load args.path, exiting with a message on envelope-level failures."""
    from bpt.errors import BptError

    data = _read_input(args.path, config["max_input_size"])
    try:
        return data, _service(config).load(data)
    except BptError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def _save_kind(args: argparse.Namespace, config: dict, loaded_kind):
    """--compression wins, then the config default, then the loaded kind."""
    from bpt.config import resolve_compression
    from bpt.envelope import CompressionKind

    if getattr(args, "compression", None):
        return CompressionKind.parse(args.compression)
    return resolve_compression(config, loaded_kind) or CompressionKind.GZIP


def cmd_info(args: argparse.Namespace) -> None:
    """Show container size, compression, validity and template summary."""
    from bpt.envelope import describe_long
    from bpt.template import summarize

    config = _load_settings(args)
    data, loaded = _load(args, config)

    print(f"File:        {args.path}")
    print(f"Size:        {format_size(len(data))}")
    print(f"Compression: {loaded.compression_label} ({describe_long(loaded.compression)})")
    print(f"Payload:     {format_size(len(loaded.payload))}")
    print(f"Serialized:  {'yes' if loaded.looks_valid else 'no'}")
    if loaded.looks_valid:
        if loaded.parse_succeeded:
            print("Parsed:      yes")
        else:
            print(f"Parsed:      no ({loaded.error})")

    if not loaded.parse_succeeded:
        return

    summary = summarize(loaded.tree)
    print()
    print(f"Title:       {summary.title or '(untitled)'}")
    print(f"Version:     {summary.version or '(unknown)'}")
    print(f"Activities:  {summary.activity_count}")
    for label, members in (
        ("Parameters", summary.parameters),
        ("Variables", summary.variables),
        ("Constants", summary.constants),
    ):
        print(f"{label + ':':<13}{len(members)}")
        for m in members:
            flags = " *" if m.required else ""
            print(f"  {m.name} [{m.type}]{flags}")
    print(f"{'Fields:':<13}{len(summary.fields)}")
    for f in summary.fields:
        flags = " *" if f.required else ""
        print(f"  {f.name} [{f.type}]{flags}")


def cmd_dump(args: argparse.Namespace) -> None:
    """Print (or write) the payload as raw text or JSON."""
    from bpt.jsonconv import to_json

    config = _load_settings(args)
    _, loaded = _load(args, config)

    if args.format == "json":
        if not loaded.parse_succeeded:
            reason = loaded.error or "payload does not look serialized"
            print(f"Error: Cannot convert to JSON: {reason}", file=sys.stderr)
            sys.exit(1)
        out = (to_json(loaded.tree) + "\n").encode("utf-8")
    else:
        out = loaded.payload

    if args.output:
        _write_output(args.output, out)
        print(f"Wrote {args.output} ({format_size(len(out))})")
    else:
        sys.stdout.buffer.write(out)
        sys.stdout.flush()


def cmd_repack(args: argparse.Namespace) -> None:
    """Re-save a container, optionally with another compression."""
    from bpt.container import EditSession
    from bpt.errors import BptError

    config = _load_settings(args)
    data = _read_input(args.path, config["max_input_size"])
    try:
        session = EditSession.open(data, service=_service(config))
    except BptError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if not session.loaded.parse_succeeded:
        reason = session.loaded.error or "payload does not look serialized"
        print(f"Error: Cannot repack: {reason}", file=sys.stderr)
        sys.exit(1)

    kind = _save_kind(args, config, session.compression)
    out = session.save(kind)
    _write_output(args.output, out)
    same = " (same as source)" if kind is session.compression else ""
    print(f"Wrote {args.output}: {format_size(len(out))}, {kind.value}{same}")


def _strip_final_newline(raw: bytes) -> bytes:
    """Drop the one line ending text editors append; serialized data never ends in one."""
    if raw.endswith(b"\r\n"):
        return raw[:-2]
    if raw.endswith(b"\n"):
        return raw[:-1]
    return raw


def cmd_build(args: argparse.Namespace) -> None:
    """Pack edited serialized text or JSON into a container."""
    from bpt.errors import BptError
    from bpt.jsonconv import from_json
    from bpt._format import PHPReader

    config = _load_settings(args)
    raw = _read_input(args.path, config["max_input_size"])
    service = _service(config)
    kind = _save_kind(args, config, None)

    try:
        if args.source == "json":
            tree = from_json(raw, non_finite=True, max_depth=service.max_depth)
        else:
            tree = PHPReader.parse(_strip_final_newline(raw), max_depth=service.max_depth)
        out = service.save(tree, kind)
    except BptError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    _write_output(args.output, out)
    print(f"Wrote {args.output}: {format_size(len(out))}, {kind.value}")


def cmd_check(args: argparse.Namespace) -> None:
    """Run export diagnostics; exit 1 if any check fails."""
    from bpt.diagnostics import all_ok, check_export, format_report

    config = _load_settings(args)
    _, loaded = _load(args, config)

    if args.edited:
        payload = _read_input(args.edited, config["max_output_size"])
    else:
        payload = loaded.payload

    kind = _save_kind(args, config, loaded.compression)
    checks = check_export(payload, loaded, kind)
    print(format_report(checks))
    if not all_ok(checks):
        sys.exit(1)


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="bpt",
        description="Inspect and repack workflow-template (.bpt) containers",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Log envelope/codec decisions (-vv for debug)")
    parser.add_argument("--config", help="Config TOML file (or set BPT_CONFIG)")
    sub = parser.add_subparsers(dest="command")

    p_info = sub.add_parser("info", help="Show container summary")
    p_info.add_argument("path", help="Path to .bpt file")

    p_dump = sub.add_parser("dump", help="Print the decompressed payload")
    p_dump.add_argument("path", help="Path to .bpt file")
    p_dump.add_argument("--format", choices=["raw", "json"], default="raw",
                        help="raw serialized text (default) or JSON")
    p_dump.add_argument("-o", "--output", help="Write to file instead of stdout")

    p_repack = sub.add_parser("repack", help="Re-save with a chosen compression")
    p_repack.add_argument("path", help="Path to .bpt file")
    p_repack.add_argument("-o", "--output", required=True, help="Output .bpt file")
    p_repack.add_argument("-c", "--compression", choices=_KIND_CHOICES,
                          help="Compression kind (default: same as source)")

    p_build = sub.add_parser("build", help="Pack serialized text or JSON")
    p_build.add_argument("path", help="Input file (serialized text or JSON)")
    p_build.add_argument("-o", "--output", required=True, help="Output .bpt file")
    p_build.add_argument("-c", "--compression", choices=_KIND_CHOICES,
                         help="Compression kind (default: config, else gzip)")
    p_build.add_argument("--from", dest="source", choices=["raw", "json"], default="raw",
                         help="Input format (default: raw)")

    p_check = sub.add_parser("check", help="Run export diagnostics")
    p_check.add_argument("path", help="Original .bpt file")
    p_check.add_argument("edited", nargs="?", help="Edited serialized payload (default: original payload)")
    p_check.add_argument("-c", "--compression", choices=_KIND_CHOICES,
                         help="Compression to test (default: same as source)")

    args = parser.parse_args()

    if not args.command:
        print("bpt — workflow-template container codec")
        print()
        print("Usage:")
        print("  bpt info file.bpt")
        print("  bpt dump file.bpt [--format raw|json] [-o out]")
        print("  bpt repack file.bpt -o out.bpt [-c gzip|zlib|deflate|plain]")
        print("  bpt build edited.txt -o out.bpt [--from raw|json] [-c KIND]")
        print("  bpt check file.bpt [edited.txt] [-c KIND]")
        print()
        print("Run 'bpt <command> --help' for details on any command.")
        sys.exit(0)

    if args.verbose:
        level = logging.DEBUG if args.verbose > 1 else logging.INFO
    else:
        level = getattr(logging, _load_settings(args)["log_level"].upper())
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    commands = {
        "info": cmd_info,
        "dump": cmd_dump,
        "repack": cmd_repack,
        "build": cmd_build,
        "check": cmd_check,
    }

    commands[args.command](args)


if __name__ == "__main__":
    main()
