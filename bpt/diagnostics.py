"""
Export diagnostics — pre-flight checks for an edited payload before saving.

Each check is independent and never raises; failures are reported as
Check(ok=False) with a detail string, so a broken payload still yields a
full report.
"""

from __future__ import annotations

from dataclasses import dataclass

from bpt.errors import BptError
from bpt._format import Array, Int, PHPReader, PHPWriter, Value, looks_like_serialized
from bpt.container import LoadedContainer
from bpt.envelope import CompressionKind, encode, unwrap

_HEAD_CHARS = 50


@dataclass
class Check:
    name: str
    ok: bool
    detail: str = ""


def check_export(
    text: str | bytes,
    original: LoadedContainer,
    kind: CompressionKind | None = None,
) -> list[Check]:
    """Run every check on ``text`` against the originally loaded container."""
    payload = text.encode("utf-8") if isinstance(text, str) else text
    kind = kind or original.compression
    checks: list[Check] = []

    head = payload[:1024].decode("utf-8", errors="replace")
    looks = looks_like_serialized(head)
    checks.append(Check(
        "looks-serialized", looks,
        "" if looks else f"starts with {head[:_HEAD_CHARS]!r}",
    ))

    tree = None
    try:
        tree = PHPReader.parse(payload)
        checks.append(Check("parse", True, _top_level_keys(tree)))
    except BptError as e:
        checks.append(Check("parse", False, str(e)))

    if tree is not None:
        try:
            again = PHPWriter.serialize(tree)
            same = again == payload
            checks.append(Check(
                "reserialize", same,
                "identical" if same else f"differs ({len(again)} vs {len(payload)} bytes)",
            ))
        except BptError as e:
            checks.append(Check("reserialize", False, str(e)))

    delta = len(payload) - len(original.payload)
    checks.append(Check(
        "length", True,
        f"original {len(original.payload)} bytes, current {len(payload)} bytes, delta {delta:+d}",
    ))

    try:
        wrapped = encode(payload, kind)
        restored, detected = unwrap(wrapped)
        ok = restored == payload and detected is kind
        checks.append(Check(
            f"compress-{kind.value}", ok,
            f"{len(wrapped)} bytes" if ok else f"decoded back as {detected.value}",
        ))
    except BptError as e:
        checks.append(Check(f"compress-{kind.value}", False, str(e)))

    non_ascii = any(b > 0x7F for b in payload)
    checks.append(Check("non-ascii", True, "yes" if non_ascii else "no"))

    changed = payload != original.payload
    checks.append(Check("changed", True, "yes" if changed else "no"))
    return checks


def _top_level_keys(tree: Value) -> str:
    if not isinstance(tree, Array):
        return type(tree).__name__
    keys = [str(k.value) if isinstance(k, Int) else str(k) for k in tree.keys()]
    return "keys: " + ", ".join(keys)


def format_report(checks: list[Check]) -> str:
    lines = []
    for check in checks:
        mark = "[ OK ]" if check.ok else "[FAIL]"
        line = f"{mark} {check.name}"
        if check.detail:
            line += f": {check.detail}"
        lines.append(line)
    return "\n".join(lines)


def all_ok(checks: list[Check]) -> bool:
    return all(c.ok for c in checks)
