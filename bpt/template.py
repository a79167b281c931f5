"""Summary of a workflow-template tree: title, version, variables, constants, fields."""

from __future__ import annotations

from dataclasses import dataclass, field

from bpt._format.values import Array, Bool, Float, Int, Null, Object, Str, Value

_DEFAULT_SORT = 999


@dataclass
class Member:
    key: str
    name: str
    type: str
    required: bool = False
    multiple: bool = False
    description: str = ""


@dataclass
class DocumentField(Member):
    sort: int = _DEFAULT_SORT


@dataclass
class TemplateSummary:
    title: str = ""
    version: str = ""
    variables: list[Member] = field(default_factory=list)
    constants: list[Member] = field(default_factory=list)
    parameters: list[Member] = field(default_factory=list)
    fields: list[DocumentField] = field(default_factory=list)
    activity_count: int = 0


def _lookup(node: Value | None, key: str) -> Value | None:
    if isinstance(node, Array):
        return node.get(key)
    if isinstance(node, Object):
        return node.get(key)
    return None


def _text(node: Value | None) -> str:
    if isinstance(node, Str):
        return str(node)
    if isinstance(node, (Int, Float)):
        return str(node.value)
    if isinstance(node, Bool):
        return "1" if node.value else ""
    return ""


def _flag(node: Value | None) -> bool:
    """Legacy flags come as b:1, i:1, s:1:"1" or s:1:"Y"."""
    if node is None or isinstance(node, Null):
        return False
    if isinstance(node, Bool):
        return node.value
    if isinstance(node, (Int, Float)):
        return node.value != 0
    return _text(node) in ("1", "Y", "y", "true")


def _int(node: Value | None, default: int) -> int:
    if isinstance(node, Int):
        return node.value
    try:
        return int(_text(node))
    except ValueError:
        return default


def _members(section: Value | None) -> list[tuple[str, Value]]:
    if not isinstance(section, Array):
        return []
    out = []
    for key, value in section.items:
        out.append((str(key.value) if isinstance(key, Int) else str(key), value))
    return out


def _member(key: str, node: Value) -> Member:
    return Member(
        key=key,
        name=_text(_lookup(node, "Name")) or key,
        type=_text(_lookup(node, "Type")),
        required=_flag(_lookup(node, "Required")),
        multiple=_flag(_lookup(node, "Multiple")),
        description=_text(_lookup(node, "Description")),
    )


def summarize(tree: Value | None) -> TemplateSummary:
    """Extract the parts of a template an editor shows at a glance.

    Missing sections give empty lists; a non-array root gives an empty summary.
    """
    summary = TemplateSummary()
    if not isinstance(tree, Array):
        return summary

    summary.version = _text(tree.get("VERSION"))

    template = tree.get("TEMPLATE")
    if isinstance(template, Array) and template.items:
        root_activity = template.items[0][1]
        summary.title = _text(_lookup(_lookup(root_activity, "Properties"), "Title"))
        summary.activity_count = _count_activities(template)

    summary.variables = [_member(k, v) for k, v in _members(tree.get("VARIABLES"))]
    summary.constants = [_member(k, v) for k, v in _members(tree.get("CONSTANTS"))]
    summary.parameters = [_member(k, v) for k, v in _members(tree.get("PARAMETERS"))]

    fields = []
    for key, node in _members(tree.get("DOCUMENT_FIELDS")):
        if not _flag(_lookup(node, "active")):
            continue
        base = _member(key, node)
        fields.append(DocumentField(
            key=base.key,
            name=base.name,
            type=base.type,
            required=base.required,
            multiple=base.multiple,
            description=base.description,
            sort=_int(_lookup(node, "sort"), _DEFAULT_SORT) or _DEFAULT_SORT,
        ))
    # stable: equal sort values keep document order
    summary.fields = sorted(fields, key=lambda f: f.sort)
    return summary


def _count_activities(activities: Array) -> int:
    count = 0
    stack = [activities]
    while stack:
        current = stack.pop()
        for _, activity in current.items:
            if _lookup(activity, "Type") is None:
                continue
            count += 1
            children = _lookup(activity, "Children")
            if isinstance(children, Array):
                stack.append(children)
    return count
