"""
Tests for template.py — summary extraction from a parsed template tree.
"""

from __future__ import annotations

import pytest

from bpt._format import Array, Bool, Int, Null, Str, loads
from bpt.template import summarize


def _arr(**members) -> Array:
    out = Array()
    for key, value in members.items():
        out.set(key, value)
    return out


def _activity(type_name: str, title: str = "", children: list | None = None) -> Array:
    node = _arr(Type=Str.of(type_name), Properties=_arr(Title=Str.of(title)))
    if children is not None:
        kids = Array()
        for child in children:
            kids.append(child)
        node.set("Children", kids)
    return node


@pytest.fixture
def tree() -> Array:
    root = _activity("SequentialWorkflowActivity", "Заявка на отпуск", [
        _activity("SetFieldActivity", "Set status"),
        _activity("IfElseActivity", "Check amount", [
            _activity("IfElseBranchActivity", "Yes", []),
            _activity("IfElseBranchActivity", "No", [_activity("ApproveActivity")]),
        ]),
    ])
    template = Array()
    template.append(root)
    return _arr(
        VERSION=Int(2),
        TEMPLATE=template,
        VARIABLES=_arr(Amount=_arr(
            Name=Str.of("Сумма"), Type=Str.of("double"), Required=Str.of("Y"),
        )),
        CONSTANTS=_arr(Limit=_arr(Name=Str.of("Лимит"), Type=Str.of("int"), Multiple=Bool(True))),
        PARAMETERS=Array(),
        DOCUMENT_FIELDS=_arr(
            UF_LATE=_arr(Name=Str.of("Late"), Type=Str.of("string"), active=Str.of("Y"), sort=Int(300)),
            UF_HIDDEN=_arr(Name=Str.of("Hidden"), Type=Str.of("string"), active=Str.of("N"), sort=Int(10)),
            UF_EARLY=_arr(Name=Str.of("Early"), Type=Str.of("int"), active=Int(1), sort=Str.of("100")),
            UF_NOSORT=_arr(Name=Str.of("No sort"), Type=Str.of("bool"), active=Bool(True)),
        ),
    )


# ---------------------------------------------------------------------------
# TestSummarize
# ---------------------------------------------------------------------------

class TestSummarize:

    def test_title_and_version(self, tree):
        summary = summarize(tree)
        assert summary.title == "Заявка на отпуск"
        assert summary.version == "2"

    def test_activity_count_is_recursive(self, tree):
        assert summarize(tree).activity_count == 6

    def test_variables(self, tree):
        (var,) = summarize(tree).variables
        assert var.key == "Amount"
        assert var.name == "Сумма"
        assert var.type == "double"
        assert var.required
        assert not var.multiple

    def test_constants(self, tree):
        (const,) = summarize(tree).constants
        assert const.name == "Лимит"
        assert const.multiple

    def test_empty_parameters(self, tree):
        assert summarize(tree).parameters == []

    def test_fields_active_only_and_sorted(self, tree):
        fields = summarize(tree).fields
        assert [f.key for f in fields] == ["UF_EARLY", "UF_LATE", "UF_NOSORT"]
        assert [f.sort for f in fields] == [100, 300, 999]

    def test_member_name_falls_back_to_key(self):
        tree = _arr(VARIABLES=_arr(Plain=_arr(Type=Str.of("string"))))
        assert summarize(tree).variables[0].name == "Plain"


# ---------------------------------------------------------------------------
# TestDegenerateTrees
# ---------------------------------------------------------------------------

class TestDegenerateTrees:

    @pytest.mark.parametrize("tree", [None, Null(), Int(1), Str.of("x")])
    def test_non_array_root(self, tree):
        summary = summarize(tree)
        assert summary.title == ""
        assert summary.activity_count == 0
        assert summary.variables == []

    def test_missing_sections(self):
        summary = summarize(Array())
        assert summary.version == ""
        assert summary.fields == []

    def test_sections_of_wrong_type_are_ignored(self):
        tree = _arr(VARIABLES=Str.of("broken"), TEMPLATE=Int(0))
        summary = summarize(tree)
        assert summary.variables == []
        assert summary.activity_count == 0

    def test_from_serialized_payload(self):
        payload = (
            'a:2:{s:7:"VERSION";i:1;s:8:"TEMPLATE";a:1:{i:0;a:2:{s:4:"Type";'
            's:26:"SequentialWorkflowActivity";s:10:"Properties";a:1:{s:5:"Title";s:4:"Test";}}}}'
        ).encode("utf-8")
        summary = summarize(loads(payload))
        assert summary.title == "Test"
        assert summary.activity_count == 1
