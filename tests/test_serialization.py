"""
Tests for serialization of conditions, tables and resolved maps.

A dumped table must load back through table_loader unchanged.
"""

import json

import pytest
import yaml
from visa_repr.condition_parser import parse_condition
from visa_repr.expressions import AllOf, AlwaysTrue, AnyOf, Atom, Not
from visa_repr.model import Representation, ResolvedMap, TableSource
from visa_repr.serialization import (
    condition_to_text,
    resolved_map_from_json,
    resolved_map_from_yaml,
    resolved_map_to_json,
    resolved_map_to_yaml,
    table_to_dict,
    table_to_yaml,
)
from visa_repr.table_loader import load_bundled_table, parse_table


class TestConditionToText:
    def test_atom(self):
        assert condition_to_text(Atom("target_os", "windows")) == 'target_os = "windows"'

    def test_escapes(self):
        assert condition_to_text(Atom("target_env", 'a"b')) == r'target_env = "a\"b"'

    def test_nested(self):
        cond = AllOf((Not(Atom("target_os", "windows")), AnyOf((Atom("target_pointer_width", "64"),))))
        assert condition_to_text(cond) == 'all(not(target_os = "windows"), any(target_pointer_width = "64"))'

    def test_empty_forms(self):
        assert condition_to_text(AlwaysTrue()) == "any()"
        assert condition_to_text(AllOf(())) == "all()"

    @pytest.mark.parametrize(
        "text",
        [
            'all(not(target_os = "windows"), target_pointer_width = "64")',
            "any()",
            'any(target_os = "macos", target_os = "ios")',
        ],
    )
    def test_text_reparses_to_same_tree(self, text):
        cond = parse_condition(text)
        assert parse_condition(condition_to_text(cond)) == cond


class TestTables:
    def test_bundled_table_round_trip(self):
        table = load_bundled_table()
        reloaded = parse_table(table_to_yaml(table), TableSource.PROJECT_LOCAL)
        assert [e.condition for e in reloaded.entries] == [e.condition for e in table.entries]
        assert [dict(e.reprs) for e in reloaded.entries] == [dict(e.reprs) for e in table.entries]

    def test_dict_layout(self):
        d = table_to_dict(load_bundled_table())
        assert d["platforms"][0]["condition"] == 'target_os = "windows"'
        assert d["platforms"][0]["types"]["ViInt32"] == "i32"


class TestResolvedMaps:
    def setup_method(self):
        self.resolved = ResolvedMap({"ViUInt16": Representation.U16, "ViInt32": Representation.I64})

    def test_json(self):
        text = resolved_map_to_json(self.resolved)
        assert json.loads(text) == {"ViUInt16": "u16", "ViInt32": "i64"}
        assert resolved_map_from_json(text).as_tokens() == self.resolved.as_tokens()

    def test_yaml_keeps_order(self):
        text = resolved_map_to_yaml(self.resolved)
        assert list(yaml.safe_load(text)) == ["ViUInt16", "ViInt32"]
        assert list(resolved_map_from_yaml(text)) == ["ViUInt16", "ViInt32"]

    def test_bad_token(self):
        with pytest.raises(ValueError):
            resolved_map_from_json('{"ViInt32": "int"}')
