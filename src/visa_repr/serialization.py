"""
Serialization helpers for conditions, config tables and resolved maps.

Provides text/JSON/YAML conversion via intermediate dict representation.
The table dict layout is the same one table_loader.py reads back, so
a dumped table is a valid table file.
"""
from __future__ import annotations

import json
from typing import Any, Dict, Mapping

import yaml

from .expressions import AllOf, AlwaysTrue, AnyOf, Atom, Condition, Not
from .model import ConfigTable, PlatformEntry, Representation, ResolvedMap


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def condition_to_text(condition: Condition) -> str:
    """Render a condition tree in canonical textual form."""
    if isinstance(condition, AlwaysTrue):
        return "any()"
    if isinstance(condition, Atom):
        return f"{condition.key} = {_quote(condition.value)}"
    if isinstance(condition, AllOf):
        return "all(" + ", ".join(condition_to_text(c) for c in condition.children) + ")"
    if isinstance(condition, AnyOf):
        return "any(" + ", ".join(condition_to_text(c) for c in condition.children) + ")"
    if isinstance(condition, Not):
        return f"not({condition_to_text(condition.operand)})"
    raise TypeError(f"Unsupported Condition type: {type(condition)}")


def entry_to_dict(entry: PlatformEntry) -> Dict[str, Any]:
    return {
        "condition": entry.condition_text or condition_to_text(entry.condition),
        "types": {name: rep.value for name, rep in entry.reprs.items()},
    }


def table_to_dict(table: ConfigTable) -> Dict[str, Any]:
    return {"platforms": [entry_to_dict(entry) for entry in table.entries]}


def table_to_yaml(table: ConfigTable) -> str:
    return yaml.safe_dump(table_to_dict(table), sort_keys=False)


def resolved_map_to_dict(resolved: ResolvedMap) -> Dict[str, str]:
    return resolved.as_tokens()


def resolved_map_from_dict(d: Mapping[str, str]) -> ResolvedMap:
    return ResolvedMap({name: Representation.parse(token) for name, token in d.items()})


def resolved_map_to_json(resolved: ResolvedMap) -> str:
    return json.dumps(resolved_map_to_dict(resolved), indent=2)


def resolved_map_from_json(s: str) -> ResolvedMap:
    return resolved_map_from_dict(json.loads(s))


def resolved_map_to_yaml(resolved: ResolvedMap) -> str:
    return yaml.safe_dump(resolved_map_to_dict(resolved), sort_keys=False)


def resolved_map_from_yaml(s: str) -> ResolvedMap:
    return resolved_map_from_dict(yaml.safe_load(s) or {})
