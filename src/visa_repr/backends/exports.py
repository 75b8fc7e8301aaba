"""
Text renderers for resolved maps.

Formats:
    - SHELL: `export VISA_REPR_<TYPE>="<repr>"` lines for POSIX shells
    - BATCH: `set VISA_REPR_<TYPE>=<repr>` lines for cmd.exe
    - YAML: a table-file fragment with one complete platform entry
    - JSON: a flat type -> representation object

The shell and batch forms feed back into custom mode unchanged; the YAML
form is a valid table file for VISA_REPR_CONFIG_PATH.
"""

import json
import re
from enum import Enum
from typing import Dict, Optional

import yaml

from ..env_overrides import override_variable
from ..model import ResolvedMap

_HEADER = "Generated VISA repr configuration for the custom-repr mode"

_SHELL_RE = re.compile(r'^\s*(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)=(?:"([^"]*)"|\'([^\']*)\'|(\S*))\s*$')
_BATCH_RE = re.compile(r'^\s*set\s+"?([A-Za-z_][A-Za-z0-9_]*)=([^"]*)"?\s*$', re.IGNORECASE)


class ExportFormat(Enum):
    """Output formats of the detection utility."""
    SHELL = "shell"
    BATCH = "batch"
    YAML = "yaml"
    JSON = "json"


_FORMAT_ALIASES = {
    "sh": ExportFormat.SHELL,
    "bat": ExportFormat.BATCH,
    "cmd": ExportFormat.BATCH,
    "yml": ExportFormat.YAML,
}


def parse_format(name: str) -> ExportFormat:
    """
    Format by name or alias.

    Raises:
        ValueError: For an unknown format name
    """
    key = name.strip().lower()
    if key in _FORMAT_ALIASES:
        return _FORMAT_ALIASES[key]
    try:
        return ExportFormat(key)
    except ValueError:
        supported = ", ".join(f.value for f in ExportFormat)
        raise ValueError(f"unknown format {name!r} (supported: {supported})") from None


def render_shell(resolved: ResolvedMap) -> str:
    lines = [
        "#!/bin/sh",
        f"# {_HEADER}",
        "# Source this file or copy the exports to your environment",
        "",
    ]
    for type_name, rep in resolved.items():
        lines.append(f'export {override_variable(type_name)}="{rep.value}"')
    return "\n".join(lines) + "\n"


def render_batch(resolved: ResolvedMap) -> str:
    lines = [
        "@echo off",
        f"REM {_HEADER}",
        "REM Run this file to set environment variables",
        "",
    ]
    for type_name, rep in resolved.items():
        lines.append(f"set {override_variable(type_name)}={rep.value}")
    return "\n".join(lines) + "\n"


def render_yaml_table(resolved: ResolvedMap, condition: str = "any()") -> str:
    """
    A table file with one entry mapping every type.

    Args:
        resolved: Map to write
        condition: Condition text of the entry; any() matches every target
    """
    document = {
        "platforms": [
            {
                "condition": condition,
                "types": resolved.as_tokens(),
            }
        ]
    }
    header = "# Generated VISA repr configuration\n# Usable as visa_repr_config.yaml or via VISA_REPR_CONFIG_PATH\n"
    return header + yaml.safe_dump(document, sort_keys=False)


def render_json(resolved: ResolvedMap) -> str:
    return json.dumps(resolved.as_tokens(), indent=2) + "\n"


def render(resolved: ResolvedMap, fmt: ExportFormat, condition: Optional[str] = None) -> str:
    if fmt is ExportFormat.SHELL:
        return render_shell(resolved)
    if fmt is ExportFormat.BATCH:
        return render_batch(resolved)
    if fmt is ExportFormat.YAML:
        return render_yaml_table(resolved, condition or "any()")
    if fmt is ExportFormat.JSON:
        return render_json(resolved)
    raise TypeError(f"Unsupported ExportFormat: {fmt}")


def read_exports(text: str) -> Dict[str, str]:
    """
    Parse shell or batch output back into an environment mapping.

    Comments, blank lines and script preambles are skipped.
    """
    environ: Dict[str, str] = {}
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith(("#", "@", "REM ", "rem ")) or stripped.upper() == "REM":
            continue
        match = _BATCH_RE.match(stripped)
        if match:
            environ[match.group(1)] = match.group(2)
            continue
        match = _SHELL_RE.match(stripped)
        if match:
            value = next(group for group in match.groups()[1:] if group is not None)
            environ[match.group(1)] = value
    return environ

