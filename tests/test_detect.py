"""
Tests for the detection utility and its output formats.

Detected output must feed straight back into the resolver: shell and batch
exports through custom mode, YAML through VISA_REPR_CONFIG_PATH.
"""

import json

import pytest
from visa_repr.backends.exports import ExportFormat, parse_format, read_exports, render
from visa_repr.detect import detect_native_map, detection_report, platform_condition
from visa_repr.expressions import AllOf, AlwaysTrue, Atom
from visa_repr.model import VISA_TYPE_NAMES, FactTable, Representation, ResolvedMap
from visa_repr.resolver import resolve_from_environment

SIZES_LP64 = {name: (2 if "16" in name else 8) for name in VISA_TYPE_NAMES}
LINUX_64 = FactTable.from_target_triple("x86_64-unknown-linux-gnu")
WINDOWS_64 = FactTable.from_target_triple("x86_64-pc-windows-msvc")


class TestParseFormat:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("shell", ExportFormat.SHELL),
            ("sh", ExportFormat.SHELL),
            ("BAT", ExportFormat.BATCH),
            ("cmd", ExportFormat.BATCH),
            ("yml", ExportFormat.YAML),
            ("json", ExportFormat.JSON),
        ],
    )
    def test_names_and_aliases(self, name, expected):
        assert parse_format(name) is expected

    def test_unknown(self):
        with pytest.raises(ValueError):
            parse_format("toml")


class TestDetect:
    def test_detect_with_injected_sizes(self):
        resolved = detect_native_map(native_sizes=SIZES_LP64)
        assert resolved["ViInt32"] is Representation.I64
        assert tuple(resolved) == VISA_TYPE_NAMES

    def test_detect_host(self):
        resolved = detect_native_map()
        assert len(resolved) == len(VISA_TYPE_NAMES)

    def test_platform_condition(self):
        assert platform_condition(LINUX_64) == AllOf(
            (Atom("target_os", "linux"), Atom("target_pointer_width", "64"))
        )
        assert platform_condition({}) == AlwaysTrue()


class TestRenderers:
    def setup_method(self):
        self.resolved = ResolvedMap({"ViUInt16": Representation.U16, "ViInt32": Representation.I32})

    def test_shell(self):
        text = render(self.resolved, ExportFormat.SHELL)
        assert text.startswith("#!/bin/sh\n")
        assert 'export VISA_REPR_VIINT32="i32"' in text.splitlines()

    def test_batch(self):
        text = render(self.resolved, ExportFormat.BATCH)
        assert text.startswith("@echo off\n")
        assert "set VISA_REPR_VIUINT16=u16" in text.splitlines()

    def test_json(self):
        assert json.loads(render(self.resolved, ExportFormat.JSON)) == {"ViUInt16": "u16", "ViInt32": "i32"}

    @pytest.mark.parametrize("fmt", [ExportFormat.SHELL, ExportFormat.BATCH])
    def test_read_exports(self, fmt):
        environ = read_exports(render(self.resolved, fmt))
        assert environ == {"VISA_REPR_VIUINT16": "u16", "VISA_REPR_VIINT32": "i32"}

    def test_read_exports_quoting(self):
        text = "export A='x'\nB=y\n# C=z\nREM D=w\n"
        assert read_exports(text) == {"A": "x", "B": "y"}


class TestFeedBack:
    """Detected output configures a later pass."""

    @pytest.mark.parametrize("fmt", [ExportFormat.SHELL, ExportFormat.BATCH])
    def test_exports_drive_custom_mode(self, fmt, tmp_path):
        environ = read_exports(detection_report(fmt, native_sizes=SIZES_LP64))
        environ["VISA_REPR_CUSTOM"] = "1"
        environ["VISA_REPR_CROSS_COMPILE"] = "1"
        result = resolve_from_environment(facts=WINDOWS_64, environ=environ, project_root=tmp_path)
        assert result.unwrap()["ViStatus"] is Representation.I64

    def test_yaml_is_explicit_table(self, tmp_path):
        path = tmp_path / "detected.yaml"
        path.write_text(detection_report(ExportFormat.YAML, facts=LINUX_64, native_sizes=SIZES_LP64))
        environ = {"VISA_REPR_CROSS_COMPILE": "1", "VISA_REPR_CONFIG_PATH": str(path)}

        result = resolve_from_environment(facts=LINUX_64, environ=environ, project_root=tmp_path)
        assert result.unwrap()["ViAttr"] is Representation.U64

        other = resolve_from_environment(facts=WINDOWS_64, environ=environ, project_root=tmp_path)
        assert not other.ok

    def test_unconditional_yaml_matches_everything(self, tmp_path):
        path = tmp_path / "detected.yaml"
        path.write_text(detection_report(ExportFormat.YAML, unconditional=True, native_sizes=SIZES_LP64))
        environ = {"VISA_REPR_CROSS_COMPILE": "1", "VISA_REPR_CONFIG_PATH": str(path)}
        result = resolve_from_environment(facts=WINDOWS_64, environ=environ, project_root=tmp_path)
        assert result.unwrap()["ViInt32"] is Representation.I64
