"""Tests for the visa-repr command line."""

import json
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from visa_repr import __version__
from visa_repr.cli import cli
from visa_repr.model import VISA_TYPE_NAMES

runner = CliRunner()

CLEAN_ENV = {
    "VISA_REPR_CROSS_COMPILE": None,
    "VISA_REPR_CUSTOM": None,
    "VISA_REPR_CONFIG_PATH": None,
    "VISA_REPR_MISSING_OVERRIDE_POLICY": None,
    "VISA_REPR_LOG_LEVEL": None,
    **{f"VISA_REPR_{name.upper()}": None for name in VISA_TYPE_NAMES},
}


def env(**values):
    return {**CLEAN_ENV, **values}


class TestResolveCommand:
    """visa-repr resolve"""

    def test_cross_compile_windows(self, tmp_path: Path) -> None:
        result = runner.invoke(
            cli,
            ["resolve", "--target", "x86_64-pc-windows-msvc", "--project-root", str(tmp_path)],
            env=env(VISA_REPR_CROSS_COMPILE="1"),
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["ViInt32"] == "i32"

    def test_fact_replaces_target_fact(self, tmp_path: Path) -> None:
        result = runner.invoke(
            cli,
            [
                "resolve",
                "--target",
                "x86_64-unknown-linux-gnu",
                "--fact",
                "target_pointer_width=32",
                "--project-root",
                str(tmp_path),
                "--format",
                "yaml",
            ],
            env=env(VISA_REPR_CROSS_COMPILE="1"),
        )
        assert result.exit_code == 0, result.output
        assert "ViInt32: i32" in result.stdout

    def test_failure_prints_report(self, tmp_path: Path) -> None:
        result = runner.invoke(
            cli,
            ["resolve", "--target", "x86_64-unknown-linux-gnu", "--project-root", str(tmp_path)],
            env=env(VISA_REPR_CROSS_COMPILE="1", VISA_REPR_CUSTOM="1"),
        )
        assert result.exit_code == 1
        assert "[MissingEnvOverride]" in result.output
        assert "VISA_REPR_VIINT32" in result.output

    def test_shell_output(self, tmp_path: Path) -> None:
        result = runner.invoke(
            cli,
            ["resolve", "--target", "x86_64-unknown-linux-gnu", "--format", "sh", "--project-root", str(tmp_path)],
            env=env(VISA_REPR_CROSS_COMPILE="1"),
        )
        assert result.exit_code == 0, result.output
        assert 'export VISA_REPR_VISTATUS="i64"' in result.stdout

    @pytest.mark.parametrize("args", [["--fact", "nonsense"], ["--fact", "cpu=x"], ["--target", "garbage"]])
    def test_bad_parameters(self, args, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["resolve", *args, "--project-root", str(tmp_path)], env=env())
        assert result.exit_code == 2


class TestDetectCommand:
    """visa-repr detect"""

    def test_json(self) -> None:
        result = runner.invoke(cli, ["detect", "--format", "json"], env=env())
        assert result.exit_code == 0, result.output
        assert list(json.loads(result.stdout)) == list(VISA_TYPE_NAMES)

    def test_unconditional_yaml(self) -> None:
        result = runner.invoke(cli, ["detect", "--format", "yaml", "--unconditional"], env=env())
        assert result.exit_code == 0, result.output
        document = yaml.safe_load(result.stdout)
        assert document["platforms"][0]["condition"] == "any()"

    def test_default_is_shell(self) -> None:
        result = runner.invoke(cli, ["detect"], env=env())
        assert result.stdout.startswith("#!/bin/sh")


class TestWatchListCommand:
    """visa-repr watch-list"""

    def test_custom_mode_lists_overrides(self, tmp_path: Path) -> None:
        result = runner.invoke(
            cli, ["watch-list", "--json", "--project-root", str(tmp_path)], env=env(VISA_REPR_CUSTOM="1")
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert "VISA_REPR_VIINT32" in data["env"]
        assert data["files"] == [str(tmp_path / "visa_repr_config.yaml")]

    def test_text_output(self, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["watch-list", "--project-root", str(tmp_path)], env=env())
        assert result.stdout.splitlines() == ["env VISA_REPR_CROSS_COMPILE", "env VISA_REPR_CUSTOM"]

    def test_invalid_setting(self, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["watch-list", "--project-root", str(tmp_path)], env=env(VISA_REPR_CUSTOM="x"))
        assert result.exit_code == 1
        assert "[InvalidSetting]" in result.output


class TestVerboseOutput:
    """Debug logging goes to stderr and leaves generated output intact."""

    def test_resolve_json_stays_parseable(self, tmp_path: Path) -> None:
        result = runner.invoke(
            cli,
            ["-v", "resolve", "--target", "x86_64-pc-windows-msvc", "--project-root", str(tmp_path)],
            env=env(VISA_REPR_CROSS_COMPILE="1"),
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["ViInt32"] == "i32"
        assert "type_resolved" in result.stderr

    def test_detect_shell_script_starts_with_shebang(self) -> None:
        result = runner.invoke(cli, ["-v", "detect", "--format", "shell"], env=env())
        assert result.exit_code == 0, result.output
        assert result.stdout.startswith("#!/bin/sh\n")
        assert "type_resolved" not in result.stdout


def test_version() -> None:
    result = runner.invoke(cli, ["--version"])
    assert __version__ in result.output
