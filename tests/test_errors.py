"""
Tests for resolution diagnostics.
"""

import pytest
from visa_repr.errors import ErrorKind, ReprError, ResolutionFailed, format_report


class TestReprError:
    """Test ReprError values."""

    def test_missing_env_override_names_variable(self):
        err = ReprError.missing_env_override("ViInt32", "VISA_REPR_VIINT32")
        assert err.kind is ErrorKind.MISSING_ENV_OVERRIDE
        assert err.type_name == "ViInt32"
        assert err.variable == "VISA_REPR_VIINT32"
        assert "VISA_REPR_VIINT32" in err.message
        assert "VISA_REPR_VIINT32=i32" in err.hint

    def test_missing_env_override_reason_appended(self):
        err = ReprError.missing_env_override("ViAttr", "VISA_REPR_VIATTR", "the bundled table does not resolve it")
        assert err.message.endswith("; the bundled table does not resolve it")

    def test_str_carries_kind(self):
        err = ReprError.config_file_not_found("/etc/visa.yaml")
        assert str(err) == "[ConfigFileNotFound] config file not found: /etc/visa.yaml"

    def test_is_exception(self):
        with pytest.raises(ReprError):
            raise ReprError.malformed_condition("x", "bad", 0)

    def test_with_context(self):
        err = ReprError.malformed_condition('target_os = "x', "unterminated string literal", 12)
        located = err.with_context(type_name="ViInt32", variable="VISA_REPR_VIINT32")
        assert located.type_name == "ViInt32"
        assert located.variable == "VISA_REPR_VIINT32"
        assert located.kind is err.kind
        assert err.type_name is None

    def test_ambiguous_lists_entries(self):
        err = ReprError.ambiguous_platform_match("ViStatus", [(0, "unix"), (2, "any()")], "bundled default table")
        assert err.details["matches"] == [0, 2]
        assert "#0: unix" in err.message
        assert "#2: any()" in err.message

    def test_missing_platform_match_describes_facts(self):
        err = ReprError.missing_platform_match("ViInt32", {"target_os": "haiku"}, "bundled default table")
        assert 'target_os="haiku"' in err.message
        assert err.details["facts"] == {"target_os": "haiku"}

    def test_path_hint(self):
        err = ReprError.config_file_parse_error("/tmp/t.yaml", "boom")
        assert err.hint == "edit /tmp/t.yaml"

    def test_to_dict(self):
        err = ReprError.invalid_setting("VISA_REPR_CUSTOM", "maybe", "not a boolean")
        d = err.to_dict()
        assert d["error"] == "InvalidSetting"
        assert d["variable"] == "VISA_REPR_CUSTOM"
        assert d["details"]["value"] == "maybe"

    def test_native_size_unsupported(self):
        err = ReprError.native_size_unsupported("ViInt32", "c_long", 3)
        assert "3 bytes" in err.message
        assert ReprError.native_size_unsupported("ViFoo", "?", None).details["size"] is None


class TestResolutionFailed:
    """Test the aggregate failure."""

    def test_carries_every_error(self):
        errors = [
            ReprError.missing_env_override("ViInt32", "VISA_REPR_VIINT32"),
            ReprError.missing_env_override("ViStatus", "VISA_REPR_VISTATUS"),
        ]
        failure = ResolutionFailed(errors)
        assert failure.errors == tuple(errors)
        assert failure.kinds() == [ErrorKind.MISSING_ENV_OVERRIDE, ErrorKind.MISSING_ENV_OVERRIDE]
        assert "VISA_REPR_VISTATUS" in str(failure)


class TestFormatReport:
    def test_report_layout(self):
        report = format_report([ReprError.missing_env_override("ViInt32", "VISA_REPR_VIINT32")])
        lines = report.splitlines()
        assert lines[0] == "visa-repr: 1 representation error(s); the build cannot continue"
        assert lines[1].startswith("  - [MissingEnvOverride] ViInt32: ")
        assert lines[2].startswith("    hint: set VISA_REPR_VIINT32")

    def test_no_subject_without_type(self):
        report = format_report([ReprError.config_file_not_found("/x.yaml")])
        assert "  - [ConfigFileNotFound] config file not found: /x.yaml" in report.splitlines()
