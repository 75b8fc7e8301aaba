"""
Diagnostics for representation resolution.

Every resolution failure is a ReprError value carrying:
    - the error kind (ErrorKind)
    - the type name involved, if any
    - the environment variable or file path the user should inspect or set

Errors are surfaced verbatim as build-halting failures. The resolver never
downgrades an error into a default representation.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple


class ErrorKind(Enum):
    """Closed set of resolution failure kinds."""

    MISSING_PLATFORM_MATCH = "MissingPlatformMatch"
    AMBIGUOUS_PLATFORM_MATCH = "AmbiguousPlatformMatch"
    MISSING_TYPE_IN_PLATFORM_ENTRY = "MissingTypeInPlatformEntry"
    MISSING_ENV_OVERRIDE = "MissingEnvOverride"
    MALFORMED_ENV_OVERRIDE_SYNTAX = "MalformedEnvOverrideSyntax"
    UNMATCHED_ENV_OVERRIDE = "UnmatchedEnvOverride"
    MALFORMED_CONDITION_EXPRESSION = "MalformedConditionExpression"
    UNKNOWN_CONDITION_KEY = "UnknownConditionKey"
    CONFIG_FILE_NOT_FOUND = "ConfigFileNotFound"
    CONFIG_FILE_PARSE_ERROR = "ConfigFileParseError"
    CONFIG_PATH_NOT_ABSOLUTE = "ConfigPathNotAbsolute"
    NATIVE_SIZE_UNSUPPORTED = "NativeSizeUnsupported"
    INVALID_SETTING = "InvalidSetting"

    def __str__(self) -> str:
        return self.value


def _describe_facts(facts: Mapping[str, str]) -> str:
    if not facts:
        return "{}"
    return "{" + ", ".join(f'{k}="{v}"' for k, v in facts.items()) + "}"


@dataclass(eq=False)
class ReprError(Exception):
    """A single resolution failure with structured context."""

    kind: ErrorKind
    message: str
    type_name: Optional[str] = None
    variable: Optional[str] = None
    path: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def hint(self) -> Optional[str]:
        """What the user should set or edit to fix this error."""
        if self.kind is ErrorKind.MISSING_ENV_OVERRIDE:
            return (
                f"set {self.variable} to a representation (e.g. {self.variable}=i32) "
                f"or add {self.type_name} to a table given by VISA_REPR_CONFIG_PATH"
            )
        if self.kind in (ErrorKind.MALFORMED_ENV_OVERRIDE_SYNTAX, ErrorKind.UNMATCHED_ENV_OVERRIDE):
            return f"fix the value of {self.variable}"
        if self.kind is ErrorKind.INVALID_SETTING:
            return f"fix or unset {self.variable}"
        if self.kind is ErrorKind.CONFIG_PATH_NOT_ABSOLUTE:
            return f"set {self.variable} to an absolute path"
        if self.path is not None:
            return f"edit {self.path}"
        if self.variable is not None:
            return f"fix the value of {self.variable}"
        return None

    def with_context(self, **changes: Any) -> "ReprError":
        """Copy of this error with additional context (type_name, variable, path)."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.kind.value,
            "message": self.message,
            "type_name": self.type_name,
            "variable": self.variable,
            "path": self.path,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"

    # -------------------------------------------------------------------------
    # Constructors, one per kind
    # -------------------------------------------------------------------------

    @classmethod
    def missing_platform_match(
        cls, type_name: str, facts: Mapping[str, str], table_label: str, path: Optional[Path] = None
    ) -> "ReprError":
        return cls(
            kind=ErrorKind.MISSING_PLATFORM_MATCH,
            message=(
                f"no platform entry in the {table_label} matches target "
                f"{_describe_facts(facts)} (resolving {type_name})"
            ),
            type_name=type_name,
            path=str(path) if path is not None else None,
            details={"facts": dict(facts), "table": table_label},
        )

    @classmethod
    def ambiguous_platform_match(
        cls,
        type_name: str,
        matches: Sequence[Tuple[int, str]],
        table_label: str,
        path: Optional[Path] = None,
    ) -> "ReprError":
        listed = "; ".join(f"#{index}: {text}" for index, text in matches)
        return cls(
            kind=ErrorKind.AMBIGUOUS_PLATFORM_MATCH,
            message=(
                f"{len(matches)} platform entries in the {table_label} match the target "
                f"while resolving {type_name} ({listed}); exactly one must match"
            ),
            type_name=type_name,
            path=str(path) if path is not None else None,
            details={"matches": [index for index, _ in matches], "table": table_label},
        )

    @classmethod
    def missing_type_in_entry(
        cls,
        type_name: str,
        index: int,
        condition_text: str,
        table_label: str,
        path: Optional[Path] = None,
    ) -> "ReprError":
        return cls(
            kind=ErrorKind.MISSING_TYPE_IN_PLATFORM_ENTRY,
            message=(
                f"platform entry #{index} ({condition_text}) in the {table_label} matches "
                f"the target but has no representation for {type_name}"
            ),
            type_name=type_name,
            path=str(path) if path is not None else None,
            details={"entry": index, "table": table_label},
        )

    @classmethod
    def missing_env_override(
        cls, type_name: str, variable: str, reason: Optional[str] = None
    ) -> "ReprError":
        message = f"custom representation requested but {variable} is not set (resolving {type_name})"
        if reason:
            message = f"{message}; {reason}"
        return cls(
            kind=ErrorKind.MISSING_ENV_OVERRIDE,
            message=message,
            type_name=type_name,
            variable=variable,
        )

    @classmethod
    def malformed_env_override(
        cls, type_name: str, variable: str, segment: str, reason: str
    ) -> "ReprError":
        return cls(
            kind=ErrorKind.MALFORMED_ENV_OVERRIDE_SYNTAX,
            message=f"malformed segment {segment!r} in {variable}: {reason}",
            type_name=type_name,
            variable=variable,
            details={"segment": segment, "reason": reason},
        )

    @classmethod
    def unmatched_env_override(
        cls, type_name: str, variable: str, value: str, facts: Mapping[str, str]
    ) -> "ReprError":
        return cls(
            kind=ErrorKind.UNMATCHED_ENV_OVERRIDE,
            message=(
                f"no condition in {variable}={value!r} matches target {_describe_facts(facts)} "
                f"and no unconditional representation is given"
            ),
            type_name=type_name,
            variable=variable,
            details={"value": value, "facts": dict(facts)},
        )

    @classmethod
    def malformed_condition(cls, text: str, reason: str, position: int) -> "ReprError":
        return cls(
            kind=ErrorKind.MALFORMED_CONDITION_EXPRESSION,
            message=f"invalid condition {text!r} at offset {position}: {reason}",
            details={"condition": text, "position": position, "reason": reason},
        )

    @classmethod
    def unknown_condition_key(cls, key: str, text: str, known: Iterable[str]) -> "ReprError":
        known_list = sorted(known)
        return cls(
            kind=ErrorKind.UNKNOWN_CONDITION_KEY,
            message=(
                f"unknown key {key!r} in condition {text!r}; "
                f"known keys: {', '.join(known_list)}"
            ),
            details={"key": key, "condition": text, "known": known_list},
        )

    @classmethod
    def config_file_not_found(cls, path: str, variable: Optional[str] = None) -> "ReprError":
        return cls(
            kind=ErrorKind.CONFIG_FILE_NOT_FOUND,
            message=f"config file not found: {path}",
            variable=variable,
            path=path,
        )

    @classmethod
    def config_file_parse_error(cls, path: str, reason: str) -> "ReprError":
        return cls(
            kind=ErrorKind.CONFIG_FILE_PARSE_ERROR,
            message=f"failed to parse config table {path}: {reason}",
            path=path,
            details={"reason": reason},
        )

    @classmethod
    def config_path_not_absolute(cls, path: str, variable: str) -> "ReprError":
        return cls(
            kind=ErrorKind.CONFIG_PATH_NOT_ABSOLUTE,
            message=f"{variable} must be an absolute path: {path}",
            variable=variable,
            path=path,
        )

    @classmethod
    def native_size_unsupported(cls, type_name: str, c_type: str, size: Optional[int]) -> "ReprError":
        if size is None:
            message = f"{type_name} has no known native C type to measure"
        else:
            message = f"native {c_type} for {type_name} is {size} bytes, which has no integer representation"
        return cls(
            kind=ErrorKind.NATIVE_SIZE_UNSUPPORTED,
            message=message,
            type_name=type_name,
            details={"c_type": c_type, "size": size},
        )

    @classmethod
    def invalid_setting(cls, variable: str, value: Any, reason: str) -> "ReprError":
        return cls(
            kind=ErrorKind.INVALID_SETTING,
            message=f"invalid value for {variable}: {reason}",
            variable=variable,
            details={"value": str(value), "reason": reason},
        )


class ResolutionFailed(Exception):
    """Raised when a resolution pass produced one or more errors."""

    def __init__(self, errors: Iterable[ReprError]):
        self.errors: Tuple[ReprError, ...] = tuple(errors)
        super().__init__(format_report(self.errors))

    def kinds(self) -> List[ErrorKind]:
        return [error.kind for error in self.errors]


def format_report(errors: Sequence[ReprError]) -> str:
    """Render errors as a multi-line, build-halting report."""
    lines = [f"visa-repr: {len(errors)} representation error(s); the build cannot continue"]
    for error in errors:
        subject = f"{error.type_name}: " if error.type_name else ""
        lines.append(f"  - [{error.kind.value}] {subject}{error.message}")
        hint = error.hint
        if hint:
            lines.append(f"    hint: {hint}")
    return "\n".join(lines)
