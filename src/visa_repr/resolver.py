"""
Representation Resolver: one decision per type per build.

Policy modes and precedence:
    NATIVE
        Measure the native C type on the host. No conditions are evaluated.
    CROSS_COMPILE
        Overrides are ignored. The active table is the explicit-path table,
        else the project-local table, else the bundled table. Exactly one
        entry must match the target, and it must list the type.
    CUSTOM
        The type's environment override wins (first matching segment).
        Without an override, the explicit-path table is consulted, else the
        ordinary active table. A table with no matching entry leaves the
        type uncovered, an error naming the override variable. A table that
        matches but is broken (ambiguous, or missing the type) reports its
        own error, under either missing-override policy.
    CUSTOM_CROSS_COMPILE
        As CUSTOM, but only the explicit-path table may serve as fallback.
        Shipped defaults are never consulted.

IMPORTANT: Every required type is attempted and every failure is reported.
A pass either publishes a complete ResolvedMap or none at all.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Literal, Mapping, Optional, Sequence, Tuple

from .errors import ErrorKind, ReprError, ResolutionFailed
from .evaluator import evaluate, referenced_keys
from .logging import get_logger
from .model import (
    VISA_TYPE_NAMES,
    ConfigTable,
    EnvOverride,
    FactTable,
    PlatformEntry,
    PolicyMode,
    Representation,
    ResolvedMap,
)
from .native import measure_native_sizes, native_representation
from .env_overrides import override_variable, read_env_overrides
from .settings import CONFIG_PATH_VARIABLE, ResolverSettings, project_table_path, setting_variable
from .table_loader import load_bundled_table, load_explicit_table, load_project_table, select_active_table

log = get_logger(__name__)

MissingOverridePolicy = Literal["error", "native"]


@dataclass(frozen=True)
class ResolutionResult:
    """
    Outcome of one resolution pass.

    Properties:
        resolved: Complete map on success, None if any type failed
        errors: Every failure found in the pass
        sources: Where each successful representation came from
                 ("env:VISA_REPR_VIINT32", "table:bundled[1]", "native")
    """

    resolved: Optional[ResolvedMap]
    errors: Tuple[ReprError, ...] = ()
    sources: Mapping[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def unwrap(self) -> ResolvedMap:
        """The resolved map, or ResolutionFailed carrying every error."""
        if self.errors or self.resolved is None:
            raise ResolutionFailed(self.errors)
        return self.resolved

    @classmethod
    def failure(cls, errors: Iterable[ReprError]) -> "ResolutionResult":
        return cls(resolved=None, errors=tuple(errors))


class _TableMatcher:
    """Evaluates a table's conditions once per pass and answers per type."""

    def __init__(self, table: ConfigTable, facts: Mapping[str, str]):
        self.table = table
        self.facts = facts
        self.matches: List[Tuple[int, PlatformEntry]] = [
            (index, entry) for index, entry in enumerate(table.entries) if evaluate(entry.condition, facts)
        ]

    def resolve(self, type_name: str) -> Tuple[Representation, str]:
        table = self.table
        if not self.matches:
            err = ReprError.missing_platform_match(type_name, self.facts, table.label, table.path)
            missing = sorted(
                {key for entry in table.entries for key in referenced_keys(entry.condition)} - set(self.facts)
            )
            if missing:
                err = err.with_context(details={**err.details, "facts_not_supplied": missing})
            raise err
        if len(self.matches) > 1:
            raise ReprError.ambiguous_platform_match(
                type_name,
                [(index, entry.condition_text) for index, entry in self.matches],
                table.label,
                table.path,
            )
        index, entry = self.matches[0]
        representation = entry.reprs.get(type_name)
        if representation is None:
            raise ReprError.missing_type_in_entry(type_name, index, entry.condition_text, table.label, table.path)
        return representation, f"table:{table.source.value}[{index}]"


def _resolve_override(override: EnvOverride, facts: Mapping[str, str]) -> Tuple[Representation, str]:
    for rule in override.rules:
        if rule.condition is None or evaluate(rule.condition, facts):
            return rule.representation, f"env:{override.variable}"
    raise ReprError.unmatched_env_override(override.type_name, override.variable, override.raw_value, facts)


def resolve(
    required_types: Sequence[str],
    facts: Mapping[str, str],
    mode: PolicyMode,
    overrides: Optional[Mapping[str, EnvOverride]] = None,
    config_table: Optional[ConfigTable] = None,
    *,
    config_path_table: Optional[ConfigTable] = None,
    native_sizes: Optional[Mapping[str, int]] = None,
    missing_override_policy: MissingOverridePolicy = "error",
) -> ResolutionResult:
    """
    Resolve a representation for every required type.

    Args:
        required_types: Type names, in the order the map should follow
        facts: Target attributes (a FactTable or plain mapping)
        mode: Active policy mode
        overrides: Parsed environment overrides by type name (custom modes)
        config_table: Project-local or bundled table
        config_path_table: Table from the explicit config path, if any
        native_sizes: Native sizes in bytes; measured on the host if omitted
        missing_override_policy: "error", or "native" to fall back to the
            host size for types nothing covers in custom modes

    Returns:
        ResolutionResult with either a complete map or every error

    Raises:
        ValueError: If CROSS_COMPILE is requested without any table
    """
    overrides = overrides or {}
    needs_native = mode is PolicyMode.NATIVE or (mode.uses_overrides and missing_override_policy == "native")
    if needs_native and native_sizes is None:
        native_sizes = measure_native_sizes(required_types)

    if mode is PolicyMode.CROSS_COMPILE:
        active = config_path_table or config_table
        if active is None:
            raise ValueError("cross-compile resolution needs a config table")
        fallback: Optional[ConfigTable] = active
    elif mode is PolicyMode.CUSTOM:
        fallback = config_path_table or config_table
    elif mode is PolicyMode.CUSTOM_CROSS_COMPILE:
        fallback = config_path_table
    else:
        fallback = None

    matcher = _TableMatcher(fallback, facts) if fallback is not None else None

    reprs: Dict[str, Representation] = {}
    sources: Dict[str, str] = {}
    errors: List[ReprError] = []

    for type_name in required_types:
        try:
            if mode is PolicyMode.NATIVE:
                representation, source = native_representation(type_name, native_sizes), "native"
            elif mode is PolicyMode.CROSS_COMPILE:
                representation, source = matcher.resolve(type_name)
            else:
                representation, source = _resolve_custom(
                    type_name, facts, overrides.get(type_name), matcher, native_sizes, missing_override_policy
                )
        except ReprError as err:
            errors.append(err)
            continue
        reprs[type_name] = representation
        sources[type_name] = source
        log.debug("type_resolved", type_name=type_name, repr=representation.value, source=source)

    if errors:
        log.info("resolution_failed", mode=mode.value, errors=len(errors))
        return ResolutionResult.failure(errors)

    log.info("resolution_complete", mode=mode.value, types=len(reprs))
    return ResolutionResult(resolved=ResolvedMap(reprs), sources=sources)


def _resolve_custom(
    type_name: str,
    facts: Mapping[str, str],
    override: Optional[EnvOverride],
    matcher: Optional[_TableMatcher],
    native_sizes: Optional[Mapping[str, int]],
    missing_override_policy: MissingOverridePolicy,
) -> Tuple[Representation, str]:
    if override is not None:
        return _resolve_override(override, facts)

    variable = override_variable(type_name)
    reason = None
    if matcher is not None:
        try:
            return matcher.resolve(type_name)
        except ReprError as err:
            # Only "no entry matches" means the table does not cover the target.
            if err.kind is not ErrorKind.MISSING_PLATFORM_MATCH:
                raise
            reason = f"the {matcher.table.label} does not resolve it either ({err.message})"

    if missing_override_policy == "native":
        log.warning("native_fallback", type_name=type_name, variable=variable)
        return native_representation(type_name, native_sizes or {}), "native"
    raise ReprError.missing_env_override(type_name, variable, reason)


def _in_type_order(errors: Iterable[ReprError], required_types: Sequence[str]) -> List[ReprError]:
    position = {name: index for index, name in enumerate(required_types)}
    return sorted(errors, key=lambda err: position.get(err.type_name, -1))


def resolve_from_environment(
    required_types: Sequence[str] = VISA_TYPE_NAMES,
    facts: Optional[Mapping[str, str]] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
    project_root: Optional[Path] = None,
    settings: Optional[ResolverSettings] = None,
) -> ResolutionResult:
    """
    Run a full pass from the environment, table files and target facts.

    Reads settings, loads only the tables the mode can consult, reads
    overrides in custom modes, then calls resolve(). Loader and override
    errors are returned in the result alongside per-type failures.
    """
    environ = os.environ if environ is None else environ
    try:
        settings = settings or ResolverSettings.from_environ(environ)
    except ResolutionFailed as failure:
        return ResolutionResult.failure(failure.errors)

    mode = settings.mode
    facts = FactTable.host() if facts is None else facts
    log.debug("resolution_started", mode=mode.value, facts=dict(facts))

    if mode is PolicyMode.NATIVE:
        return resolve(required_types, facts, mode)

    table_errors: List[ReprError] = []
    config_path_table = None
    config_table = None
    try:
        config_path_table = load_explicit_table(settings.config_path)
    except ReprError as err:
        table_errors.append(err)

    if config_path_table is None and not table_errors and mode.consults_default_tables:
        try:
            config_table = select_active_table(None, load_project_table(project_root), load_bundled_table())
        except ReprError as err:
            table_errors.append(err)

    overrides: Dict[str, EnvOverride] = {}
    override_errors: List[ReprError] = []
    if mode.uses_overrides:
        overrides, override_errors = read_env_overrides(required_types, environ)

    if table_errors:
        return ResolutionResult.failure(table_errors + _in_type_order(override_errors, required_types))

    failed = {err.type_name for err in override_errors}
    remaining = [name for name in required_types if name not in failed]
    result = resolve(
        remaining,
        facts,
        mode,
        overrides,
        config_table,
        config_path_table=config_path_table,
        missing_override_policy=settings.missing_override_policy,
    )
    if not override_errors:
        return result
    return ResolutionResult.failure(_in_type_order([*override_errors, *result.errors], required_types))


@dataclass(frozen=True)
class WatchList:
    """Inputs whose change must trigger a new resolution pass."""

    env_vars: Tuple[str, ...]
    files: Tuple[Path, ...]


def watched_inputs(
    settings: ResolverSettings,
    project_root: Optional[Path] = None,
    type_names: Sequence[str] = VISA_TYPE_NAMES,
) -> WatchList:
    """
    Environment variables and files that influence resolution in the
    active mode, for build tools that cache the pass.
    """
    mode = settings.mode
    env_vars: List[str] = [setting_variable("cross_compile"), setting_variable("custom")]
    if mode.uses_overrides:
        env_vars.append(setting_variable("missing_override_policy"))
    files: List[Path] = []

    if mode is not PolicyMode.NATIVE:
        env_vars.append(CONFIG_PATH_VARIABLE)
        if settings.config_path and settings.config_path.strip():
            files.append(Path(settings.config_path.strip()))
        elif mode.consults_default_tables:
            files.append(project_table_path(project_root))

    if mode.uses_overrides:
        env_vars.extend(override_variable(name) for name in type_names)

    return WatchList(env_vars=tuple(env_vars), files=tuple(files))
