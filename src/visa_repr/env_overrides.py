"""
Per-type environment overrides (VISA_REPR_<TYPE> -> EnvOverride).

Value Format:
    i32
    target_os = "windows":i32,target_os = "linux":i64
    all(target_os = "linux", target_pointer_width = "32"):i32,i64

Syntax Notes:
    - Segments are separated by commas outside quotes and parentheses
    - Each segment splits on its first colon outside quotes
    - A segment without a colon is unconditional and always matches
    - Segments are tried in listed order; the first match wins
    - A blank value counts as unset
"""

from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .condition_parser import parse_condition, split_outside_quotes
from .errors import ReprError
from .model import EnvOverride, OverrideRule, Representation
from .settings import ENV_PREFIX


def override_variable(type_name: str) -> str:
    """Name of the environment variable overriding `type_name`."""
    return f"{ENV_PREFIX}{type_name.upper()}"


def _parse_rule(type_name: str, variable: str, segment: str) -> OverrideRule:
    stripped = segment.strip()
    if not stripped:
        raise ReprError.malformed_env_override(type_name, variable, segment, "empty segment")

    try:
        parts = split_outside_quotes(stripped, ":", maxsplit=1)
    except ValueError as e:
        raise ReprError.malformed_env_override(type_name, variable, segment, str(e)) from None

    if len(parts) == 1:
        condition_text, token = None, parts[0]
    else:
        condition_text, token = parts
        if not condition_text.strip():
            raise ReprError.malformed_env_override(type_name, variable, segment, "empty condition before ':'")

    try:
        representation = Representation.parse(token)
    except ValueError as e:
        raise ReprError.malformed_env_override(type_name, variable, segment, str(e)) from None

    condition = None
    if condition_text is not None:
        try:
            condition = parse_condition(condition_text)
        except ReprError as err:
            raise err.with_context(type_name=type_name, variable=variable) from None

    return OverrideRule(condition=condition, representation=representation, text=stripped)


def parse_override(type_name: str, raw_value: str, variable: Optional[str] = None) -> EnvOverride:
    """
    Parse one override value.

    Raises:
        ReprError: MalformedEnvOverrideSyntax naming the offending segment,
                   or a condition error with the variable attached
    """
    variable = variable or override_variable(type_name)
    try:
        segments = split_outside_quotes(raw_value, ",")
    except ValueError as e:
        raise ReprError.malformed_env_override(type_name, variable, raw_value, str(e)) from None

    rules = tuple(_parse_rule(type_name, variable, segment) for segment in segments)
    return EnvOverride(type_name=type_name, variable=variable, raw_value=raw_value, rules=rules)


def read_env_overrides(
    type_names: Iterable[str], environ: Mapping[str, str]
) -> Tuple[Dict[str, EnvOverride], List[ReprError]]:
    """
    Read the override of every type that has one.

    Every type is attempted; a malformed value for one type does not hide
    problems with the others.

    Returns:
        (overrides by type name, errors)
    """
    overrides: Dict[str, EnvOverride] = {}
    errors: List[ReprError] = []
    for type_name in type_names:
        variable = override_variable(type_name)
        raw_value = environ.get(variable)
        if raw_value is None or not raw_value.strip():
            continue
        try:
            overrides[type_name] = parse_override(type_name, raw_value, variable)
        except ReprError as err:
            errors.append(err)
    return overrides, errors
