"""
Detection utility: measure the native VISA type sizes on this machine and
emit them as ready-made configuration.

Typical use when cross-compiling:
    1. Run `visa-repr detect --format shell > set_repr_vars.sh` on the target
    2. Source the file on the build host
    3. Build with VISA_REPR_CUSTOM=1

Or write a table file with `--format yaml` and point VISA_REPR_CONFIG_PATH
at it.
"""

from typing import Mapping, Optional, Sequence

from .backends.exports import ExportFormat, render
from .expressions import AllOf, AlwaysTrue, Atom, Condition
from .model import VISA_TYPE_NAMES, FactTable, PolicyMode, ResolvedMap
from .resolver import resolve
from .serialization import condition_to_text

_DISCRIMINATORS = ("target_os", "target_pointer_width")


def detect_native_map(
    type_names: Sequence[str] = VISA_TYPE_NAMES,
    native_sizes: Optional[Mapping[str, int]] = None,
) -> ResolvedMap:
    """
    Representations matching this machine's native type sizes.

    Raises:
        ResolutionFailed: If a native size has no representation
    """
    return resolve(type_names, FactTable.host(), PolicyMode.NATIVE, native_sizes=native_sizes).unwrap()


def platform_condition(facts: Mapping[str, str]) -> Condition:
    """
    Condition selecting the platform described by `facts`.

    Uses the operating system and pointer width, the attributes the VISA
    type sizes depend on. Falls back to any() when neither is known.
    """
    atoms = tuple(Atom(key, facts[key]) for key in _DISCRIMINATORS if key in facts)
    if not atoms:
        return AlwaysTrue()
    return AllOf(atoms)


def detection_report(
    fmt: ExportFormat,
    type_names: Sequence[str] = VISA_TYPE_NAMES,
    *,
    unconditional: bool = False,
    facts: Optional[Mapping[str, str]] = None,
    native_sizes: Optional[Mapping[str, int]] = None,
) -> str:
    """
    Detected configuration rendered in `fmt`.

    Args:
        fmt: Output format
        type_names: Types to detect
        unconditional: For YAML, write an entry matching every target
        facts: Facts the YAML entry's condition describes (default: host)
        native_sizes: Sizes to use instead of measuring
    """
    resolved = detect_native_map(type_names, native_sizes)
    condition = AlwaysTrue() if unconditional else platform_condition(facts or FactTable.host())
    return render(resolved, fmt, condition=condition_to_text(condition))
