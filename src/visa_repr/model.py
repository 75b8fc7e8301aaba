"""
Core Resolution Model Objects

Defines the data structures shared by every stage of representation
resolution:
    - Representations (concrete machine integer descriptors)
    - Type specifications (the foreign types needing a representation)
    - Fact tables (attributes of the target platform)
    - Platform entries and config tables (conditional representation tables)
    - Environment overrides (per-type conditional representations)
    - Resolved maps (the sole output of a resolution pass)
    - Policy modes

ARCHITECTURAL RULE:
    These objects:
        - Are created fresh at the start of a pass
        - Are immutable once built
        - Represent structure, not behavior
    Condition evaluation lives in evaluator.py, precedence in resolver.py.
"""

from __future__ import annotations

import platform
import struct
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterator, Optional, Tuple

from .expressions import Condition


class Representation(Enum):
    """
    A concrete machine integer: signedness x bit width.

    The member value is the token used in table files, environment
    overrides and generated output ("i32", "u64", ...).
    Representations compare by equality only.
    """

    I8 = "i8"
    U8 = "u8"
    I16 = "i16"
    U16 = "u16"
    I32 = "i32"
    U32 = "u32"
    I64 = "i64"
    U64 = "u64"
    I128 = "i128"
    U128 = "u128"

    @property
    def bits(self) -> int:
        return int(self.value[1:])

    @property
    def signed(self) -> bool:
        return self.value.startswith("i")

    @classmethod
    def parse(cls, token: str) -> "Representation":
        """
        Parse a representation token.

        Raises:
            ValueError: If the token does not name a representation
        """
        stripped = token.strip()
        try:
            return cls(stripped)
        except ValueError:
            expected = ", ".join(member.value for member in cls)
            raise ValueError(f"unknown representation {stripped!r} (expected one of: {expected})") from None

    @classmethod
    def from_size(cls, size: int, signed: bool) -> "Representation":
        """
        Representation for a native type of `size` bytes.

        Raises:
            ValueError: If no representation has that width
        """
        prefix = "i" if signed else "u"
        try:
            return cls(f"{prefix}{size * 8}")
        except ValueError:
            raise ValueError(f"no {'signed' if signed else 'unsigned'} representation is {size} bytes wide") from None

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TypeSpec:
    """
    A foreign type requiring a representation.

    Properties:
        name: Symbolic type name as used by the native headers (e.g. "ViStatus")
        signed: Whether the native type is signed
        c_type: Name of the matching ctypes type, measured in native mode
    """

    name: str
    signed: bool
    c_type: str


VISA_TYPES: Dict[str, TypeSpec] = {
    spec.name: spec
    for spec in (
        TypeSpec("ViUInt16", signed=False, c_type="c_ushort"),
        TypeSpec("ViInt16", signed=True, c_type="c_short"),
        TypeSpec("ViUInt32", signed=False, c_type="c_ulong"),
        TypeSpec("ViEvent", signed=False, c_type="c_ulong"),
        TypeSpec("ViEventType", signed=False, c_type="c_ulong"),
        TypeSpec("ViEventFilter", signed=False, c_type="c_ulong"),
        TypeSpec("ViAttr", signed=False, c_type="c_ulong"),
        TypeSpec("ViStatus", signed=True, c_type="c_long"),
        TypeSpec("ViInt32", signed=True, c_type="c_long"),
    )
}

VISA_TYPE_NAMES: Tuple[str, ...] = tuple(VISA_TYPES)


# =============================================================================
# FACT TABLE
# =============================================================================

KNOWN_FACT_KEYS = frozenset(
    {
        "target_os",
        "target_family",
        "target_arch",
        "target_pointer_width",
        "target_env",
        "target_endian",
        "target_vendor",
    }
)

_OS_ALIASES = {
    "darwin": "macos",
    "win32": "windows",
    "cygwin": "windows",
}

_TRIPLE_OS = {
    "linux": "linux",
    "windows": "windows",
    "darwin": "macos",
    "macos": "macos",
    "ios": "ios",
    "tvos": "tvos",
    "watchos": "watchos",
    "visionos": "visionos",
    "freebsd": "freebsd",
    "netbsd": "netbsd",
    "openbsd": "openbsd",
    "dragonfly": "dragonfly",
    "solaris": "solaris",
    "illumos": "illumos",
    "wasi": "wasi",
    "emscripten": "emscripten",
    "none": "none",
}

_ARCH_ALIASES = {
    "amd64": "x86_64",
    "x64": "x86_64",
    "arm64": "aarch64",
    "arm64e": "aarch64",
    "arm64ec": "aarch64",
    "arm64_32": "aarch64",
    "aarch64_be": "aarch64",
    "i386": "x86",
    "i486": "x86",
    "i586": "x86",
    "i686": "x86",
    "powerpc64le": "powerpc64",
    "ppc64le": "powerpc64",
    "ppc64": "powerpc64",
    "ppc": "powerpc",
    "mips64el": "mips64",
    "mipsel": "mips",
    "mipsisa32r6": "mips",
    "mipsisa32r6el": "mips",
    "mipsisa64r6": "mips64",
    "mipsisa64r6el": "mips64",
    "sparcv9": "sparc64",
}

_POINTER_WIDTH = {
    "x86_64": "64",
    "aarch64": "64",
    "x86": "32",
    "arm": "32",
    "riscv64": "64",
    "riscv32": "32",
    "powerpc64": "64",
    "powerpc": "32",
    "s390x": "64",
    "mips64": "64",
    "mips": "32",
    "sparc64": "64",
    "sparc": "32",
    "m68k": "32",
    "loongarch64": "64",
    "wasm32": "32",
    "wasm64": "64",
    "avr": "16",
    "msp430": "16",
}

# Raw architecture tokens, before aliasing: ppc64le and powerpc64 share an
# arch name but not a byte order.
_BIG_ENDIAN = {
    "s390x",
    "powerpc",
    "ppc",
    "powerpc64",
    "ppc64",
    "mips",
    "mips64",
    "mipsisa32r6",
    "mipsisa64r6",
    "sparc",
    "sparc64",
    "sparcv9",
    "m68k",
}


def _is_big_endian(raw_arch: str) -> bool:
    arch = raw_arch.lower()
    return arch in _BIG_ENDIAN or arch.endswith("_be") or arch.startswith(("armeb", "thumbeb"))


def _is_ilp32(raw_arch: str, raw_env: str) -> bool:
    """32-bit pointers on a 64-bit architecture (x32, arm64_32, *_ilp32)."""
    return raw_arch.endswith(("_ilp32", "_32")) or raw_env.endswith(("x32", "_ilp32"))


def _normalize_arch(raw: str) -> str:
    arch = raw.lower()
    if arch in _ARCH_ALIASES:
        return _ARCH_ALIASES[arch]
    if arch.startswith(("arm", "thumb")):
        return "arm"
    if arch.startswith("riscv64"):
        return "riscv64"
    if arch.startswith("riscv32"):
        return "riscv32"
    return arch


class FactTable(Mapping):
    """
    Attributes of the build target, consulted by conditions.

    Keys are restricted to KNOWN_FACT_KEYS. Values are strings: the pointer
    width of a 64-bit target is "64", not 64.

    A known key that is absent from the table never equals any value, so
    evaluation stays total.
    """

    def __init__(self, facts: Optional[Mapping[str, object]] = None, **kwargs: object):
        merged = dict(facts or {})
        merged.update(kwargs)
        unknown = sorted(set(merged) - KNOWN_FACT_KEYS)
        if unknown:
            raise ValueError(
                f"unknown fact key(s): {', '.join(unknown)}; known keys: {', '.join(sorted(KNOWN_FACT_KEYS))}"
            )
        self._facts = MappingProxyType({key: str(merged[key]) for key in sorted(merged)})

    def __getitem__(self, key: str) -> str:
        return self._facts[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._facts)

    def __len__(self) -> int:
        return len(self._facts)

    def __repr__(self) -> str:
        return f"FactTable({dict(self._facts)!r})"

    @classmethod
    def host(cls) -> "FactTable":
        """Facts describing the interpreter's own platform."""
        system = platform.system().lower() or sys.platform
        os_name = _OS_ALIASES.get(system, system)
        arch = _normalize_arch(platform.machine() or "unknown")
        return cls(
            target_os=os_name,
            target_family="windows" if os_name == "windows" else "unix",
            target_arch=arch,
            target_pointer_width=str(struct.calcsize("P") * 8),
            target_endian=sys.byteorder,
        )

    @classmethod
    def from_target_triple(cls, triple: str) -> "FactTable":
        """
        Facts for a target triple such as "x86_64-pc-windows-msvc",
        "aarch64-unknown-linux-gnu" or "armv7-linux-androideabi".

        Raises:
            ValueError: If the triple has no recognizable operating system
        """
        parts = triple.strip().lower().split("-")
        if len(parts) < 2 or not parts[0]:
            raise ValueError(f"invalid target triple: {triple!r}")

        raw_arch = parts[0]
        arch = _normalize_arch(raw_arch)
        rest = parts[1:]

        if any("android" in part for part in rest):
            os_name, vendor, raw_env = "android", "unknown", ""
        else:
            os_index = next((i for i, part in enumerate(rest) if part in _TRIPLE_OS), None)
            if os_index is not None:
                os_name = _TRIPLE_OS[rest[os_index]]
            elif rest[-1] == "unknown":
                # wasm32-unknown-unknown and other bare-metal style triples
                os_index, os_name = len(rest) - 1, "unknown"
            else:
                raise ValueError(f"cannot determine target_os from triple {triple!r}")
            vendor = rest[0] if os_index >= 1 else "unknown"
            raw_env = "".join(rest[os_index + 1 :])

        env = raw_env
        # gnueabihf, gnux32, musleabi and friends share the base environment.
        for base in ("gnu", "musl"):
            if env.startswith(base):
                env = base
                break

        if os_name == "windows":
            family = "windows"
        elif os_name in ("none", "unknown", "wasi", "emscripten") or arch.startswith("wasm"):
            family = "wasm" if arch.startswith("wasm") else ""
        else:
            family = "unix"

        facts: Dict[str, str] = {
            "target_os": os_name,
            "target_arch": arch,
            "target_vendor": vendor,
            "target_env": env,
            "target_endian": "big" if _is_big_endian(raw_arch) else "little",
        }
        if family:
            facts["target_family"] = family
        width = "32" if _is_ilp32(raw_arch, raw_env) else _POINTER_WIDTH.get(arch)
        if width is not None:
            facts["target_pointer_width"] = width
        return cls(facts)


# =============================================================================
# TABLES AND OVERRIDES
# =============================================================================


class TableSource(Enum):
    """Where a config table was loaded from."""

    BUNDLED = "bundled"
    PROJECT_LOCAL = "project-local"
    EXPLICIT_PATH = "explicit-path"


@dataclass(frozen=True)
class PlatformEntry:
    """
    A condition paired with a per-type representation mapping.

    A selected entry must supply a representation for every required type;
    a missing type is an error, never an implicit fallback.

    Properties:
        condition: Parsed condition tree
        reprs: Type name -> Representation
        condition_text: Condition as written in the source file
    """

    condition: Condition
    reprs: Mapping[str, Representation] = field(default_factory=dict, hash=False)
    condition_text: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "reprs", MappingProxyType(dict(self.reprs)))


@dataclass(frozen=True)
class ConfigTable:
    """
    An ordered sequence of platform entries from exactly one source.
    """

    entries: Tuple[PlatformEntry, ...]
    source: TableSource
    path: Optional[Path] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", tuple(self.entries))

    @property
    def label(self) -> str:
        if self.source is TableSource.BUNDLED:
            return "bundled default table"
        return f"{self.source.value} table {self.path}"


@dataclass(frozen=True)
class OverrideRule:
    """
    One segment of an environment override.

    condition is None for an unconditional (catch-all) segment.
    """

    condition: Optional[Condition]
    representation: Representation
    text: str = ""


@dataclass(frozen=True)
class EnvOverride:
    """
    Per-type representation supplied through an environment variable.

    Rules are kept in listed order; the first matching rule wins.
    """

    type_name: str
    variable: str
    raw_value: str
    rules: Tuple[OverrideRule, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "rules", tuple(self.rules))


class ResolvedMap(Mapping):
    """
    Type name -> Representation, the output of a successful pass.

    Read-only. Iteration follows the order the types were requested in.
    """

    def __init__(self, reprs: Mapping[str, Representation]):
        self._reprs = MappingProxyType(dict(reprs))

    def __getitem__(self, type_name: str) -> Representation:
        return self._reprs[type_name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._reprs)

    def __len__(self) -> int:
        return len(self._reprs)

    def __repr__(self) -> str:
        return f"ResolvedMap({self.as_tokens()!r})"

    def as_tokens(self) -> Dict[str, str]:
        return {name: rep.value for name, rep in self._reprs.items()}


# =============================================================================
# POLICY
# =============================================================================


class PolicyMode(Enum):
    """
    How a pass chooses representations.

    NATIVE: measure native sizes on the host (host == target only)
    CROSS_COMPILE: evaluate the active config table
    CUSTOM: environment overrides first, config tables as fallback
    CUSTOM_CROSS_COMPILE: environment overrides, explicit-path table only
    """

    NATIVE = "native"
    CROSS_COMPILE = "cross-compile"
    CUSTOM = "custom"
    CUSTOM_CROSS_COMPILE = "custom+cross-compile"

    @classmethod
    def from_flags(cls, cross_compile: bool, custom: bool) -> "PolicyMode":
        if custom and cross_compile:
            return cls.CUSTOM_CROSS_COMPILE
        if custom:
            return cls.CUSTOM
        if cross_compile:
            return cls.CROSS_COMPILE
        return cls.NATIVE

    @property
    def uses_overrides(self) -> bool:
        return self in (PolicyMode.CUSTOM, PolicyMode.CUSTOM_CROSS_COMPILE)

    @property
    def consults_default_tables(self) -> bool:
        """Whether the project-local or bundled table may be consulted."""
        return self in (PolicyMode.CROSS_COMPILE, PolicyMode.CUSTOM)
