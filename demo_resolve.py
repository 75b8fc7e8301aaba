"""
Demo: Resolve the VISA types for several targets and show what each policy
mode does with the same environment.
"""

from visa_repr.env_overrides import parse_override
from visa_repr.errors import format_report
from visa_repr.model import VISA_TYPE_NAMES, FactTable, PolicyMode
from visa_repr.resolver import resolve
from visa_repr.serialization import table_to_yaml
from visa_repr.table_loader import load_bundled_table

TARGETS = [
    "x86_64-pc-windows-msvc",
    "i686-pc-windows-msvc",
    "x86_64-unknown-linux-gnu",
    "armv7-unknown-linux-gnueabihf",
    "aarch64-apple-darwin",
]


def print_map(title, result):
    print(f"  {title}")
    if not result.ok:
        for line in format_report(result.errors).splitlines():
            print(f"    {line}")
        return
    for type_name, rep in result.unwrap().items():
        print(f"    {type_name:<14} {rep.value:<5} ({result.sources[type_name]})")


if __name__ == "__main__":
    bundled = load_bundled_table()

    print("=" * 70)
    print("BUNDLED TABLE")
    print("=" * 70)
    print(table_to_yaml(bundled))

    print("=" * 70)
    print("CROSS-COMPILE")
    print("=" * 70)
    for triple in TARGETS:
        facts = FactTable.from_target_triple(triple)
        print_map(triple, resolve(VISA_TYPE_NAMES, facts, PolicyMode.CROSS_COMPILE, config_table=bundled))
        print()

    print("=" * 70)
    print("CUSTOM (override for ViInt32 only, bundled table as fallback)")
    print("=" * 70)
    overrides = {"ViInt32": parse_override("ViInt32", 'target_os = "windows":i32,target_os = "linux":i64')}
    for triple in ("x86_64-unknown-linux-gnu", "aarch64-apple-darwin"):
        facts = FactTable.from_target_triple(triple)
        print_map(triple, resolve(VISA_TYPE_NAMES, facts, PolicyMode.CUSTOM, overrides, bundled))
        print()

    print("=" * 70)
    print("CUSTOM + CROSS-COMPILE (no fallback table)")
    print("=" * 70)
    facts = FactTable.from_target_triple("x86_64-unknown-linux-gnu")
    print_map("x86_64-unknown-linux-gnu", resolve(VISA_TYPE_NAMES, facts, PolicyMode.CUSTOM_CROSS_COMPILE, overrides))
