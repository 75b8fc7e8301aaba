"""
Native size measurement for the host platform.

Native mode derives each representation from the size of the matching C
type on the machine running the resolver. This is only correct when the
host is also the target; cross-compiling builds use config tables or
overrides instead.
"""

import ctypes
from typing import Dict, Iterable, Mapping, Optional

from .errors import ReprError
from .model import VISA_TYPES, Representation


def measure_native_sizes(type_names: Iterable[str]) -> Dict[str, int]:
    """
    Size in bytes of each type's native C type on this host.

    Types without a known C type are left out.
    """
    sizes: Dict[str, int] = {}
    for name in type_names:
        spec = VISA_TYPES.get(name)
        if spec is None:
            continue
        sizes[name] = ctypes.sizeof(getattr(ctypes, spec.c_type))
    return sizes


def native_representation(type_name: str, sizes: Mapping[str, int]) -> Representation:
    """
    Representation matching the measured native size of `type_name`.

    Raises:
        ReprError: NativeSizeUnsupported if the type has no C type or its
                   size has no representation
    """
    spec = VISA_TYPES.get(type_name)
    size: Optional[int] = sizes.get(type_name)
    if spec is None or size is None:
        c_type = spec.c_type if spec is not None else "?"
        raise ReprError.native_size_unsupported(type_name, c_type, None)
    try:
        return Representation.from_size(size, spec.signed)
    except ValueError:
        raise ReprError.native_size_unsupported(type_name, spec.c_type, size) from None
