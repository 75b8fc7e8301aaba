"""
VISA Representation Resolver

Chooses, before the wrapper is built, the integer representation of each
VISA type for the target platform. Sources, in the order a policy mode may
consult them:
    - per-type VISA_REPR_<TYPE> environment overrides
    - the table file at VISA_REPR_CONFIG_PATH
    - visa_repr_config.yaml at the project root
    - the bundled default table
    - native sizes measured on the host

ARCHITECTURAL GUARANTEE:
------------------------
A pass publishes a complete map or a complete list of errors. Nothing is
silently defaulted.
"""

__version__ = "0.1.0"

from .errors import ErrorKind, ReprError, ResolutionFailed
from .model import VISA_TYPE_NAMES, FactTable, PolicyMode, Representation, ResolvedMap
from .resolver import ResolutionResult, resolve, resolve_from_environment

__all__ = [
    "ErrorKind",
    "FactTable",
    "PolicyMode",
    "ReprError",
    "Representation",
    "ResolutionFailed",
    "ResolutionResult",
    "ResolvedMap",
    "VISA_TYPE_NAMES",
    "resolve",
    "resolve_from_environment",
]
