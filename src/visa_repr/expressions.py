"""
Condition Expression System

Platform conditions ("which representation applies on which target") are
represented as immutable predicate trees, never as strings.

Grammar of the textual form (parsed by condition_parser.py):

    condition := atom | "all(" list ")" | "any(" list ")" | "not(" condition ")"
    atom      := key "=" quoted-string
    list      := condition ("," condition)*

ARCHITECTURAL RULE:
    This module is structure only.
    Evaluation against a FactTable belongs in evaluator.py.
    Rendering back to text belongs in serialization.py.
"""

from abc import ABC
from dataclasses import dataclass
from typing import Tuple


class Condition(ABC):
    """
    Base class for all condition nodes.

    Exists to give the node hierarchy a common type.
    """
    pass


@dataclass(frozen=True)
class Atom(Condition):
    """
    Equality test against one target attribute.

    Example:
        target_os = "windows"

    Becomes:
        Atom(key="target_os", value="windows")
    """

    key: str
    value: str


@dataclass(frozen=True)
class AllOf(Condition):
    """
    Conjunction. all() with no children is true.
    """

    children: Tuple[Condition, ...] = ()


@dataclass(frozen=True)
class AnyOf(Condition):
    """
    Disjunction over one or more children.

    IMPORTANT:
        The zero-argument textual form any() does NOT become AnyOf(()).
        It is the literal AlwaysTrue: "matches every platform".
    """

    children: Tuple[Condition, ...] = ()


@dataclass(frozen=True)
class Not(Condition):
    """
    Negation of exactly one condition.

    Example:
        not(target_os = "windows")
    """

    operand: Condition


@dataclass(frozen=True)
class AlwaysTrue(Condition):
    """
    Literal that matches every platform.

    Produced by the zero-argument any() form. Kept distinct from AllOf(())
    so the two empty forms stay distinguishable after parsing.
    """
    pass
