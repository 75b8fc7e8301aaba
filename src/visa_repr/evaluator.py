"""
Condition evaluation against a FactTable.

Evaluation is pure and total: every well-formed condition yields a boolean
for every fact table. Unknown keys never reach this layer because the parser
rejects them.
"""

from __future__ import annotations

from typing import List, Mapping, Set

from .expressions import AllOf, AlwaysTrue, AnyOf, Atom, Condition, Not


def evaluate(condition: Condition, facts: Mapping[str, str]) -> bool:
    """
    Evaluate a condition tree.

    Args:
        condition: Parsed condition
        facts: Target attributes; a key absent here never equals any value

    Returns:
        True if the condition holds for the target
    """
    if isinstance(condition, AlwaysTrue):
        return True

    if isinstance(condition, Atom):
        return facts.get(condition.key) == condition.value

    if isinstance(condition, AllOf):
        return all(evaluate(child, facts) for child in condition.children)

    if isinstance(condition, AnyOf):
        # any() is the "every platform" literal, not an empty disjunction.
        if not condition.children:
            return True
        return any(evaluate(child, facts) for child in condition.children)

    if isinstance(condition, Not):
        return not evaluate(condition.operand, facts)

    raise TypeError(f"Unsupported Condition type: {type(condition)}")


def referenced_keys(condition: Condition) -> Set[str]:
    """Fact keys a condition tests."""
    keys: Set[str] = set()
    stack: List[Condition] = [condition]
    while stack:
        node = stack.pop()
        if isinstance(node, Atom):
            keys.add(node.key)
        elif isinstance(node, (AllOf, AnyOf)):
            stack.extend(node.children)
        elif isinstance(node, Not):
            stack.append(node.operand)
    return keys
