"""
Condition Parser (Text -> Condition tree).

Converts the textual condition language to expression trees:

    target_os = "windows"
    all(target_os = "linux", target_pointer_width = "64")
    any(target_os = "macos", target_os = "ios")
    not(target_family = "windows")
    any()

Syntax Notes:
    - Whitespace between tokens is insignificant
    - Values are double-quoted; \\" and \\\\ escapes are honoured
    - A trailing comma inside all(...) / any(...) is accepted
    - Bare `windows` / `unix` are shorthand for target_family = "..."
    - Keys are validated while parsing; an unknown key is an error
"""

import re
from dataclasses import dataclass
from typing import AbstractSet, List, Optional, Tuple

from .errors import ReprError
from .expressions import AllOf, AlwaysTrue, AnyOf, Atom, Condition, Not
from .model import KNOWN_FACT_KEYS


_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
    | (?P<ident>[A-Za-z_][A-Za-z0-9_]*)
    | (?P<string>"(?:[^"\\]|\\.)*")
    | (?P<punct>[(),=])
    """,
    re.VERBOSE,
)

_PREDICATES = ("all", "any", "not")
_FAMILY_SHORTHANDS = ("windows", "unix")


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    pos: int


def _tokenize(text: str) -> List[Token]:
    """Tokenize condition text, rejecting any character outside the grammar."""
    tokens: List[Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            if text[pos] == '"':
                raise ReprError.malformed_condition(text, "unterminated string literal", pos)
            raise ReprError.malformed_condition(text, f"unexpected character {text[pos]!r}", pos)
        kind = match.lastgroup
        if kind != "ws":
            tokens.append(Token(kind, match.group(), pos))
        pos = match.end()
    return tokens


def _unquote(literal: str) -> str:
    return re.sub(r"\\(.)", r"\1", literal[1:-1])


class _Parser:
    """Recursive descent over a token list."""

    def __init__(self, text: str, tokens: List[Token], known_keys: AbstractSet[str]):
        self.text = text
        self.tokens = tokens
        self.known_keys = known_keys
        self.pos = 0

    def _error(self, reason: str) -> ReprError:
        offset = self.tokens[self.pos].pos if self.pos < len(self.tokens) else len(self.text)
        return ReprError.malformed_condition(self.text, reason, offset)

    def _peek(self, offset: int = 0) -> Optional[Token]:
        index = self.pos + offset
        return self.tokens[index] if index < len(self.tokens) else None

    def _expect(self, text: str) -> Token:
        token = self._peek()
        if token is None:
            raise self._error(f"expected {text!r}, found end of condition")
        if token.text != text:
            raise self._error(f"expected {text!r}, found {token.text!r}")
        self.pos += 1
        return token

    def parse(self) -> Condition:
        condition = self._parse_condition()
        if self.pos < len(self.tokens):
            raise self._error(f"unexpected {self.tokens[self.pos].text!r} after end of condition")
        return condition

    def _parse_condition(self) -> Condition:
        token = self._peek()
        if token is None:
            raise self._error("expected a condition, found end of condition")
        if token.kind != "ident":
            raise self._error(f"expected a key or predicate, found {token.text!r}")

        following = self._peek(1)
        if following is not None and following.text == "(":
            return self._parse_predicate(token)
        if following is not None and following.text == "=":
            return self._parse_atom(token)
        if token.text in _FAMILY_SHORTHANDS:
            self.pos += 1
            return Atom("target_family", token.text)
        self.pos += 1
        raise self._error(f"expected '=' after {token.text!r}")

    def _parse_atom(self, key_token: Token) -> Atom:
        key = key_token.text
        if key not in self.known_keys:
            raise ReprError.unknown_condition_key(key, self.text, self.known_keys)
        self.pos += 1
        self._expect("=")
        value = self._peek()
        if value is None or value.kind != "string":
            raise self._error(f"expected a quoted string after '{key} ='")
        self.pos += 1
        return Atom(key, _unquote(value.text))

    def _parse_predicate(self, name_token: Token) -> Condition:
        name = name_token.text
        if name not in _PREDICATES:
            raise self._error(f"unknown predicate {name!r} (expected all, any or not)")
        self.pos += 1
        self._expect("(")
        children = self._parse_list()
        self._expect(")")

        if name == "not":
            if len(children) != 1:
                raise self._error(f"not() takes exactly one condition, got {len(children)}")
            return Not(children[0])
        if name == "any":
            if not children:
                return AlwaysTrue()
            return AnyOf(tuple(children))
        return AllOf(tuple(children))

    def _parse_list(self) -> List[Condition]:
        children: List[Condition] = []
        token = self._peek()
        if token is not None and token.text == ")":
            return children
        while True:
            children.append(self._parse_condition())
            token = self._peek()
            if token is None:
                raise self._error("missing closing parenthesis")
            if token.text == ")":
                return children
            if token.text != ",":
                raise self._error(f"expected ',' or ')', found {token.text!r}")
            self.pos += 1
            token = self._peek()
            if token is not None and token.text == ")":
                return children


def parse_condition(text: str, known_keys: AbstractSet[str] = KNOWN_FACT_KEYS) -> Condition:
    """
    Parse condition text into a Condition tree.

    Args:
        text: Condition source text
        known_keys: Keys an atom may test

    Returns:
        Condition tree

    Raises:
        ReprError: MalformedConditionExpression on a syntax error,
                   UnknownConditionKey on a key outside known_keys
    """
    if text is None or not text.strip():
        raise ReprError.malformed_condition(text or "", "condition is empty", 0)
    tokens = _tokenize(text)
    return _Parser(text, tokens, known_keys).parse()


def split_outside_quotes(text: str, separator: str, maxsplit: int = -1) -> Tuple[str, ...]:
    """
    Split on `separator` where it occurs outside string literals and
    parentheses.

    Raises:
        ValueError: On an unterminated string or unbalanced parentheses
    """
    parts: List[str] = []
    depth = 0
    in_string = False
    escaped = False
    start = 0
    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                raise ValueError(f"unbalanced ')' at offset {index}")
        elif char == separator and depth == 0 and (maxsplit < 0 or len(parts) < maxsplit):
            parts.append(text[start:index])
            start = index + 1
    if in_string:
        raise ValueError("unterminated string literal")
    if depth != 0:
        raise ValueError("unbalanced '('")
    parts.append(text[start:])
    return tuple(parts)
