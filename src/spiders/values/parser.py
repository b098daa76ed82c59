"""Typed-value inference for ad-hoc ``key=value`` command-line tokens.

Inference is an ordered table of rules; the first rule whose predicate
accepts the raw string converts it. A value that has the shape of a number
but does not fit its target type is rejected with ``ParseError`` rather than
being passed through as text.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from urllib.parse import urlsplit

from spiders.core.errors import ParseError
from spiders.schema.types import URI_SCHEMES, KeyValuePair, TypedValue

logger = logging.getLogger(__name__)

_QUOTED = re.compile(r"'.*'|\".*\"")
_BOOL = re.compile(r"true|false")
_INTEGER = re.compile(r"([+-]?\d+)(ull|ul|uh|ub|ll|u|l|h|b)?", re.IGNORECASE | re.ASCII)
_HEX = re.compile(r"0[xX][0-9a-fA-F]+")
_FLOAT = re.compile(r"[+-]?(\d+(\.\d*)?([eE][+-]?\d+)?|\.\d+([eE][+-]?\d+)?)", re.ASCII)

# suffix -> (signed, width)
INTEGER_SUFFIXES: dict[str, tuple[bool, int]] = {
    "": (True, 64),
    "b": (True, 8),
    "h": (True, 16),
    "l": (True, 32),
    "ll": (True, 64),
    "u": (False, 64),
    "ub": (False, 8),
    "uh": (False, 16),
    "ul": (False, 32),
    "ull": (False, 64),
}


def is_valid_uri(value: str) -> bool:
    """True for well-formed URIs whose scheme the resource loader handles."""
    if not value or any(ch.isspace() for ch in value):
        return False
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    if parts.scheme not in URI_SCHEMES:
        return False
    if parts.scheme == "file":
        return bool(parts.path)
    return bool(parts.hostname)


def _unquote(raw: str) -> TypedValue:
    return TypedValue.text(raw[1:-1])


def _boolean(raw: str) -> TypedValue:
    return TypedValue.boolean(raw == "true")


def _integer(raw: str) -> TypedValue:
    digits, suffix = _INTEGER.fullmatch(raw).groups()
    signed, width = INTEGER_SUFFIXES[(suffix or "").lower()]
    try:
        if signed:
            return TypedValue.signed(int(digits), width)
        return TypedValue.unsigned(int(digits), width)
    except OverflowError as exc:
        raise ParseError(f"{raw!r}: {exc}", raw) from None


def _hexadecimal(raw: str) -> TypedValue:
    try:
        return TypedValue.unsigned(int(raw, 16), 64)
    except OverflowError as exc:
        raise ParseError(f"{raw!r}: {exc}", raw) from None


def _float(raw: str) -> TypedValue:
    return TypedValue.float64(float(raw))


def _matches(pattern: re.Pattern[str]) -> Callable[[str], bool]:
    return lambda raw: pattern.fullmatch(raw) is not None


@dataclass(frozen=True, slots=True)
class ValueRule:
    """One inference step: ``convert`` runs when ``accepts`` returns True."""

    name: str
    accepts: Callable[[str], bool]
    convert: Callable[[str], TypedValue]


DEFAULT_RULES: tuple[ValueRule, ...] = (
    ValueRule("quoted", _matches(_QUOTED), _unquote),
    ValueRule("boolean", _matches(_BOOL), _boolean),
    ValueRule("integer", _matches(_INTEGER), _integer),
    ValueRule("hexadecimal", _matches(_HEX), _hexadecimal),
    ValueRule("float", _matches(_FLOAT), _float),
    ValueRule("uri", is_valid_uri, TypedValue.uri_ref),
)


class ValueParser:
    """Turns raw tokens into typed key/value pairs."""

    def __init__(self, rules: Sequence[ValueRule] = DEFAULT_RULES) -> None:
        self._rules = tuple(rules)

    @property
    def rules(self) -> tuple[ValueRule, ...]:
        return self._rules

    def infer(self, raw: str) -> TypedValue:
        for rule in self._rules:
            if rule.accepts(raw):
                return rule.convert(raw)
        return TypedValue.text(raw)

    def parse_token(self, token: str) -> KeyValuePair:
        parts = token.split("=")
        if len(parts) == 1:
            return KeyValuePair(token, TypedValue.null())
        if len(parts) > 2:
            raise ParseError(f"ambiguous delimiter: multiple '=' in {token!r}", token)
        key, raw = parts
        pair = KeyValuePair(key, self.infer(raw))
        logger.debug("Parsed %r as %r", token, pair.value)
        return pair

    def parse(self, tokens: Iterable[str]) -> list[KeyValuePair]:
        return [self.parse_token(token) for token in tokens]


_DEFAULT_PARSER = ValueParser()


def infer_value(raw: str) -> TypedValue:
    return _DEFAULT_PARSER.infer(raw)


def parse_token(token: str) -> KeyValuePair:
    return _DEFAULT_PARSER.parse_token(token)


def parse_key_values(tokens: Iterable[str]) -> list[KeyValuePair]:
    """Parse ``key`` / ``key=value`` tokens, keeping their order."""
    return _DEFAULT_PARSER.parse(tokens)


__all__ = [
    "ValueParser",
    "ValueRule",
    "DEFAULT_RULES",
    "INTEGER_SUFFIXES",
    "is_valid_uri",
    "infer_value",
    "parse_token",
    "parse_key_values",
]
