"""Typed-value inference for command-line key/value tokens."""

from .parser import (
    DEFAULT_RULES,
    ValueParser,
    ValueRule,
    infer_value,
    is_valid_uri,
    parse_key_values,
    parse_token,
)

__all__ = [
    "DEFAULT_RULES",
    "ValueParser",
    "ValueRule",
    "infer_value",
    "is_valid_uri",
    "parse_key_values",
    "parse_token",
]
