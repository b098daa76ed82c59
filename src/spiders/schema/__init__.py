"""Data contracts shared by the parser, encoder and wire codec."""

from .formats import (
    FIXED_HEADER_SIZE,
    SCHEMA_ID,
    SCHEMA_VERSION,
    TAG_LENGTH,
    MajorOrder,
    TemplateId,
    ValueFormat,
)
from .types import URI_SCHEMES, KeyValuePair, MessageHeader, TypedValue, ValueKind

__all__ = [
    "FIXED_HEADER_SIZE",
    "SCHEMA_ID",
    "SCHEMA_VERSION",
    "TAG_LENGTH",
    "MajorOrder",
    "TemplateId",
    "ValueFormat",
    "URI_SCHEMES",
    "KeyValuePair",
    "MessageHeader",
    "TypedValue",
    "ValueKind",
]
