"""Typed values and message headers passed between parser, encoder and codec.

``TypedValue`` is a closed variant keyed by ``ValueKind``. Scalars are range
checked at construction; arrays are copied into a read-only, C-contiguous,
little-endian ``numpy.ndarray`` so the value is immutable once built.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

import numpy as np

from spiders.schema.formats import (
    SIGNED_FORMATS,
    TAG_LENGTH,
    UNSIGNED_FORMATS,
    ValueFormat,
    format_for_dtype,
)

URI_SCHEMES = frozenset({"file", "http", "https", "ftp", "ftps"})


class ValueKind(Enum):
    NULL = "null"
    BOOL = "bool"
    SIGNED = "signed"
    UNSIGNED = "unsigned"
    FLOAT = "float"
    TEXT = "text"
    URI = "uri"
    ARRAY = "array"


def integer_bounds(signed: bool, width: int) -> tuple[int, int]:
    """Inclusive (min, max) for an integer of the given signedness and width."""
    if signed:
        return -(1 << (width - 1)), (1 << (width - 1)) - 1
    return 0, (1 << width) - 1


@dataclass(frozen=True, slots=True, eq=False)
class TypedValue:
    """A single inferred value. Build instances through the classmethods.

    ``format`` is the wire type code the value is carried with; it is ``None``
    for URI references, which only get a format once resolved.
    """

    kind: ValueKind
    value: Any = None
    format: ValueFormat | None = ValueFormat.NOTHING

    @classmethod
    def null(cls) -> TypedValue:
        return cls(ValueKind.NULL)

    @classmethod
    def boolean(cls, value: bool) -> TypedValue:
        return cls(ValueKind.BOOL, bool(value), ValueFormat.BIT)

    @classmethod
    def signed(cls, value: int, width: int = 64) -> TypedValue:
        if width not in SIGNED_FORMATS:
            raise ValueError(f"unsupported signed width {width}")
        return cls._integer(ValueKind.SIGNED, SIGNED_FORMATS[width], value, width)

    @classmethod
    def unsigned(cls, value: int, width: int = 64) -> TypedValue:
        if width not in UNSIGNED_FORMATS:
            raise ValueError(f"unsupported unsigned width {width}")
        return cls._integer(ValueKind.UNSIGNED, UNSIGNED_FORMATS[width], value, width)

    @classmethod
    def float64(cls, value: float) -> TypedValue:
        return cls(ValueKind.FLOAT, float(value), ValueFormat.FLOAT64)

    @classmethod
    def text(cls, value: str) -> TypedValue:
        return cls(ValueKind.TEXT, str(value), ValueFormat.STRING)

    @classmethod
    def uri_ref(cls, uri: str) -> TypedValue:
        return cls(ValueKind.URI, str(uri), None)

    @classmethod
    def array(cls, data: Any) -> TypedValue:
        arr = np.asarray(data)
        if arr.dtype.hasobject:
            raise TypeError(f"dtype {arr.dtype} cannot be carried as a tensor")
        fmt = format_for_dtype(arr.dtype)
        # Copy so later mutation of the caller's array cannot leak in.
        arr = np.array(arr, dtype=arr.dtype.newbyteorder("<"), order="C", copy=True)
        arr.setflags(write=False)
        return cls(ValueKind.ARRAY, arr, fmt)

    @classmethod
    def _integer(cls, kind: ValueKind, fmt: ValueFormat, value: int, width: int) -> TypedValue:
        lo, hi = integer_bounds(kind is ValueKind.SIGNED, width)
        value = int(value)
        if not lo <= value <= hi:
            raise OverflowError(f"{value} out of range for {fmt.name.lower()}")
        return cls(kind, value, fmt)

    @property
    def width(self) -> int | None:
        """Bit width of integer values, ``None`` for other kinds."""
        if self.kind is ValueKind.SIGNED:
            return next(w for w, f in SIGNED_FORMATS.items() if f == self.format)
        if self.kind is ValueKind.UNSIGNED:
            return next(w for w, f in UNSIGNED_FORMATS.items() if f == self.format)
        return None

    @property
    def shape(self) -> tuple[int, ...]:
        if self.kind is not ValueKind.ARRAY:
            raise TypeError("only array values have a shape")
        return tuple(self.value.shape)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TypedValue):
            return NotImplemented
        if self.kind is not other.kind or self.format != other.format:
            return False
        if self.kind is ValueKind.ARRAY:
            floating = self.value.dtype.kind == "f"
            return self.value.shape == other.value.shape and bool(
                np.array_equal(self.value, other.value, equal_nan=floating)
            )
        if self.kind is ValueKind.FLOAT and math.isnan(self.value):
            return math.isnan(other.value)
        return self.value == other.value

    def __hash__(self) -> int:
        if self.kind is ValueKind.ARRAY:
            return hash((self.kind, self.format, self.value.shape, self.value.tobytes()))
        return hash((self.kind, self.format, self.value))

    def __repr__(self) -> str:
        if self.kind is ValueKind.ARRAY:
            return f"TypedValue(array {self.format.name}, shape={self.shape})"
        if self.kind is ValueKind.NULL:
            return "TypedValue(null)"
        if self.kind is ValueKind.URI:
            return f"TypedValue(uri {self.value!r})"
        return f"TypedValue({self.format.name}, {self.value!r})"


@dataclass(frozen=True, slots=True)
class KeyValuePair:
    key: str
    value: TypedValue


@dataclass(frozen=True, slots=True)
class MessageHeader:
    """Common header carried by both Event and Tensor messages."""

    timestamp_ns: int
    correlation_id: int
    tag: str

    def __post_init__(self) -> None:
        if len(self.tag.encode("utf-8")) > TAG_LENGTH:
            raise ValueError(f"tag {self.tag!r} exceeds {TAG_LENGTH} bytes")
        if not 0 <= self.timestamp_ns < (1 << 64):
            raise ValueError(f"timestamp {self.timestamp_ns} outside uint64")
        if not 0 <= self.correlation_id < (1 << 64):
            raise ValueError(f"correlation id {self.correlation_id} outside uint64")


__all__ = [
    "TypedValue",
    "ValueKind",
    "KeyValuePair",
    "MessageHeader",
    "URI_SCHEMES",
    "integer_bounds",
]
