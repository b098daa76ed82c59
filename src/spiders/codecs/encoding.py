"""Event and Tensor message writers.

Every writer sizes its buffer up front from the header, key and payload
lengths, allocates it once, and fills it with ``struct.pack_into``.
"""

from __future__ import annotations

import numpy as np

from spiders.core.errors import UnsupportedValueError
from spiders.schema.formats import (
    DIMENSION,
    EVENT_BLOCK_LENGTH,
    FIXED_HEADER_SIZE,
    MESSAGE_HEADER,
    SCALAR_STRUCTS,
    SCHEMA_ID,
    SCHEMA_VERSION,
    SPIDERS_HEADER,
    TENSOR_BLOCK_LENGTH,
    VAR_LENGTH,
    MajorOrder,
    TemplateId,
    ValueFormat,
)
from spiders.schema.types import MessageHeader, TypedValue, ValueKind

_MAX_DIMENSION = (1 << 31) - 1


class _Writer:
    __slots__ = ("buf", "offset")

    def __init__(self, buf: bytearray, offset: int = 0) -> None:
        self.buf = buf
        self.offset = offset

    def pack(self, layout, *values) -> None:
        layout.pack_into(self.buf, self.offset, *values)
        self.offset += layout.size

    def put(self, data) -> None:
        end = self.offset + len(data)
        self.buf[self.offset:end] = data
        self.offset = end


def _element_bytes(array: np.ndarray) -> bytes:
    return array.tobytes(order="C")


def _payload_size(value: TypedValue) -> int:
    match value.kind:
        case ValueKind.NULL:
            return 0
        case ValueKind.TEXT:
            return len(value.value.encode("utf-8"))
        case ValueKind.BOOL | ValueKind.SIGNED | ValueKind.UNSIGNED | ValueKind.FLOAT:
            return SCALAR_STRUCTS[value.format].size
        case ValueKind.ARRAY:
            return tensor_size(value.value)
        case ValueKind.URI:
            raise UnsupportedValueError("URI values must be resolved before encoding")
        case _:
            raise UnsupportedValueError(f"unknown value kind {value.kind!r}")


def tensor_size(array: np.ndarray) -> int:
    """Exact byte length of a Tensor message carrying ``array``."""
    return (
        FIXED_HEADER_SIZE
        + (TENSOR_BLOCK_LENGTH - SPIDERS_HEADER.size)
        + VAR_LENGTH.size
        + DIMENSION.size * array.ndim
        + VAR_LENGTH.size
        + array.nbytes
    )


def event_size(key: str, value: TypedValue) -> int:
    """Exact byte length of an Event message carrying ``key`` and ``value``."""
    return (
        FIXED_HEADER_SIZE
        + (EVENT_BLOCK_LENGTH - SPIDERS_HEADER.size)
        + VAR_LENGTH.size
        + len(key.encode("utf-8"))
        + VAR_LENGTH.size
        + _payload_size(value)
    )


def _write_header(
    w: _Writer, template: TemplateId, block_length: int, header: MessageHeader
) -> None:
    w.pack(MESSAGE_HEADER, block_length, template, SCHEMA_ID, SCHEMA_VERSION)
    w.pack(
        SPIDERS_HEADER,
        header.timestamp_ns,
        header.correlation_id,
        header.tag.encode("utf-8"),
    )


def _write_tensor(w: _Writer, header: MessageHeader, array: np.ndarray, fmt: ValueFormat) -> None:
    if any(dim > _MAX_DIMENSION for dim in array.shape):
        raise UnsupportedValueError(f"tensor shape {array.shape} exceeds int32 dimensions")
    _write_header(w, TemplateId.TENSOR, TENSOR_BLOCK_LENGTH, header)
    w.buf[w.offset] = fmt
    w.buf[w.offset + 1] = MajorOrder.ROW
    w.offset += 2
    w.pack(VAR_LENGTH, DIMENSION.size * array.ndim)
    for dim in array.shape:
        w.pack(DIMENSION, dim)
    w.pack(VAR_LENGTH, array.nbytes)
    w.put(_element_bytes(array))


def encode_tensor(header: MessageHeader, value: TypedValue) -> bytes:
    """Encode an array value as a Tensor message, elements in row-major order."""

    if value.kind is not ValueKind.ARRAY:
        raise UnsupportedValueError(f"tensor messages carry arrays, not {value.kind.value}")
    size = tensor_size(value.value)
    buf = bytearray(size)
    w = _Writer(buf)
    _write_tensor(w, header, value.value, value.format)
    if w.offset != size:
        raise RuntimeError(f"tensor writer filled {w.offset} of {size} bytes")
    return bytes(buf)


def encode_event(header: MessageHeader, key: str, value: TypedValue) -> bytes:
    """Encode one key/value pair as an Event message.

    Array values are written as a complete Tensor message embedded in the
    value field (format ``SBE``); the embedded tensor shares ``header``.
    """

    size = event_size(key, value)
    buf = bytearray(size)
    w = _Writer(buf)
    _write_header(w, TemplateId.EVENT, EVENT_BLOCK_LENGTH, header)

    key_bytes = key.encode("utf-8")
    payload_length = size - w.offset - 1 - 2 * VAR_LENGTH.size - len(key_bytes)
    fmt = ValueFormat.SBE if value.kind is ValueKind.ARRAY else value.format
    buf[w.offset] = fmt
    w.offset += 1
    w.pack(VAR_LENGTH, len(key_bytes))
    w.put(key_bytes)
    w.pack(VAR_LENGTH, payload_length)

    match value.kind:
        case ValueKind.NULL:
            pass
        case ValueKind.TEXT:
            w.put(value.value.encode("utf-8"))
        case ValueKind.BOOL | ValueKind.SIGNED | ValueKind.UNSIGNED | ValueKind.FLOAT:
            w.pack(SCALAR_STRUCTS[value.format], value.value)
        case ValueKind.ARRAY:
            _write_tensor(w, header, value.value, value.format)

    if w.offset != size:
        raise RuntimeError(f"event writer filled {w.offset} of {size} bytes")
    return bytes(buf)


__all__ = ["encode_event", "encode_tensor", "event_size", "tensor_size"]
