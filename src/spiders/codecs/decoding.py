"""Event and Tensor message readers.

The sender never consumes messages; these readers exist so the wire layout
can be verified and summarised (``--dry-run``).
"""

from __future__ import annotations

import struct
from collections.abc import Iterator
from dataclasses import dataclass

import numpy as np

from spiders.core.errors import DecodeError
from spiders.schema.formats import (
    DIMENSION,
    MESSAGE_HEADER,
    SCALAR_STRUCTS,
    SCHEMA_ID,
    SPIDERS_HEADER,
    TENSOR_DTYPES,
    VAR_LENGTH,
    MajorOrder,
    TemplateId,
    ValueFormat,
)
from spiders.schema.types import MessageHeader, TypedValue

_SIGNED = {ValueFormat.INT8: 8, ValueFormat.INT16: 16, ValueFormat.INT32: 32, ValueFormat.INT64: 64}
_UNSIGNED = {
    ValueFormat.UINT8: 8,
    ValueFormat.UINT16: 16,
    ValueFormat.UINT32: 32,
    ValueFormat.UINT64: 64,
}


@dataclass(frozen=True, slots=True)
class EventMessage:
    header: MessageHeader
    key: str
    value: TypedValue
    format: ValueFormat


@dataclass(frozen=True, slots=True)
class TensorMessage:
    header: MessageHeader
    value: TypedValue
    major_order: MajorOrder


class _Reader:
    __slots__ = ("buf", "offset")

    def __init__(self, buf: memoryview, offset: int = 0) -> None:
        self.buf = buf
        self.offset = offset

    def unpack(self, layout) -> tuple:
        if self.offset + layout.size > len(self.buf):
            raise DecodeError("buffer truncated")
        values = layout.unpack_from(self.buf, self.offset)
        self.offset += layout.size
        return values

    def take(self, length: int) -> memoryview:
        end = self.offset + length
        if end > len(self.buf):
            raise DecodeError("buffer truncated")
        data = self.buf[self.offset:end]
        self.offset = end
        return data

    def var_data(self) -> memoryview:
        (length,) = self.unpack(VAR_LENGTH)
        return self.take(length)


def _read_header(r: _Reader) -> tuple[TemplateId, int, MessageHeader]:
    block_length, template_id, schema_id, _version = r.unpack(MESSAGE_HEADER)
    if schema_id != SCHEMA_ID:
        raise DecodeError(f"unexpected schema id {schema_id}")
    try:
        template = TemplateId(template_id)
    except ValueError:
        raise DecodeError(f"unknown template id {template_id}") from None
    block_start = r.offset
    timestamp_ns, correlation_id, raw_tag = r.unpack(SPIDERS_HEADER)
    try:
        tag = raw_tag.rstrip(b"\x00").decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"tag is not UTF-8: {exc}") from exc
    return template, block_start + block_length, MessageHeader(timestamp_ns, correlation_id, tag)


def _read_format(r: _Reader) -> ValueFormat:
    raw = r.take(1)[0]
    try:
        return ValueFormat(raw)
    except ValueError:
        raise DecodeError(f"unknown value format {raw}") from None


def _read_tensor(r: _Reader) -> TensorMessage:
    template, block_end, header = _read_header(r)
    if template is not TemplateId.TENSOR:
        raise DecodeError(f"expected a tensor message, found {template.name}")
    fmt = _read_format(r)
    try:
        major_order = MajorOrder(r.take(1)[0])
    except ValueError:
        raise DecodeError("unknown major order") from None
    r.offset = block_end
    dims = r.var_data()
    if len(dims) % DIMENSION.size:
        raise DecodeError("dimension field is not a whole number of int32 values")
    shape = tuple(dim for (dim,) in DIMENSION.iter_unpack(dims))
    if fmt not in TENSOR_DTYPES:
        raise DecodeError(f"{fmt.name} is not a tensor element format")
    data = np.frombuffer(r.var_data(), dtype=TENSOR_DTYPES[fmt])
    try:
        array = data.reshape(shape, order="F" if major_order is MajorOrder.COLUMN else "C")
    except ValueError:
        raise DecodeError(f"{data.size} elements do not fill shape {shape}") from None
    return TensorMessage(header, TypedValue.array(array), major_order)


def _decode_scalar(fmt: ValueFormat, payload: memoryview) -> TypedValue:
    match fmt:
        case ValueFormat.NOTHING:
            return TypedValue.null()
        case ValueFormat.STRING:
            return TypedValue.text(bytes(payload).decode("utf-8"))
        case ValueFormat.BYTES:
            return TypedValue.array(np.frombuffer(payload, dtype=np.uint8))
        case ValueFormat.BIT:
            return TypedValue.boolean(SCALAR_STRUCTS[fmt].unpack(payload)[0])
        case ValueFormat.FLOAT32 | ValueFormat.FLOAT64:
            return TypedValue.float64(SCALAR_STRUCTS[fmt].unpack(payload)[0])
        case _ if fmt in _SIGNED:
            return TypedValue.signed(SCALAR_STRUCTS[fmt].unpack(payload)[0], _SIGNED[fmt])
        case _ if fmt in _UNSIGNED:
            return TypedValue.unsigned(SCALAR_STRUCTS[fmt].unpack(payload)[0], _UNSIGNED[fmt])
        case _:
            raise DecodeError(f"cannot decode event payload of format {fmt.name}")


def _read_event(r: _Reader) -> EventMessage:
    template, block_end, header = _read_header(r)
    if template is not TemplateId.EVENT:
        raise DecodeError(f"expected an event message, found {template.name}")
    fmt = _read_format(r)
    r.offset = block_end
    try:
        key = bytes(r.var_data()).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"key is not UTF-8: {exc}") from exc
    payload = r.var_data()
    if fmt is ValueFormat.SBE:
        inner = _Reader(payload)
        value = _read_tensor(inner).value
        if inner.offset != len(payload):
            raise DecodeError("trailing bytes after embedded tensor")
    else:
        try:
            value = _decode_scalar(fmt, payload)
        except (struct.error, UnicodeDecodeError) as exc:
            raise DecodeError(f"malformed {fmt.name} payload: {exc}") from exc
    return EventMessage(header, key, value, fmt)


def _read_message(r: _Reader) -> EventMessage | TensorMessage:
    if r.offset + MESSAGE_HEADER.size > len(r.buf):
        raise DecodeError("buffer truncated")
    (_block, template_id, _schema, _version) = MESSAGE_HEADER.unpack_from(r.buf, r.offset)
    if template_id == TemplateId.TENSOR:
        return _read_tensor(r)
    return _read_event(r)


def decode(buffer: bytes | bytearray | memoryview) -> EventMessage | TensorMessage:
    """Decode exactly one message."""
    r = _Reader(memoryview(buffer))
    message = _read_message(r)
    if r.offset != len(r.buf):
        raise DecodeError(f"{len(r.buf) - r.offset} trailing bytes after message")
    return message


def iter_batch(buffer: bytes | bytearray | memoryview) -> Iterator[EventMessage | TensorMessage]:
    """Yield every message of a concatenated batch, in order."""
    r = _Reader(memoryview(buffer))
    while r.offset < len(r.buf):
        yield _read_message(r)


def decode_batch(buffer: bytes | bytearray | memoryview) -> list[EventMessage | TensorMessage]:
    return list(iter_batch(buffer))


__all__ = ["EventMessage", "TensorMessage", "decode", "decode_batch", "iter_batch"]
