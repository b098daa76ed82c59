"""Wire constants for the Event and Tensor schemas.

All integers are little-endian. Every message starts with an 8-byte message
header followed by the 48-byte spiders header block (timestamp, correlation
id and a fixed 32-byte tag).
"""

from __future__ import annotations

import struct
from enum import IntEnum

import numpy as np

SCHEMA_ID = 6
SCHEMA_VERSION = 0

TAG_LENGTH = 32

MESSAGE_HEADER = struct.Struct("<HHHH")
SPIDERS_HEADER = struct.Struct(f"<QQ{TAG_LENGTH}s")
VAR_LENGTH = struct.Struct("<I")
DIMENSION = struct.Struct("<i")

FIXED_HEADER_SIZE = MESSAGE_HEADER.size + SPIDERS_HEADER.size

EVENT_BLOCK_LENGTH = SPIDERS_HEADER.size + 1
TENSOR_BLOCK_LENGTH = SPIDERS_HEADER.size + 2


class TemplateId(IntEnum):
    EVENT = 1
    TENSOR = 2


class MajorOrder(IntEnum):
    ROW = 0
    COLUMN = 1


class ValueFormat(IntEnum):
    """Type code carried in the ``format`` field of both schemas."""

    NOTHING = 0
    UINT8 = 1
    INT8 = 2
    UINT16 = 3
    INT16 = 4
    UINT32 = 5
    INT32 = 6
    UINT64 = 7
    INT64 = 8
    FLOAT32 = 9
    FLOAT64 = 10
    STRING = 11
    BYTES = 12
    BIT = 13
    SBE = 14


# Scalar wire layouts. BIT is a single byte holding 0 or 1.
SCALAR_STRUCTS: dict[ValueFormat, struct.Struct] = {
    ValueFormat.UINT8: struct.Struct("<B"),
    ValueFormat.INT8: struct.Struct("<b"),
    ValueFormat.UINT16: struct.Struct("<H"),
    ValueFormat.INT16: struct.Struct("<h"),
    ValueFormat.UINT32: struct.Struct("<I"),
    ValueFormat.INT32: struct.Struct("<i"),
    ValueFormat.UINT64: struct.Struct("<Q"),
    ValueFormat.INT64: struct.Struct("<q"),
    ValueFormat.FLOAT32: struct.Struct("<f"),
    ValueFormat.FLOAT64: struct.Struct("<d"),
    ValueFormat.BIT: struct.Struct("<?"),
}

SIGNED_FORMATS: dict[int, ValueFormat] = {
    8: ValueFormat.INT8,
    16: ValueFormat.INT16,
    32: ValueFormat.INT32,
    64: ValueFormat.INT64,
}

UNSIGNED_FORMATS: dict[int, ValueFormat] = {
    8: ValueFormat.UINT8,
    16: ValueFormat.UINT16,
    32: ValueFormat.UINT32,
    64: ValueFormat.UINT64,
}

TENSOR_DTYPES: dict[ValueFormat, np.dtype] = {
    ValueFormat.UINT8: np.dtype("<u1"),
    ValueFormat.INT8: np.dtype("<i1"),
    ValueFormat.UINT16: np.dtype("<u2"),
    ValueFormat.INT16: np.dtype("<i2"),
    ValueFormat.UINT32: np.dtype("<u4"),
    ValueFormat.INT32: np.dtype("<i4"),
    ValueFormat.UINT64: np.dtype("<u8"),
    ValueFormat.INT64: np.dtype("<i8"),
    ValueFormat.FLOAT32: np.dtype("<f4"),
    ValueFormat.FLOAT64: np.dtype("<f8"),
    ValueFormat.BIT: np.dtype("?"),
}


def format_for_dtype(dtype: np.dtype) -> ValueFormat:
    """Return the tensor element format for a numpy dtype, ignoring byte order."""
    little = np.dtype(dtype).newbyteorder("<")
    for fmt, candidate in TENSOR_DTYPES.items():
        if candidate == little:
            return fmt
    raise TypeError(f"dtype {dtype} has no tensor wire format")


__all__ = [
    "SCHEMA_ID",
    "SCHEMA_VERSION",
    "TAG_LENGTH",
    "FIXED_HEADER_SIZE",
    "EVENT_BLOCK_LENGTH",
    "TENSOR_BLOCK_LENGTH",
    "TemplateId",
    "MajorOrder",
    "ValueFormat",
    "SCALAR_STRUCTS",
    "SIGNED_FORMATS",
    "UNSIGNED_FORMATS",
    "TENSOR_DTYPES",
    "format_for_dtype",
]
