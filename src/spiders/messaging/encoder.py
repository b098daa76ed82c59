"""Encode typed key/value pairs into Event and Tensor wire buffers."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

import numpy as np

from spiders.codecs import encode_event, encode_tensor
from spiders.core.clock import IdClock
from spiders.core.errors import ArgumentError, EncodeError, ResourceError, UnsupportedValueError
from spiders.resources import ResourceLoader
from spiders.schema.formats import TAG_LENGTH
from spiders.schema.types import KeyValuePair, MessageHeader, TypedValue, ValueKind

logger = logging.getLogger(__name__)


def validate_tag(tag: str) -> str:
    if not tag:
        raise ArgumentError("tag must not be empty")
    if "\x00" in tag:
        raise ArgumentError(f"tag {tag!r} must not contain NUL characters")
    if len(tag.encode("utf-8")) > TAG_LENGTH:
        raise ArgumentError(f"tag {tag!r} exceeds {TAG_LENGTH} bytes")
    return tag


class MessageEncoder:
    """Builds one wire buffer per call.

    Every call draws exactly one correlation id before doing anything else,
    so a failed encode leaves a gap in the id sequence rather than reusing it.
    URI values are resolved through ``loader`` and always travel as tensors.
    """

    def __init__(self, clock: IdClock, loader: ResourceLoader | None = None) -> None:
        self._clock = clock
        self._loader = loader

    def encode_event(self, tag: str, key: str, value: TypedValue) -> bytes:
        header = self._header(tag)
        buffer = encode_event(header, key, self._resolve(value))
        logger.debug(
            "Encoded event %s key=%r (%d bytes, id=%d)", tag, key, len(buffer), header.correlation_id
        )
        return buffer

    def encode_tensor(self, tag: str, value: TypedValue) -> bytes:
        header = self._header(tag)
        if value.kind not in (ValueKind.ARRAY, ValueKind.URI):
            raise UnsupportedValueError(
                f"tensor messages need an array or URI value, not {value.kind.value}"
            )
        buffer = encode_tensor(header, self._resolve(value))
        logger.debug("Encoded tensor %s (%d bytes, id=%d)", tag, len(buffer), header.correlation_id)
        return buffer

    def _header(self, tag: str) -> MessageHeader:
        timestamp_ns = self._clock.now()
        correlation_id = self._clock.next_id()
        return MessageHeader(timestamp_ns, correlation_id, validate_tag(tag))

    def _resolve(self, value: TypedValue) -> TypedValue:
        if value.kind is not ValueKind.URI:
            return value
        if self._loader is None:
            raise ResourceError(f"no resource loader configured for {value.value}", value.value)
        content = self._loader.load(value.value)
        if isinstance(content, (bytes, bytearray, memoryview)):
            content = np.frombuffer(content, dtype=np.uint8)
        try:
            return TypedValue.array(content)
        except TypeError as exc:
            raise UnsupportedValueError(f"{value.value}: {exc}") from exc


@dataclass(slots=True)
class EncodeFailure:
    key: str
    error: EncodeError


@dataclass(slots=True)
class EncodedBatch:
    """Buffers in input order plus the pairs that could not be encoded."""

    buffers: list[bytes] = field(default_factory=list)
    failures: list[EncodeFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def total_bytes(self) -> int:
        return sum(len(b) for b in self.buffers)


def encode_batch(
    encoder: MessageEncoder,
    tag: str,
    pairs: Iterable[KeyValuePair],
    *,
    tensor: bool = False,
) -> EncodedBatch:
    """Encode every pair; one pair's failure does not stop the others."""

    batch = EncodedBatch()
    for pair in pairs:
        try:
            if tensor:
                buffer = encoder.encode_tensor(tag, pair.value)
            else:
                buffer = encoder.encode_event(tag, pair.key, pair.value)
        except EncodeError as exc:
            logger.error("Failed to encode %r: %s", pair.key, exc)
            batch.failures.append(EncodeFailure(pair.key, exc))
            continue
        batch.buffers.append(buffer)
    return batch


__all__ = ["MessageEncoder", "EncodedBatch", "EncodeFailure", "encode_batch", "validate_tag"]
