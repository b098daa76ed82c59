"""Publication handle contract and offer result codes."""

from __future__ import annotations

from collections.abc import Sequence
from enum import IntEnum
from typing import Protocol


class OfferStatus(IntEnum):
    """Negative offer results. Any positive result is a stream position."""

    NOT_CONNECTED = -1
    BACK_PRESSURED = -2
    ADMIN_ACTION = -3
    CLOSED = -4
    MAX_POSITION_EXCEEDED = -5
    ERROR = -6


def classify(result: int) -> OfferStatus | None:
    """Map a non-positive offer result to its status, or ``None`` if unknown."""

    try:
        return OfferStatus(result)
    except ValueError:
        return None


class Publication(Protocol):
    channel: str
    stream_id: int

    def is_connected(self) -> bool: ...

    def offer(self, buffers: Sequence[bytes]) -> int: ...

    def close(self) -> None: ...

    def __enter__(self) -> Publication: ...

    def __exit__(self, *exc_info) -> None: ...


__all__ = ["OfferStatus", "Publication", "classify"]
