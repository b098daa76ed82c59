"""Correlation-id generation and wall-clock timestamps.

Ids use the snowflake layout: 41 bits of milliseconds since a custom epoch,
10 bits of node (block) id and a 12-bit per-millisecond sequence.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from spiders.core.config import MAX_BLOCK_ID

DEFAULT_EPOCH_MS = 1_288_834_974_657

NODE_BITS = 10
SEQUENCE_BITS = 12
TIMESTAMP_BITS = 41

MAX_NODE_ID = (1 << NODE_BITS) - 1
SEQUENCE_MASK = (1 << SEQUENCE_BITS) - 1
MAX_TIMESTAMP = (1 << TIMESTAMP_BITS) - 1


def _wall_clock_ms() -> int:
    return time.time_ns() // 1_000_000


class SnowflakeIdGenerator:
    """Monotonic unique-id source namespaced by a node id.

    When the sequence overflows within one millisecond, or the wall clock
    steps backwards, the generator moves on to the next logical millisecond
    instead of blocking. Ids therefore stay strictly increasing.
    """

    def __init__(
        self,
        node_id: int,
        *,
        epoch_ms: int = DEFAULT_EPOCH_MS,
        clock_ms: Callable[[], int] | None = None,
    ) -> None:
        if not 0 <= node_id <= MAX_NODE_ID:
            raise ValueError(f"node id {node_id} must be between 0 and {MAX_NODE_ID}")
        self._node_id = node_id
        self._epoch_ms = epoch_ms
        self._clock_ms = clock_ms or _wall_clock_ms
        self._lock = threading.Lock()
        self._last_ms = -1
        self._sequence = 0

    @property
    def node_id(self) -> int:
        return self._node_id

    def next_id(self) -> int:
        with self._lock:
            ms = self._clock_ms() - self._epoch_ms
            if ms < 0:
                raise ValueError("clock is earlier than the id epoch")
            if ms > self._last_ms:
                self._last_ms = ms
                self._sequence = 0
            else:
                self._sequence = (self._sequence + 1) & SEQUENCE_MASK
                if self._sequence == 0:
                    self._last_ms += 1
            if self._last_ms > MAX_TIMESTAMP:
                raise OverflowError("snowflake timestamp space exhausted")
            return (
                (self._last_ms << (NODE_BITS + SEQUENCE_BITS))
                | (self._node_id << SEQUENCE_BITS)
                | self._sequence
            )

    @staticmethod
    def unpack(snowflake: int) -> tuple[int, int, int]:
        """Split an id into (milliseconds since epoch, node id, sequence)."""
        return (
            snowflake >> (NODE_BITS + SEQUENCE_BITS),
            (snowflake >> SEQUENCE_BITS) & MAX_NODE_ID,
            snowflake & SEQUENCE_MASK,
        )


class IdClock:
    """Timestamp and correlation-id context handed to the message encoder."""

    def __init__(
        self,
        block_id: int = MAX_BLOCK_ID,
        *,
        wall_clock_ns: Callable[[], int] | None = None,
        generator: SnowflakeIdGenerator | None = None,
    ) -> None:
        self._wall_clock_ns = wall_clock_ns or time.time_ns
        self._generator = generator or SnowflakeIdGenerator(block_id)

    @property
    def block_id(self) -> int:
        return self._generator.node_id

    def now(self) -> int:
        return self._wall_clock_ns()

    def next_id(self) -> int:
        return self._generator.next_id()


__all__ = ["IdClock", "SnowflakeIdGenerator", "DEFAULT_EPOCH_MS"]
