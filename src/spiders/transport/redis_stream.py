"""Redis Streams publication: one stream entry per offered batch."""

from __future__ import annotations

import logging
from collections.abc import Sequence

import redis

from .publication import OfferStatus

logger = logging.getLogger(__name__)

DEFAULT_STREAM_PREFIX = "spiders.stream"


class RedisStreamPublication:
    """Appends batches to ``{prefix}.{stream_id}``.

    When ``max_stream_length`` is set, a stream at or above that length reports
    back pressure instead of growing further; readers draining the stream
    relieve it.
    """

    def __init__(
        self,
        url: str,
        stream_id: int,
        *,
        prefix: str = DEFAULT_STREAM_PREFIX,
        max_stream_length: int | None = None,
        client: redis.Redis | None = None,
    ) -> None:
        self.channel = url
        self.stream_id = stream_id
        self.stream = f"{prefix}.{stream_id}"
        self._max_stream_length = max_stream_length
        self._redis = client or redis.Redis.from_url(url)
        self._owns_client = client is None
        self._closed = False

    def __enter__(self) -> RedisStreamPublication:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def is_connected(self) -> bool:
        if self._closed:
            return False
        try:
            return bool(self._redis.ping())
        except redis.RedisError as exc:
            logger.debug("Redis ping failed: %s", exc)
            return False

    def offer(self, buffers: Sequence[bytes]) -> int:
        if self._closed:
            return OfferStatus.CLOSED
        try:
            if (
                self._max_stream_length is not None
                and self._redis.xlen(self.stream) >= self._max_stream_length
            ):
                return OfferStatus.BACK_PRESSURED
            self._redis.xadd(self.stream, {"payload": b"".join(buffers), "count": len(buffers)})
            return int(self._redis.xlen(self.stream))
        except redis.ConnectionError:
            return OfferStatus.NOT_CONNECTED
        except redis.RedisError as exc:
            logger.error("XADD to %s failed: %s", self.stream, exc)
            return OfferStatus.ERROR

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_client:
            self._redis.close()


__all__ = ["RedisStreamPublication", "DEFAULT_STREAM_PREFIX"]
