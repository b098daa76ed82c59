"""Open publications from channel URIs and wait for them to connect."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from spiders.core.config import SenderSettings
from spiders.core.errors import ArgumentError, ConnectionTimeoutError, TransportError

from .publication import Publication
from .redis_stream import DEFAULT_STREAM_PREFIX, RedisStreamPublication
from .udp import UdpPublication

logger = logging.getLogger(__name__)

_UDP_CHANNEL = "aeron:udp"
_REDIS_SCHEMES = ("redis://", "rediss://", "unix://")


def parse_channel_params(uri: str) -> dict[str, str]:
    """Split ``aeron:<media>?k=v|k=v`` into its parameters."""

    _, _, query = uri.partition("?")
    params: dict[str, str] = {}
    for item in filter(None, query.split("|")):
        key, sep, value = item.partition("=")
        if not sep:
            raise TransportError(f"malformed channel parameter {item!r} in {uri}")
        params[key.strip()] = value.strip()
    return params


def parse_udp_endpoint(uri: str) -> tuple[str, int]:
    endpoint = parse_channel_params(uri).get("endpoint")
    if not endpoint:
        raise TransportError(f"UDP channel {uri} has no endpoint")
    host, sep, port = endpoint.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise TransportError(f"endpoint {endpoint!r} must be host:port")
    port_num = int(port)
    if not 0 < port_num < 65536:
        raise TransportError(f"endpoint port {port_num} out of range")
    return host.strip("[]"), port_num


def connect(
    uri: str,
    stream_id: int,
    *,
    driver_dir: str | None = None,
    settings: SenderSettings | None = None,
) -> Publication:
    """Open a publication on ``uri``/``stream_id``.

    ``driver_dir`` names the media driver directory. Direct UDP and Redis
    publications run without a driver, so it is only recorded in the log.
    """

    if not uri:
        raise ArgumentError("a channel URI is required")
    if driver_dir:
        logger.debug("Media driver directory %s", driver_dir)

    if uri.startswith(_UDP_CHANNEL):
        host, port = parse_udp_endpoint(uri)
        try:
            publication: Publication = UdpPublication(host, port, stream_id, channel=uri)
        except OSError as exc:
            raise TransportError(f"cannot open {uri}: {exc}") from exc
    elif uri.startswith(_REDIS_SCHEMES):
        try:
            publication = RedisStreamPublication(
                uri,
                stream_id,
                prefix=settings.redis_stream_prefix if settings else DEFAULT_STREAM_PREFIX,
                max_stream_length=settings.redis_max_stream_length if settings else None,
            )
        except ValueError as exc:
            raise TransportError(f"cannot open {uri}: {exc}") from exc
    else:
        raise TransportError(f"unsupported channel {uri}")

    logger.debug("Opened publication %s stream %d", uri, stream_id)
    return publication


def wait_for_connection(
    publication: Publication,
    timeout_s: float = 1.0,
    *,
    poll_interval_s: float = 0.1,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Poll ``is_connected`` until it holds or ``timeout_s`` elapses."""

    deadline = clock() + timeout_s
    while not publication.is_connected():
        if clock() >= deadline:
            logger.error(
                "Publication %s stream %d not connected after %.3fs",
                publication.channel,
                publication.stream_id,
                timeout_s,
            )
            raise ConnectionTimeoutError(
                f"{publication.channel} stream {publication.stream_id} "
                f"not connected within {timeout_s:.3f}s"
            )
        sleep(poll_interval_s)
    logger.info("Connected to %s stream %d", publication.channel, publication.stream_id)


__all__ = ["connect", "wait_for_connection", "parse_channel_params", "parse_udp_endpoint"]
