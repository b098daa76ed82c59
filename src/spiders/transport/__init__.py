"""Publications and the batch publish loop."""

from .connection import connect, parse_channel_params, parse_udp_endpoint, wait_for_connection
from .publication import OfferStatus, Publication, classify
from .publisher import BatchPublisher, CancelToken, PublishOutcome
from .redis_stream import DEFAULT_STREAM_PREFIX, RedisStreamPublication
from .udp import MAX_DATAGRAM_SIZE, UdpPublication

__all__ = [
    "BatchPublisher",
    "CancelToken",
    "DEFAULT_STREAM_PREFIX",
    "MAX_DATAGRAM_SIZE",
    "OfferStatus",
    "Publication",
    "PublishOutcome",
    "RedisStreamPublication",
    "UdpPublication",
    "classify",
    "connect",
    "parse_channel_params",
    "parse_udp_endpoint",
    "wait_for_connection",
]
