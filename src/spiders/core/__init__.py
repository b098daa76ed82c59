"""Core shared primitives for the sender.

Contains configuration, the error taxonomy and the id/clock context used by
the message encoder.
"""

from .clock import IdClock, SnowflakeIdGenerator
from .config import SenderSettings
from .errors import (
    ArgumentError,
    ConnectionTimeoutError,
    DecodeError,
    EncodeError,
    ParseError,
    PublishCancelledError,
    PublishTimeoutError,
    ResourceError,
    ResourceNotFoundError,
    SendFailure,
    SpidersError,
    TransportError,
    UnsupportedSchemeError,
    UnsupportedValueError,
)

__all__ = [
    "IdClock",
    "SnowflakeIdGenerator",
    "SenderSettings",
    "SpidersError",
    "ArgumentError",
    "ParseError",
    "EncodeError",
    "UnsupportedValueError",
    "ResourceError",
    "UnsupportedSchemeError",
    "ResourceNotFoundError",
    "DecodeError",
    "ConnectionTimeoutError",
    "TransportError",
    "SendFailure",
    "PublishTimeoutError",
    "PublishCancelledError",
]
