"""Error taxonomy shared by every spiders subsystem.

Argument and parse errors are raised before any network activity. Encode
errors abort a single message. Transport errors abort the whole batch.
"""

from __future__ import annotations


class SpidersError(Exception):
    """Base class for all sender failures."""


class ArgumentError(SpidersError):
    """Raised when a required input is missing or invalid."""


class ParseError(SpidersError, ValueError):
    """Raised when a ``key=value`` token cannot be interpreted."""

    def __init__(self, message: str, token: str | None = None) -> None:
        super().__init__(message)
        self.token = token


class EncodeError(SpidersError):
    """Raised when a single message cannot be encoded."""


class UnsupportedValueError(EncodeError):
    """Raised when a value kind cannot be carried by the requested schema."""


class ResourceError(EncodeError):
    """Raised when a referenced resource cannot be loaded."""

    def __init__(self, message: str, uri: str | None = None) -> None:
        super().__init__(message)
        self.uri = uri


class UnsupportedSchemeError(ResourceError):
    """Raised for URI schemes the resource loader does not handle."""


class ResourceNotFoundError(ResourceError):
    """Raised when a referenced file or remote object does not exist."""


class DecodeError(SpidersError, ValueError):
    """Raised when a buffer does not hold a well-formed message."""


class ConnectionTimeoutError(SpidersError):
    """Raised when a publication does not connect before its deadline."""


class TransportError(SpidersError):
    """Raised on hard transport failures."""


class SendFailure(SpidersError):
    """Raised when a batch could not be offered within the attempt budget."""


class PublishTimeoutError(SendFailure):
    """Raised when back pressure outlasts the publish deadline."""


class PublishCancelledError(SendFailure):
    """Raised when a publish is cancelled while waiting out back pressure."""


__all__ = [
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
