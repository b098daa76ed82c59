"""Spiders - one-shot event and tensor sender.

Parses ``key=value`` tokens into typed values, encodes them as binary Event or
Tensor messages and publishes the batch, retrying through back pressure.

Subpackages:
- values: token to typed-value inference
- schema: wire formats and value types
- codecs: message encoding and decoding
- resources: URI content loading (file, http, ftp, FITS)
- messaging: message encoder and batch encoding
- transport: publications and the publish loop
- core: settings, id clock and errors
"""

__version__ = "0.1.0"

from spiders.core import IdClock, SenderSettings, SpidersError
from spiders.messaging import MessageEncoder, encode_batch
from spiders.transport import BatchPublisher, PublishOutcome, connect
from spiders.values import parse_key_values

__all__ = [
    "BatchPublisher",
    "IdClock",
    "MessageEncoder",
    "PublishOutcome",
    "SenderSettings",
    "SpidersError",
    "connect",
    "encode_batch",
    "parse_key_values",
]
