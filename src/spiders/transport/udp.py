"""Direct UDP publication for ``aeron:udp?endpoint=host:port`` channels."""

from __future__ import annotations

import errno
import logging
import socket
from collections.abc import Sequence

from .publication import OfferStatus

logger = logging.getLogger(__name__)

# Largest UDP payload over IPv4.
MAX_DATAGRAM_SIZE = 65_507


class UdpPublication:
    """Sends each offered batch as a single datagram.

    The socket is connected and non-blocking, so a full send buffer surfaces as
    back pressure and an ICMP port-unreachable from an earlier send surfaces as
    not-connected on the next one.

    UDP has no handshake, so ``is_connected`` only reports whether the
    publication is still open and waiting for a connection returns at once.
    """

    def __init__(
        self,
        host: str,
        port: int,
        stream_id: int,
        *,
        channel: str | None = None,
        sock: socket.socket | None = None,
    ) -> None:
        self.channel = channel or f"aeron:udp?endpoint={host}:{port}"
        self.stream_id = stream_id
        if sock is None:
            family, _, _, _, address = socket.getaddrinfo(host, port, type=socket.SOCK_DGRAM)[0]
            sock = socket.socket(family, socket.SOCK_DGRAM)
            sock.connect(address)
        sock.setblocking(False)
        self._sock = sock
        self._position = 0
        self._closed = False

    def __enter__(self) -> UdpPublication:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def position(self) -> int:
        return self._position

    def is_connected(self) -> bool:
        return not self._closed

    def offer(self, buffers: Sequence[bytes]) -> int:
        if self._closed:
            return OfferStatus.CLOSED
        payload = b"".join(buffers)
        if len(payload) > MAX_DATAGRAM_SIZE:
            logger.error(
                "Batch of %d bytes exceeds the %d byte datagram limit", len(payload), MAX_DATAGRAM_SIZE
            )
            return OfferStatus.ERROR
        try:
            sent = self._sock.send(payload)
        except BlockingIOError:
            return OfferStatus.BACK_PRESSURED
        except ConnectionRefusedError:
            return OfferStatus.NOT_CONNECTED
        except OSError as exc:
            if exc.errno == errno.EMSGSIZE:
                logger.error("Datagram of %d bytes rejected as too large", len(payload))
            else:
                logger.error("UDP send to %s failed: %s", self.channel, exc)
            return OfferStatus.ERROR
        self._position += sent
        return self._position

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._sock.close()


__all__ = ["UdpPublication", "MAX_DATAGRAM_SIZE"]
