"""Send one batch of key/value events (or tensors) and exit.

Usage:
    spiders-send-event --uri "aeron:udp?endpoint=localhost:40123" --stream 1001 \
        --tag camera exposure=1.5 gain=12ub object='"M31"' frame=file:///data/m31.fits
    spiders-send-event --tag camera --dry-run exposure=1.5

Destination flags fall back to CONTROL_URI / CONTROL_STREAM_ID / AERON_DIR.
Exit status is 0 on delivery, 2 on argument errors and 1 on any other failure.
"""

from __future__ import annotations

import argparse
import logging
import sys

from pydantic import ValidationError

from spiders.codecs import EventMessage, decode
from spiders.core.clock import IdClock
from spiders.core.config import SenderSettings
from spiders.core.errors import ArgumentError, SpidersError
from spiders.messaging import MessageEncoder, encode_batch, validate_tag
from spiders.resources import ResourceLoader
from spiders.transport import BatchPublisher, PublishOutcome, connect, wait_for_connection
from spiders.values import parse_key_values

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="spiders-send-event",
        description="Publish one batch of typed key=value events",
    )
    parser.add_argument("--aerondir", default=None, help="Media driver directory (env AERON_DIR)")
    parser.add_argument("--uri", default=None, help="Destination channel URI (env CONTROL_URI)")
    parser.add_argument("--stream", type=int, default=None, help="Stream id (env CONTROL_STREAM_ID)")
    parser.add_argument("--tag", required=True, help="Message tag, at most 32 bytes")
    parser.add_argument("--tensor", action="store_true", help="Send each value as a bare tensor")
    parser.add_argument(
        "--dry-run", action="store_true", help="Encode and print the messages without sending"
    )
    parser.add_argument(
        "--timeout-ms",
        type=int,
        default=None,
        help="Connection deadline in milliseconds (env SPIDERS_CONNECTION_TIMEOUT_MS)",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (env LOG_LEVEL)")
    parser.add_argument("tokens", nargs="*", metavar="key[=value]")
    return parser


def _destination(ns: argparse.Namespace, settings: SenderSettings) -> tuple[str, int]:
    uri = ns.uri or settings.control_uri
    stream_id = ns.stream if ns.stream is not None else settings.control_stream_id
    if not uri:
        raise ArgumentError("no destination: pass --uri or set CONTROL_URI")
    if stream_id is None:
        raise ArgumentError("no stream id: pass --stream or set CONTROL_STREAM_ID")
    return uri, stream_id


def describe(buffer: bytes) -> str:
    message = decode(buffer)
    header = message.header
    if isinstance(message, EventMessage):
        return f"event {header.tag} id={header.correlation_id} {message.key}={message.value!r}"
    return f"tensor {header.tag} id={header.correlation_id} {message.value!r}"


def run(ns: argparse.Namespace, settings: SenderSettings) -> int:
    validate_tag(ns.tag)
    destination = None if ns.dry_run else _destination(ns, settings)
    pairs = parse_key_values(ns.tokens)

    clock = IdClock(settings.block_id)
    with ResourceLoader(timeout_s=settings.http_timeout_s) as loader:
        batch = encode_batch(MessageEncoder(clock, loader), ns.tag, pairs, tensor=ns.tensor)
    if not batch.ok:
        logger.error(
            "%d of %d message(s) failed to encode; nothing sent",
            len(batch.failures),
            len(batch.failures) + len(batch.buffers),
        )
        return 1

    if destination is None:
        for buffer in batch.buffers:
            print(describe(buffer))
        return 0

    uri, stream_id = destination
    timeout_ms = ns.timeout_ms if ns.timeout_ms is not None else settings.connection_timeout_ms
    with connect(uri, stream_id, driver_dir=ns.aerondir or settings.aeron_dir, settings=settings) as publication:
        wait_for_connection(publication, timeout_ms / 1000.0)
        publisher = BatchPublisher(
            publication,
            max_attempts=settings.offer_max_attempts,
            deadline_s=settings.offer_deadline_s,
        )
        outcome = publisher.publish(batch.buffers)
    logger.debug("Publish metrics: %s", publisher.metrics_snapshot())
    return 0 if outcome is PublishOutcome.DELIVERED else 1


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    ns = parser.parse_args(argv)
    try:
        settings = SenderSettings()
    except ValidationError as exc:
        parser.error(f"invalid environment configuration: {exc}")

    level = (ns.log_level or settings.log_level).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)

    try:
        return run(ns, settings)
    except ArgumentError as exc:
        logger.error("%s", exc)
        return 2
    except SpidersError as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
