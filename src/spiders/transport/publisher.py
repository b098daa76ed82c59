"""Offer encoded batches to a publication, riding out transient congestion."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from enum import Enum
from typing import Protocol

from spiders.core.errors import (
    PublishCancelledError,
    PublishTimeoutError,
    SendFailure,
    TransportError,
)

from .publication import OfferStatus, Publication, classify

logger = logging.getLogger(__name__)

# Warn once per this many consecutive congested offers.
_CONGESTION_LOG_EVERY = 10_000


class PublishOutcome(Enum):
    DELIVERED = "delivered"
    NOT_CONNECTED = "not_connected"


class CancelToken(Protocol):
    def is_set(self) -> bool: ...


class BatchPublisher:
    """Offers one batch atomically and retries according to the offer result.

    Back pressure and admin actions are retried without spending the attempt
    budget. The wait they cause is bounded only by ``deadline_s`` and
    ``cancel``; with neither set it is unbounded. Other non-fatal statuses
    spend one of ``max_attempts``.
    """

    def __init__(
        self,
        publication: Publication,
        *,
        max_attempts: int = 10,
        deadline_s: float | None = None,
        cancel: CancelToken | None = None,
        clock: Callable[[], float] = time.monotonic,
        idle: Callable[[], None] | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._publication = publication
        self._max_attempts = max_attempts
        self._deadline_s = deadline_s
        self._cancel = cancel
        self._clock = clock
        self._idle = idle or (lambda: time.sleep(0))
        self._metrics: dict[str, float] = {
            "offers_total": 0.0,
            "back_pressure_total": 0.0,
            "admin_action_total": 0.0,
            "attempts_used": 0.0,
            "delivered_total": 0.0,
        }

    def metrics_snapshot(self) -> dict[str, float]:
        return dict(self._metrics)

    def publish(self, buffers: Sequence[bytes]) -> PublishOutcome:
        if not buffers:
            logger.debug("Nothing to publish")
            return PublishOutcome.DELIVERED

        started = self._clock()
        attempts_left = self._max_attempts
        congested = 0
        first = True
        while True:
            if not first:
                self._check_abort(started)
            first = False

            result = self._publication.offer(buffers)
            self._metrics["offers_total"] += 1
            if result > 0:
                self._metrics["delivered_total"] += len(buffers)
                logger.info(
                    "Delivered %d message(s) to %s stream %d at position %d",
                    len(buffers),
                    self._publication.channel,
                    self._publication.stream_id,
                    result,
                )
                return PublishOutcome.DELIVERED

            status = classify(result)
            match status:
                case OfferStatus.BACK_PRESSURED | OfferStatus.ADMIN_ACTION:
                    key = (
                        "back_pressure_total"
                        if status is OfferStatus.BACK_PRESSURED
                        else "admin_action_total"
                    )
                    self._metrics[key] += 1
                    congested += 1
                    if congested % _CONGESTION_LOG_EVERY == 1:
                        logger.warning(
                            "Publication %s congested (%s), retrying", self._publication.channel, status.name
                        )
                    self._idle()
                case OfferStatus.NOT_CONNECTED:
                    logger.warning(
                        "Publication %s stream %d is not connected; batch dropped",
                        self._publication.channel,
                        self._publication.stream_id,
                    )
                    return PublishOutcome.NOT_CONNECTED
                case OfferStatus.ERROR:
                    logger.error("Publication %s reported an error", self._publication.channel)
                    raise TransportError(f"offer to {self._publication.channel} failed")
                case _:
                    congested = 0
                    attempts_left -= 1
                    self._metrics["attempts_used"] += 1
                    label = status.name if status is not None else str(result)
                    logger.debug("Offer returned %s, %d attempt(s) left", label, attempts_left)
                    if attempts_left <= 0:
                        logger.error(
                            "Gave up after %d attempt(s); last result %s", self._max_attempts, label
                        )
                        raise SendFailure(
                            f"batch not accepted after {self._max_attempts} attempt(s) (last: {label})"
                        )

    def _check_abort(self, started: float) -> None:
        if self._cancel is not None and self._cancel.is_set():
            logger.warning("Publish cancelled")
            raise PublishCancelledError("publish cancelled")
        if self._deadline_s is not None and self._clock() - started >= self._deadline_s:
            logger.error("Publish deadline of %.3fs exceeded", self._deadline_s)
            raise PublishTimeoutError(f"batch not accepted within {self._deadline_s:.3f}s")


__all__ = ["BatchPublisher", "PublishOutcome", "CancelToken"]
