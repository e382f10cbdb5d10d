"""Prometheus metrics for timed request transmission."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

LOGGER = logging.getLogger(__name__)

_REGISTRY = CollectorRegistry()


def _histogram(name: str, documentation: str, *, buckets: Iterable[float]) -> Histogram:
    return Histogram(name, documentation, buckets=tuple(buckets), registry=_REGISTRY)


def _counter(name: str, documentation: str, *, label_names: Optional[Iterable[str]] = None) -> Counter:
    if label_names:
        return Counter(name, documentation, labelnames=list(label_names), registry=_REGISTRY)
    return Counter(name, documentation, registry=_REGISTRY)


SEND_ATTEMPTS = _counter(
    "timedsend_requests_total",
    "Number of timed requests grouped by outcome.",
    label_names=["status"],
)
SEND_DURATION = _histogram(
    "timedsend_request_duration_seconds",
    "Time from connect to a fully assembled response, in seconds.",
    buckets=(0.005, 0.01, 0.05, 0.1, 0.5, 1, 2, 5, 10, 30, 60),
)
SCHEDULE_LATENESS = _histogram(
    "timedsend_schedule_lateness_seconds",
    "Delay between a scheduled target time and the moment the action fired.",
    buckets=(0.0005, 0.001, 0.002, 0.005, 0.01, 0.025, 0.05, 0.1, 0.5),
)


def record_send_started(host: str, port: int) -> None:
    LOGGER.debug("metrics.send_started", extra={"event": "send.started", "host": host, "port": port})
    SEND_ATTEMPTS.labels(status="started").inc()


def record_send_completed(host: str, duration: float, status_code: int) -> None:
    """Record a request that produced a complete response."""

    LOGGER.debug(
        "metrics.send_completed",
        extra={
            "event": "send.completed",
            "host": host,
            "duration": duration,
            "status_code": status_code,
        },
    )
    SEND_ATTEMPTS.labels(status="completed").inc()
    SEND_DURATION.observe(duration)


def record_send_failed(host: str, reason: str) -> None:
    """Record a request that ended with one of the library errors."""

    LOGGER.warning(
        "metrics.send_failed",
        extra={"event": "send.failed", "host": host, "reason": reason},
    )
    SEND_ATTEMPTS.labels(status=reason).inc()


def record_schedule_lateness(lateness: float) -> None:
    SCHEDULE_LATENESS.observe(max(0.0, lateness))


def metrics_payload() -> tuple[bytes, str]:
    """Return the Prometheus exposition payload and its content type."""

    return generate_latest(_REGISTRY), CONTENT_TYPE_LATEST


__all__ = [
    "metrics_payload",
    "record_schedule_lateness",
    "record_send_completed",
    "record_send_failed",
    "record_send_started",
]
