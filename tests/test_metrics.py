from __future__ import annotations

from timedsend import metrics


def _sample(name: str, labels: dict[str, str] | None = None) -> float:
    value = metrics._REGISTRY.get_sample_value(name, labels or {})
    return value or 0.0


def test_send_outcomes_are_counted() -> None:
    before_started = _sample("timedsend_requests_total", {"status": "started"})
    before_failed = _sample("timedsend_requests_total", {"status": "parse_error"})

    metrics.record_send_started("127.0.0.1", 8080)
    metrics.record_send_failed("127.0.0.1", "parse_error")

    assert _sample("timedsend_requests_total", {"status": "started"}) == before_started + 1
    assert _sample("timedsend_requests_total", {"status": "parse_error"}) == before_failed + 1


def test_lateness_is_never_negative() -> None:
    before = _sample("timedsend_schedule_lateness_seconds_sum")

    metrics.record_schedule_lateness(-0.5)

    assert _sample("timedsend_schedule_lateness_seconds_sum") == before


def test_metrics_payload_exposes_registry() -> None:
    metrics.record_send_completed("127.0.0.1", 0.25, 200)

    payload, content_type = metrics.metrics_payload()

    assert b"timedsend_request_duration_seconds_count" in payload
    assert content_type.startswith("text/plain")
