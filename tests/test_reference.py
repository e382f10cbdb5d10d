from __future__ import annotations

import time
from unittest import mock

import pytest
import requests

from timedsend.models import RequestSpec
from timedsend.reference import build_url, fetch_reference, race_reference


@pytest.mark.parametrize(
    "spec,expected",
    [
        (RequestSpec(host="example.test", port=80), "http://example.test/"),
        (RequestSpec(host="example.test", port=443, use_tls=True), "https://example.test/"),
        (RequestSpec(host="localhost", port=3000, path="/api"), "http://localhost:3000/api"),
        (RequestSpec(host="localhost", port=80, use_tls=True, path="x"), "https://localhost:80/x"),
    ],
)
def test_build_url(spec: RequestSpec, expected: str) -> None:
    assert build_url(spec) == expected


def _response(status: int, body: bytes) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = body  # type: ignore[attr-defined]
    return response


def test_fetch_reference_summarises_response() -> None:
    spec = RequestSpec(host="localhost", port=3000, method="POST", body="{}", headers={"accept": "text/plain"})
    with mock.patch("timedsend.reference.requests.request", return_value=_response(201, b"created")) as mock_request:
        summary = fetch_reference(spec, timeout=2.0)

    assert summary["status_code"] == 201
    assert summary["bytes"] == 7
    assert summary["url"] == "http://localhost:3000/"
    assert "error" not in summary
    kwargs = mock_request.call_args.kwargs
    assert kwargs["data"] == b"{}"
    assert kwargs["headers"]["Accept"] == "text/plain"
    assert kwargs["timeout"] == (2.0, 2.0)


def test_fetch_reference_reports_errors() -> None:
    spec = RequestSpec(host="localhost", port=3000)
    with mock.patch(
        "timedsend.reference.requests.request",
        side_effect=requests.exceptions.ConnectionError("refused"),
    ):
        summary = fetch_reference(spec)

    assert summary["error"] == "refused"
    assert "status_code" not in summary
    assert summary["elapsed"] >= 0


@pytest.mark.asyncio
async def test_race_reference_waits_for_target_time() -> None:
    target = time.time() + 0.05
    spec = RequestSpec(host="localhost", port=3000, target_time=target)
    called_at: list[float] = []

    def _fake_request(*args, **kwargs):
        called_at.append(time.time())
        return _response(200, b"")

    with mock.patch("timedsend.reference.requests.request", side_effect=_fake_request):
        summary = await race_reference(spec)

    assert summary["status_code"] == 200
    assert called_at and called_at[0] >= target
