# Authorized testing only: send timed requests only to servers you are permitted to probe.
"""Conventional comparison request fired at the same target time.

Comparing the server's view of a timed raw request with an ordinary client
request released at the same instant shows which one the server treats as
complete first.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Optional

import requests
from requests import exceptions as requests_exceptions
from requests.structures import CaseInsensitiveDict

from .config import TransmitterSettings
from .models import RequestSpec
from .scheduler import wait_until

LOGGER = logging.getLogger(__name__)


def _isoformat(dt: datetime) -> str:
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_url(spec: RequestSpec) -> str:
    scheme = "https" if spec.use_tls else "http"
    default_port = 443 if spec.use_tls else 80
    path = spec.path if spec.path.startswith("/") else f"/{spec.path}"
    if spec.port == default_port:
        return f"{scheme}://{spec.host}{path}"
    return f"{scheme}://{spec.host}:{spec.port}{path}"


def fetch_reference(spec: RequestSpec, *, timeout: float = 30.0, verify_tls: bool = False) -> dict[str, object]:
    """Issue ``spec`` through ``requests`` and summarise the outcome."""

    url = build_url(spec)
    headers = CaseInsensitiveDict({"Accept": "application/json"})
    headers.update(spec.headers)
    body = spec.body if spec.is_bodied else None
    started_at = datetime.now(timezone.utc)
    clock = time.perf_counter()
    summary: dict[str, object] = {"url": url, "method": spec.method, "started_at": _isoformat(started_at)}
    try:
        response = requests.request(
            spec.method,
            url,
            headers=headers,
            data=body,
            timeout=(timeout, timeout),
            verify=verify_tls,
            allow_redirects=False,
        )
        summary["status_code"] = response.status_code
        summary["bytes"] = len(response.content)
    except requests_exceptions.RequestException as exc:
        summary["error"] = str(exc)
    summary["completed_at"] = _isoformat(datetime.now(timezone.utc))
    summary["elapsed"] = round(time.perf_counter() - clock, 6)
    return summary


async def race_reference(spec: RequestSpec, settings: Optional[TransmitterSettings] = None) -> dict[str, object]:
    """Wait for ``spec.target_time`` and then run :func:`fetch_reference` off the loop."""

    settings = settings or TransmitterSettings()
    if spec.target_time is not None:
        await wait_until(spec.target_time, poll_interval=settings.poll_interval)
    LOGGER.info("Reference request start: %s", _isoformat(datetime.now(timezone.utc)))
    loop = asyncio.get_running_loop()
    summary = await loop.run_in_executor(
        None,
        lambda: fetch_reference(spec, timeout=settings.connect_timeout, verify_tls=settings.verify_tls),
    )
    LOGGER.info("Reference request end: %s", summary["completed_at"])
    return summary


__all__ = ["build_url", "fetch_reference", "race_reference"]
