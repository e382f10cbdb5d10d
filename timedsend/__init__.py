"""timedsend: raw HTTP requests whose final framing bytes leave at a chosen instant."""

from __future__ import annotations

# Semantic version for package consumers.
__version__ = "0.1.0"

from .assembler import ResponseAssembler  # noqa: E402
from .exceptions import (  # noqa: E402
    ConnectionError,
    ParseError,
    TimedSendError,
    TransportError,
)
from .models import HttpResponse, RequestSpec, TransmissionPlan, build_plan  # noqa: E402
from .scheduler import schedule_at, wait_until  # noqa: E402
from .transmitter import RequestTransmitter, request, send  # noqa: E402

__all__ = [
    "__version__",
    "ConnectionError",
    "HttpResponse",
    "ParseError",
    "RequestSpec",
    "RequestTransmitter",
    "ResponseAssembler",
    "TimedSendError",
    "TransmissionPlan",
    "TransportError",
    "build_plan",
    "request",
    "schedule_at",
    "send",
    "wait_until",
]
