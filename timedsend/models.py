"""Request and response value objects plus the request wire plan."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

from requests.structures import CaseInsensitiveDict

TargetTime = Union[datetime, float, int, str]

TERMINATOR = b"\r\n\r\n"
BODYLESS_METHODS = frozenset({"GET", "HEAD"})

DEFAULT_HEADERS: tuple[tuple[str, str], ...] = (
    ("Connection", "keep-alive"),
    ("Accept", "application/json"),
)


def _check_header_token(value: str, what: str) -> str:
    if "\r" in value or "\n" in value:
        raise ValueError(f"Request {what} must not contain CR or LF: {value!r}")
    return value


@dataclass
class RequestSpec:
    """Everything needed to hand-build and transmit one request."""

    host: str
    port: int
    method: str = "GET"
    path: str = "/"
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[Union[bytes, str]] = None
    target_time: Optional[TargetTime] = None
    use_tls: bool = False

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("host must be provided")
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise TypeError("port must be an integer")
        if self.port <= 0 or self.port > 65535:
            raise ValueError("port must be between 1 and 65535")
        self.method = self.method.upper()
        self.path = self.path or "/"
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")

    @property
    def is_bodied(self) -> bool:
        return bool(self.body) and self.method not in BODYLESS_METHODS


@dataclass(frozen=True)
class TransmissionPlan:
    """Request bytes split into the units the transmitter writes separately.

    Only ``terminator_bytes`` and ``body_last_byte`` are eligible for a
    timed release; everything else goes out as soon as it is reached.
    """

    header_bytes: bytes
    terminator_bytes: bytes = TERMINATOR
    body_base_bytes: bytes = b""
    body_last_byte: Optional[bytes] = None

    @property
    def has_body(self) -> bool:
        return self.body_last_byte is not None

    @property
    def wire_bytes(self) -> bytes:
        return (
            self.header_bytes
            + self.terminator_bytes
            + self.body_base_bytes
            + (self.body_last_byte or b"")
        )


@dataclass(frozen=True)
class HttpResponse:
    status_code: int
    status_text: str
    headers: dict[str, str]
    body: str
    content: bytes = b""

    def as_dict(self) -> dict[str, object]:
        return {
            "status_code": self.status_code,
            "status_text": self.status_text,
            "headers": dict(self.headers),
            "body": self.body,
        }


def merge_headers(spec: RequestSpec) -> CaseInsensitiveDict:
    """Defaults first, caller headers second; the caller wins on collisions."""

    merged: CaseInsensitiveDict = CaseInsensitiveDict()
    merged["Host"] = spec.host
    for name, value in DEFAULT_HEADERS:
        merged[name] = value
    for name, value in spec.headers.items():
        merged[name] = value
    if spec.method in BODYLESS_METHODS:
        merged.pop("Content-Length", None)
    if spec.is_bodied:
        merged["Content-Length"] = str(len(spec.body or b""))
    return merged


def build_plan(spec: RequestSpec) -> TransmissionPlan:
    headers = merge_headers(spec)
    _check_header_token(spec.method, "method")
    _check_header_token(spec.path, "path")
    lines = [f"{spec.method} {spec.path} HTTP/1.1"]
    for name, value in headers.items():
        _check_header_token(str(name), "name")
        _check_header_token(str(value), "value")
        lines.append(f"{name}: {value}")
    header_bytes = "\r\n".join(lines).encode("latin-1")

    if not spec.is_bodied:
        return TransmissionPlan(header_bytes=header_bytes)
    body = bytes(spec.body or b"")
    return TransmissionPlan(
        header_bytes=header_bytes,
        body_base_bytes=body[:-1],
        body_last_byte=body[-1:],
    )


__all__ = [
    "BODYLESS_METHODS",
    "DEFAULT_HEADERS",
    "HttpResponse",
    "RequestSpec",
    "TargetTime",
    "TERMINATOR",
    "TransmissionPlan",
    "build_plan",
    "merge_headers",
]
