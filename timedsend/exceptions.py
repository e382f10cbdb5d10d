"""Error taxonomy surfaced by :func:`timedsend.send`."""

from __future__ import annotations


class TimedSendError(RuntimeError):
    """Base class for every failure a timed request can end with."""


class ConnectionError(TimedSendError):  # noqa: A001 - mirrors the requests naming
    """The transport to the server could not be established."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class TransportError(TimedSendError):
    """An established connection failed while the request was in flight."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class ParseError(TimedSendError):
    """Received bytes are not a well-formed HTTP/1.x response."""


__all__ = ["ConnectionError", "ParseError", "TimedSendError", "TransportError"]
