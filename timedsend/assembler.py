"""Incremental HTTP/1.x response parser fed with arbitrary byte chunks.

Chunks may split the stream anywhere, including inside a header line, the
blank line that ends the headers, or the body. The assembler moves strictly
forward through its states and completes exactly once::

    AWAITING_STATUS_LINE -> AWAITING_HEADERS -> AWAITING_BODY -> COMPLETE

Body framing is decided when the headers end: ``Content-Length`` first,
then ``Transfer-Encoding: chunked``, otherwise the body runs until the
connection closes (:meth:`ResponseAssembler.feed_eof`).
"""

from __future__ import annotations

import enum
import logging
import re
from typing import Optional

from .exceptions import ParseError
from .models import HttpResponse

LOGGER = logging.getLogger(__name__)

MAX_LINE = 65536
MAX_HEADERS = 100

_STATUS_LINE = re.compile(rb"HTTP/(\d)\.(\d) (\d{3})(?: (.*))?")
_CHUNK_SIZE = re.compile(rb"[0-9A-Fa-f]{1,16}")
_DECIMAL = re.compile(r"[0-9]+")


class AssemblerState(enum.Enum):
    AWAITING_STATUS_LINE = "awaiting status line"
    AWAITING_HEADERS = "awaiting headers"
    AWAITING_BODY = "awaiting body"
    COMPLETE = "complete"


class Framing(enum.Enum):
    CONTENT_LENGTH = "content-length"
    CHUNKED = "chunked"
    UNTIL_CLOSE = "until-close"
    NONE = "none"


class _ChunkPhase(enum.Enum):
    SIZE = "size"
    DATA = "data"
    DATA_END = "data end"
    TRAILERS = "trailers"


class ResponseAssembler:
    """Turn a sequence of received chunks into one :class:`HttpResponse`."""

    def __init__(
        self,
        *,
        request_method: str = "GET",
        max_line: int = MAX_LINE,
        max_headers: int = MAX_HEADERS,
    ) -> None:
        self.request_method = request_method.upper()
        self.max_line = max_line
        self.max_headers = max_headers

        self.state = AssemblerState.AWAITING_STATUS_LINE
        self.framing: Optional[Framing] = None
        self.http_version = ""
        self.status_code = 0
        self.status_text = ""
        self.headers: dict[str, str] = {}
        self.body_chunks: list[bytes] = []
        self.bytes_received = 0

        self._buffer = bytearray()
        self._header_count = 0
        self._remaining = 0
        self._chunk_phase = _ChunkPhase.SIZE
        self._error: Optional[ParseError] = None
        self._response: Optional[HttpResponse] = None

    # -- public API -----------------------------------------------------

    def feed(self, chunk: bytes) -> bool:
        """Consume one inbound chunk; return True once the response is complete."""

        if self._error is not None:
            raise self._error
        if self.state is AssemblerState.COMPLETE:
            raise RuntimeError("feed() called after the response was already complete")
        self.bytes_received += len(chunk)
        self._buffer.extend(chunk)
        try:
            self._advance()
        except ParseError as exc:
            self._error = exc
            raise
        return self.state is AssemblerState.COMPLETE

    on_chunk = feed

    def feed_eof(self) -> bool:
        """Signal that the peer closed the stream."""

        if self.state is AssemblerState.COMPLETE:
            return True
        if self._error is not None:
            raise self._error
        if self.state is AssemblerState.AWAITING_BODY and self.framing is Framing.UNTIL_CLOSE:
            self._complete()
            return True
        self._error = ParseError(
            f"Connection closed while {self.state.value} "
            f"({self.bytes_received} bytes received)"
        )
        raise self._error

    def is_complete(self) -> bool:
        return self.state is AssemblerState.COMPLETE

    def result(self) -> HttpResponse:
        if self._response is None:
            raise RuntimeError("Response is not complete yet")
        return self._response

    # -- parsing --------------------------------------------------------

    def _advance(self) -> None:
        while self.state is not AssemblerState.COMPLETE:
            if self.state is AssemblerState.AWAITING_STATUS_LINE:
                line = self._take_line()
                if line is None:
                    return
                self._parse_status_line(line)
            elif self.state is AssemblerState.AWAITING_HEADERS:
                line = self._take_line()
                if line is None:
                    return
                if line:
                    self._parse_header_line(line)
                else:
                    self._end_of_headers()
            elif not self._consume_body():
                return
        if self._buffer:
            LOGGER.debug("Ignoring %d bytes received past the end of the response", len(self._buffer))
            self._buffer.clear()

    def _take_line(self) -> Optional[bytes]:
        index = self._buffer.find(b"\r\n")
        if index == -1:
            if len(self._buffer) > self.max_line:
                raise ParseError(f"No CRLF within {self.max_line} bytes while {self.state.value}")
            return None
        if index > self.max_line:
            raise ParseError(f"Line longer than {self.max_line} bytes while {self.state.value}")
        line = bytes(self._buffer[:index])
        del self._buffer[: index + 2]
        return line

    def _parse_status_line(self, line: bytes) -> None:
        match = _STATUS_LINE.fullmatch(line)
        if match is None:
            raise ParseError(f"Malformed status line: {line[:80]!r}")
        major, minor, code, reason = match.groups()
        self.http_version = f"{major.decode()}.{minor.decode()}"
        self.status_code = int(code)
        self.status_text = (reason or b"").decode("latin-1").strip()
        self.state = AssemblerState.AWAITING_HEADERS

    def _parse_header_line(self, line: bytes) -> None:
        self._header_count += 1
        if self._header_count > self.max_headers:
            raise ParseError(f"More than {self.max_headers} header lines")
        name, sep, value = line.partition(b":")
        if not sep or not name or re.search(rb"\s", name):
            raise ParseError(f"Malformed header line: {line[:80]!r}")
        key = name.decode("latin-1").lower()
        text = value.decode("latin-1").strip()
        if key in self.headers:
            self.headers[key] = f"{self.headers[key]}, {text}"
        else:
            self.headers[key] = text

    def _has_no_body(self) -> bool:
        return (
            self.request_method == "HEAD"
            or 100 <= self.status_code < 200
            or self.status_code in (204, 304)
        )

    def _end_of_headers(self) -> None:
        self.state = AssemblerState.AWAITING_BODY
        if self._has_no_body():
            self.framing = Framing.NONE
            self._complete()
            return

        length = self.headers.get("content-length")
        if length is not None:
            values = {item.strip() for item in length.split(",")}
            declared = values.pop() if len(values) == 1 else ""
            if not _DECIMAL.fullmatch(declared):
                raise ParseError(f"Invalid Content-Length: {length!r}")
            self.framing = Framing.CONTENT_LENGTH
            self._remaining = int(declared)
            if self._remaining == 0:
                self._complete()
            return

        codings = [item.strip().lower() for item in self.headers.get("transfer-encoding", "").split(",")]
        if codings[-1] == "chunked":
            self.framing = Framing.CHUNKED
            self._chunk_phase = _ChunkPhase.SIZE
            return

        self.framing = Framing.UNTIL_CLOSE

    def _take_body_bytes(self) -> None:
        take = min(self._remaining, len(self._buffer))
        if take:
            self.body_chunks.append(bytes(self._buffer[:take]))
            del self._buffer[:take]
            self._remaining -= take

    def _consume_body(self) -> bool:
        """Consume buffered body bytes; return False when more input is needed."""

        if self.framing is Framing.CONTENT_LENGTH:
            self._take_body_bytes()
            if self._remaining:
                return False
            self._complete()
            return True

        if self.framing is Framing.UNTIL_CLOSE:
            if self._buffer:
                self.body_chunks.append(bytes(self._buffer))
                self._buffer.clear()
            return False

        return self._consume_chunked()

    def _consume_chunked(self) -> bool:
        while True:
            if self._chunk_phase is _ChunkPhase.SIZE:
                line = self._take_line()
                if line is None:
                    return False
                token = line.split(b";", 1)[0].strip()
                if not _CHUNK_SIZE.fullmatch(token):
                    raise ParseError(f"Invalid chunk size line: {line[:80]!r}")
                size = int(token, 16)
                if size == 0:
                    self._chunk_phase = _ChunkPhase.TRAILERS
                else:
                    self._remaining = size
                    self._chunk_phase = _ChunkPhase.DATA
            elif self._chunk_phase is _ChunkPhase.DATA:
                self._take_body_bytes()
                if self._remaining:
                    return False
                self._chunk_phase = _ChunkPhase.DATA_END
            elif self._chunk_phase is _ChunkPhase.DATA_END:
                if len(self._buffer) < 2:
                    return False
                if self._buffer[:2] != b"\r\n":
                    raise ParseError("Chunk data is not followed by CRLF")
                del self._buffer[:2]
                self._chunk_phase = _ChunkPhase.SIZE
            else:
                line = self._take_line()
                if line is None:
                    return False
                if not line:
                    self._complete()
                    return True
                LOGGER.debug("Discarding chunked trailer line %r", line[:80])

    def _complete(self) -> None:
        content = b"".join(self.body_chunks)
        self._response = HttpResponse(
            status_code=self.status_code,
            status_text=self.status_text,
            headers=dict(self.headers),
            body=content.decode("utf-8", errors="replace"),
            content=content,
        )
        self.state = AssemblerState.COMPLETE


__all__ = ["AssemblerState", "Framing", "MAX_HEADERS", "MAX_LINE", "ResponseAssembler"]
