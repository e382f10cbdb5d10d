"""Loopback HTTP peers for the end-to-end transmitter tests."""

import asyncio
import contextlib
import re
import socket
import ssl
import struct
import time
from typing import Optional, Sequence

OK_RESPONSE = b"HTTP/1.1 200 OK\r\nContent-Length: 2\r\n\r\nOK"

_CONTENT_LENGTH = re.compile(rb"(?im)^content-length:\s*(\d+)\s*$")


def request_complete(data: bytes) -> bool:
    """True once ``data`` holds a full request head plus its declared body."""

    head, sep, body = data.partition(b"\r\n\r\n")
    if not sep:
        return False
    match = _CONTENT_LENGTH.search(head)
    length = int(match.group(1)) if match else 0
    return len(body) >= length


class RecordingServer:
    """Loopback server that timestamps every received chunk and replies once
    the request is complete."""

    def __init__(
        self,
        reply: Sequence[bytes] = (OK_RESPONSE,),
        *,
        chunk_delay: float = 0.0,
        close_after_reply: bool = False,
        wait_for_request: bool = True,
        ssl_context: Optional[ssl.SSLContext] = None,
    ) -> None:
        self.reply = list(reply)
        self.chunk_delay = chunk_delay
        self.close_after_reply = close_after_reply
        self.wait_for_request = wait_for_request
        self.ssl_context = ssl_context
        self.received = bytearray()
        self.arrivals: list[tuple[float, bytes]] = []
        self.completed_at: Optional[float] = None
        self.client_closed = asyncio.Event()
        self.port = 0
        self._server: Optional[asyncio.AbstractServer] = None

    async def __aenter__(self) -> "RecordingServer":
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0, ssl=self.ssl_context)
        self.port = self._server.sockets[0].getsockname()[1]
        return self

    async def __aexit__(self, *exc_info) -> None:
        assert self._server is not None
        self._server.close()
        await self._server.wait_closed()

    def arrival_of(self, offset: int) -> float:
        """Arrival time of the chunk that carried byte number ``offset``."""

        seen = 0
        for arrived, chunk in self.arrivals:
            seen += len(chunk)
            if seen > offset:
                return arrived
        raise AssertionError(f"byte {offset} never arrived")

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        # TLS teardown errors surface as plain OSError subclasses.
        with contextlib.suppress(OSError):
            try:
                while self.wait_for_request and not request_complete(bytes(self.received)):
                    chunk = await reader.read(65536)
                    if not chunk:
                        return
                    self.arrivals.append((time.time(), chunk))
                    self.received.extend(chunk)
                self.completed_at = time.time()
                for index, part in enumerate(self.reply):
                    if index and self.chunk_delay:
                        await asyncio.sleep(self.chunk_delay)
                    writer.write(part)
                    await writer.drain()
                if not self.close_after_reply:
                    while await reader.read(65536):
                        pass
                    self.client_closed.set()
            finally:
                writer.close()


class ResettingServer:
    """Accepts a connection, reads the first request bytes, then resets it."""

    def __init__(self) -> None:
        self.received = bytearray()
        self.reset_sent = asyncio.Event()
        self.port = 0
        self._server: Optional[asyncio.AbstractServer] = None

    async def __aenter__(self) -> "ResettingServer":
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]
        return self

    async def __aexit__(self, *exc_info) -> None:
        assert self._server is not None
        self._server.close()
        await self._server.wait_closed()

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        chunk = await reader.read(65536)
        self.received.extend(chunk)
        sock = writer.get_extra_info("socket")
        # Zero linger turns the close into an RST.
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, struct.pack("ii", 1, 0))
        writer.transport.abort()
        self.reset_sent.set()
