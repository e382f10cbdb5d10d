# Authorized testing only: send timed requests only to servers you are permitted to probe.
"""Connect-and-get-duplex-stream primitive used by the transmitter."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import socket
import ssl
from typing import Awaitable, Callable, Optional

from .exceptions import ConnectionError

LOGGER = logging.getLogger(__name__)

Stream = tuple[asyncio.StreamReader, asyncio.StreamWriter]
Connector = Callable[..., Awaitable[Stream]]


def create_tls_context(*, verify: bool) -> ssl.SSLContext:
    context = ssl.create_default_context()
    if not verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    context.set_alpn_protocols(["http/1.1"])
    return context


async def open_stream(
    host: str,
    port: int,
    *,
    use_tls: bool = False,
    connect_timeout: float = 30.0,
    verify_tls: bool = False,
    limit: int = 2**16,
) -> Stream:
    """Open a TCP (or TLS) stream to ``host:port``.

    Any failure while resolving, connecting or completing the TLS handshake
    is raised as :class:`timedsend.exceptions.ConnectionError`.
    """

    tls_context: Optional[ssl.SSLContext] = create_tls_context(verify=verify_tls) if use_tls else None
    try:
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(
                host,
                port,
                ssl=tls_context,
                server_hostname=host if use_tls else None,
                limit=limit,
            ),
            timeout=connect_timeout,
        )
    except asyncio.TimeoutError as exc:
        raise ConnectionError(
            f"Timed out after {connect_timeout:g}s connecting to {host}:{port}", exc
        ) from exc
    except (OSError, ssl.SSLError) as exc:
        raise ConnectionError(f"Unable to connect to {host}:{port}: {exc}", exc) from exc

    sock = writer.get_extra_info("socket")
    if sock is not None:
        with contextlib.suppress(OSError):
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
    LOGGER.info(
        "Connected to %s:%s%s",
        host,
        port,
        " over TLS" if use_tls else "",
        extra={"event": "transport.connected", "host": host, "port": port},
    )
    return reader, writer


async def close_stream(writer: asyncio.StreamWriter) -> None:
    """Close the stream and release the socket; a broken peer is not an error here."""

    writer.close()
    with contextlib.suppress(OSError):
        await writer.wait_closed()


__all__ = ["Connector", "Stream", "close_stream", "create_tls_context", "open_stream"]
