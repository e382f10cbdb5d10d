# Authorized testing only: send timed requests only to servers you are permitted to probe.
"""Hand-built HTTP/1.1 requests whose final framing unit leaves at a target time.

The header block is written as soon as the connection is up. The unit that
makes the request complete on the wire is held back until the target time:
the blank line after the headers when there is no body, otherwise the last
body byte. Everything before that unit is sent immediately.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Mapping, Optional, Union

from .assembler import ResponseAssembler
from .config import TransmitterSettings
from .exceptions import ConnectionError, ParseError, TransportError
from .metrics import record_send_completed, record_send_failed, record_send_started
from .models import HttpResponse, RequestSpec, TargetTime, TransmissionPlan, build_plan, merge_headers
from .scheduler import to_timestamp, wait_until
from .transport import Connector, close_stream, open_stream

LOGGER = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


class RequestTransmitter:
    """Send one :class:`RequestSpec` per :meth:`send` call over a fresh connection."""

    def __init__(
        self,
        settings: Optional[TransmitterSettings] = None,
        *,
        connector: Connector = open_stream,
    ) -> None:
        self.settings = settings or TransmitterSettings()
        self._connector = connector

    async def send(self, spec: RequestSpec) -> HttpResponse:
        """Transmit ``spec`` and return the first complete response.

        Raises :class:`ConnectionError`, :class:`TransportError` or
        :class:`ParseError`; nothing is retried.
        """

        plan = build_plan(spec)
        target = to_timestamp(spec.target_time) if spec.target_time is not None else None

        record_send_started(spec.host, spec.port)
        LOGGER.debug(
            "Prepared %s %s for %s:%s",
            spec.method,
            spec.path,
            spec.host,
            spec.port,
            extra={"event": "transmit.prepared", "headers": dict(merge_headers(spec).items())},
        )
        failure_reason: str | None = None
        started = time.perf_counter()
        try:
            reader, writer = await self._connect(spec)
            try:
                response = await self._exchange(reader, writer, spec, plan, target)
            finally:
                await close_stream(writer)

            duration = time.perf_counter() - started
            record_send_completed(spec.host, duration, response.status_code)
            LOGGER.info(
                "Received %s %s from %s:%s",
                response.status_code,
                response.status_text,
                spec.host,
                spec.port,
                extra={"event": "transmit.completed", "status_code": response.status_code, "duration": duration},
            )
            return response
        except ConnectionError:
            failure_reason = "connection_error"
            raise
        except TransportError:
            failure_reason = "transport_error"
            raise
        except ParseError:
            failure_reason = "parse_error"
            raise
        except asyncio.CancelledError:
            failure_reason = "cancelled"
            raise
        finally:
            if failure_reason is not None:
                record_send_failed(spec.host, failure_reason)

    async def _connect(self, spec: RequestSpec):
        try:
            return await self._connector(
                spec.host,
                spec.port,
                use_tls=spec.use_tls,
                connect_timeout=self.settings.connect_timeout,
                verify_tls=self.settings.verify_tls,
            )
        except ConnectionError:
            raise
        except OSError as exc:
            raise ConnectionError(f"Unable to connect to {spec.host}:{spec.port}: {exc}", exc) from exc

    async def _exchange(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        spec: RequestSpec,
        plan: TransmissionPlan,
        target: Optional[float],
    ) -> HttpResponse:
        loop = asyncio.get_running_loop()
        assembler = ResponseAssembler(request_method=spec.method)
        # The receiver is running before the first byte is written.
        receiving = asyncio.ensure_future(self._receive(reader, assembler))
        transmitting = asyncio.ensure_future(self._transmit(writer, plan, target))

        timeout = self.settings.response_timeout
        deadline = None if timeout is None else loop.time() + timeout
        pending = {receiving, transmitting}
        try:
            while True:
                wait_for = None if deadline is None else max(0.0, deadline - loop.time())
                done, pending = await asyncio.wait(
                    pending, timeout=wait_for, return_when=asyncio.FIRST_COMPLETED
                )
                if not done:
                    raise TransportError(f"No complete response within {timeout:g}s")
                if receiving in done:
                    return receiving.result()
                transmitting.result()
        finally:
            for task in (receiving, transmitting):
                task.cancel()
            await asyncio.gather(receiving, transmitting, return_exceptions=True)

    async def _transmit(
        self,
        writer: asyncio.StreamWriter,
        plan: TransmissionPlan,
        target: Optional[float],
    ) -> None:
        await self._write(writer, plan.header_bytes, "header block")

        if target is not None and not plan.has_body:
            await wait_until(target, poll_interval=self.settings.poll_interval)
        await self._write(writer, plan.terminator_bytes, "header terminator")

        last_byte = plan.body_last_byte
        if last_byte is None:
            return
        if plan.body_base_bytes:
            await self._write(writer, plan.body_base_bytes, "body base")
        if target is not None:
            await wait_until(target, poll_interval=self.settings.poll_interval)
        await self._write(writer, last_byte, "final body byte")

    async def _write(self, writer: asyncio.StreamWriter, data: bytes, phase: str) -> None:
        try:
            writer.write(data)
            await writer.drain()
        except OSError as exc:
            raise TransportError(f"Connection failed while sending {phase}: {exc}", exc) from exc
        LOGGER.info(
            "Sent %s (%d bytes) at %s",
            phase,
            len(data),
            _now_iso(),
            extra={"event": "transmit.sent", "phase": phase},
        )

    async def _receive(self, reader: asyncio.StreamReader, assembler: ResponseAssembler) -> HttpResponse:
        while True:
            try:
                chunk = await reader.read(self.settings.read_size)
            except OSError as exc:
                raise TransportError(f"Connection failed while receiving: {exc}", exc) from exc
            if not chunk:
                if assembler.bytes_received == 0:
                    raise TransportError("Connection closed before any response bytes arrived")
                assembler.feed_eof()
                return assembler.result()
            LOGGER.debug("Received %d bytes", len(chunk))
            if assembler.feed(chunk):
                return assembler.result()


async def send(spec: RequestSpec, settings: Optional[TransmitterSettings] = None) -> HttpResponse:
    """Send ``spec`` over a new connection with a one-off transmitter."""

    return await RequestTransmitter(settings).send(spec)


async def request(
    host: str,
    port: int,
    *,
    method: str = "GET",
    path: str = "/",
    headers: Optional[Mapping[str, str]] = None,
    body: Optional[Union[bytes, str]] = None,
    target_time: Optional[TargetTime] = None,
    use_tls: bool = False,
    settings: Optional[TransmitterSettings] = None,
) -> HttpResponse:
    spec = RequestSpec(
        host=host,
        port=port,
        method=method,
        path=path,
        headers=dict(headers or {}),
        body=body,
        target_time=target_time,
        use_tls=use_tls,
    )
    return await send(spec, settings)


__all__ = ["RequestTransmitter", "request", "send"]
