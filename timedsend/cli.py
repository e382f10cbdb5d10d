# Authorized testing only: send timed requests only to servers you are permitted to probe.
"""Command-line interface for timedsend."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

from rich.console import Console

from . import __version__
from .config import TransmitterSettings, load_environment
from .exceptions import TimedSendError
from .logging_utils import configure_logging
from .models import RequestSpec, build_plan
from .reference import race_reference
from .scheduler import to_timestamp
from .transmitter import RequestTransmitter


def _port(value: str) -> int:
    port = int(value)
    if port <= 0 or port > 65535:
        raise argparse.ArgumentTypeError("Ports must be between 1 and 65535")
    return port


def _header(value: str) -> tuple[str, str]:
    name, sep, content = value.partition(":")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"Headers must look like 'Name: value', got {value!r}")
    return name.strip(), content.strip()


def _target_time(value: str) -> str:
    try:
        to_timestamp(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="timedsend",
        description="Send a raw HTTP request whose final framing bytes are released at a chosen instant.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--host", required=True, help="Server hostname or IP address")
    parser.add_argument("--port", type=_port, help="Server port (defaults to 80, or 443 with --tls)")
    parser.add_argument("--method", default="GET", help="Request method")
    parser.add_argument("--path", default="/", help="Request target path")
    parser.add_argument(
        "-H",
        "--header",
        dest="headers",
        action="append",
        type=_header,
        default=[],
        help="Extra request header 'Name: value' (repeatable, overrides defaults)",
    )
    parser.add_argument("--data", help="Request body (ignored for GET and HEAD)")
    parser.add_argument(
        "--target-time",
        type=_target_time,
        help="Release instant: ISO-8601, 'YYYY/MM/DD HH:MM:SS' (local time) or POSIX seconds",
    )
    parser.add_argument("--tls", action="store_true", help="Wrap the connection in TLS")
    parser.add_argument(
        "--reference",
        action="store_true",
        help="Also fire an ordinary HTTP request at the target time for comparison",
    )
    parser.add_argument("--log-json", action="store_true", help="Emit structured JSON logs to the log file")
    parser.add_argument("--log-file", type=Path, help="Write logs to the specified path")

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", action="store_true", help="Enable debug logging")
    verbosity.add_argument("--quiet", action="store_true", help="Reduce logging output")
    return parser


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(None if argv is None else list(argv))


def configure_cli_logging(args: argparse.Namespace) -> None:
    level = logging.INFO
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    configure_logging(level=level, json_logs=args.log_json, logfile=args.log_file)


def spec_from_args(args: argparse.Namespace) -> RequestSpec:
    return RequestSpec(
        host=args.host,
        port=args.port or (443 if args.tls else 80),
        method=args.method,
        path=args.path,
        headers=dict(args.headers),
        body=args.data,
        target_time=args.target_time,
        use_tls=args.tls,
    )


async def _run(spec: RequestSpec, settings: TransmitterSettings, *, reference: bool) -> dict[str, object]:
    transmitter = RequestTransmitter(settings)
    if not reference:
        response = await transmitter.send(spec)
        return {"response": response.as_dict()}
    response, summary = await asyncio.gather(
        transmitter.send(spec),
        race_reference(spec, settings),
    )
    return {"response": response.as_dict(), "reference": summary}


def main(argv: Optional[Iterable[str]] = None) -> int:
    load_environment()
    args = parse_args(argv)

    configure_cli_logging(args)
    logger = logging.getLogger("timedsend.cli")

    try:
        settings = TransmitterSettings.from_env()
        spec = spec_from_args(args)
        build_plan(spec)
    except (TypeError, ValueError) as exc:
        logger.error("Invalid request: %s", exc)
        return 2

    try:
        result = asyncio.run(_run(spec, settings, reference=args.reference))
    except TimedSendError as exc:
        logger.error("Request failed: %s", exc)
        return 1

    Console().print_json(data=result)
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
