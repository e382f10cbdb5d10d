"""Logging setup for timedsend: rich console output, optional rotating file."""

from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Mapping
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, Optional

from rich.logging import RichHandler

DEFAULT_MAX_BYTES = int(os.environ.get("LOG_MAX_BYTES", str(10 * 1024 * 1024)))
DEFAULT_BACKUP_COUNT = int(os.environ.get("LOG_BACKUP_COUNT", "5"))

SENSITIVE_HEADERS = {"cookie", "set-cookie", "authorization", "proxy-authorization"}
REDACTED = "[redacted]"

# Attributes copied from ``extra=`` into JSON log lines.
STRUCTURED_FIELDS = ("event", "host", "port", "phase", "at", "lateness", "duration", "status_code", "reason")


def redact_headers(headers: Mapping[str, object]) -> dict[str, object]:
    return {
        key: REDACTED if isinstance(key, str) and key.lower() in SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


class JsonFormatter(logging.Formatter):
    """Emit logs as structured JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
        }
        for name in STRUCTURED_FIELDS:
            if hasattr(record, name):
                payload[name] = getattr(record, name)
        headers = getattr(record, "headers", None)
        if isinstance(headers, Mapping):
            payload["headers"] = dict(headers)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, sort_keys=True, default=str)


class SensitiveDataFilter(logging.Filter):
    """Redact credential-bearing header values in mapping args and ``extra`` headers."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.args, Mapping):
            record.args = redact_headers(record.args)
        headers = getattr(record, "headers", None)
        if isinstance(headers, Mapping):
            record.headers = redact_headers(headers)
        return True


class HostnameRedactionFilter(logging.Filter):
    """Redact IPv4 addresses when anonymisation is enabled."""

    IP_PATTERN = re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b")

    def __init__(self, anonymize: bool) -> None:
        super().__init__(name="hostname-redactor")
        self.anonymize = anonymize

    def _scrub(self, value: object) -> object:
        if isinstance(value, str):
            return self.IP_PATTERN.sub("[redacted-ip]", value)
        return value

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.anonymize:
            return True
        if isinstance(record.msg, str):
            record.msg = self._scrub(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(self._scrub(arg) for arg in record.args)
        elif isinstance(record.args, Mapping):
            record.args = {key: self._scrub(value) for key, value in record.args.items()}
        if hasattr(record, "host"):
            record.host = self._scrub(record.host)
        return True


def _console_handler(level: int) -> logging.Handler:
    return RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_path=False,
        level=level,
    )


def configure_logging(
    level: int = logging.INFO,
    *,
    json_logs: bool = False,
    logfile: Optional[Path | str] = None,
    suppress: Optional[Iterable[str]] = None,
) -> None:
    """Configure root logging with rotation and optional JSON output."""

    handlers: list[logging.Handler] = []
    anonymize = os.environ.get("ANONYMIZE_LOGS", "false").lower() == "true"

    console_handler = _console_handler(level)
    console_handler.addFilter(SensitiveDataFilter())
    console_handler.addFilter(HostnameRedactionFilter(anonymize))
    handlers.append(console_handler)

    if logfile:
        path = Path(logfile)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=DEFAULT_MAX_BYTES,
            backupCount=DEFAULT_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.addFilter(SensitiveDataFilter())
        file_handler.addFilter(HostnameRedactionFilter(anonymize))
        if json_logs:
            file_handler.setFormatter(JsonFormatter())
        else:
            file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    for name in suppress or ("asyncio", "urllib3"):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


__all__ = [
    "configure_logging",
    "HostnameRedactionFilter",
    "JsonFormatter",
    "SensitiveDataFilter",
    "redact_headers",
]
