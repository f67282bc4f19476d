"""Logging configuration for the pizza telemetry service.

Console output is a compact ``key=value`` line. When Loki credentials are
configured, records are additionally shipped as JSON log lines from a
background queue thread so request handlers never wait on the network.
"""

from __future__ import annotations

import json
import logging
import queue
import re
import sys
from logging.handlers import QueueHandler, QueueListener
from typing import Optional

import httpx

from pizza_telemetry.utils.time import utc_now

_CONTEXT_KEYS = ("request_id", "method", "path", "status_code", "duration_ms")

# (pattern, replacement) pairs applied to every rendered line.
_REDACTIONS = (
    (re.compile(r'(\\?"(?:password|apiKey|api_key|token)\\?":\s*\\?")[^"\\]*'), r"\1*****"),
    (re.compile(r"Bearer\s+[A-Za-z0-9\-._~+/:]+=*"), "Bearer *****"),
)

LOKI_LOGGER_NAME = "pizza_telemetry.loki"
loki_logger = logging.getLogger(LOKI_LOGGER_NAME)
# Records from these loggers would be produced by the push itself.
_SKIPPED_LOGGERS = (LOKI_LOGGER_NAME, "httpx", "httpcore")


def redact(text: str) -> str:
    """Mask passwords, API keys and bearer tokens in a rendered log line."""
    for pattern, replacement in _REDACTIONS:
        text = pattern.sub(replacement, text)
    return text


def status_to_level(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


def _record_context(record: logging.LogRecord) -> dict:
    return {key: getattr(record, key) for key in _CONTEXT_KEYS if getattr(record, key, None) is not None}


class ConsoleFormatter(logging.Formatter):
    """Human-readable ``[LEVEL] timestamp message key=value`` lines."""

    def format(self, record: logging.LogRecord) -> str:
        parts = [f"[{record.levelname:<7}]", utc_now().isoformat(), record.getMessage()]
        parts.extend(f"{key}={value}" for key, value in _record_context(record).items())
        if record.exc_info and record.exc_info[1]:
            parts.append(f"\n{self.formatException(record.exc_info)}")
        return redact(" ".join(parts))


class JSONFormatter(logging.Formatter):
    """One JSON object per record, secrets redacted."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": utc_now().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_record_context(record),
        }
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return redact(json.dumps(log_entry, default=str))


class LokiHandler(logging.Handler):
    """Pushes each record to a Grafana Loki push endpoint.

    Stream labels are ``component`` (the service source), ``level`` and
    ``type`` (``record.log_type`` when set, else ``app``). Push failures are
    reported on ``pizza_telemetry.loki``; records from that logger and from
    the HTTP client libraries are skipped.
    """

    def __init__(
        self,
        url: str,
        user_id: str,
        api_key: str,
        source: str,
        timeout: float = 5,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        super().__init__()
        self.url = url
        self.source = source
        token = f"{user_id}:{api_key}" if user_id else api_key
        self._client = httpx.Client(
            transport=transport,
            timeout=timeout,
            headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
        )
        self.setFormatter(JSONFormatter())

    def build_event(self, record: logging.LogRecord) -> dict:
        labels = {
            "component": self.source,
            "level": record.levelname.lower(),
            "type": getattr(record, "log_type", "app"),
        }
        timestamp_ns = str(int(record.created * 1_000_000_000))
        return {"streams": [{"stream": labels, "values": [[timestamp_ns, self.format(record)]]}]}

    def emit(self, record: logging.LogRecord) -> None:
        if record.name.startswith(_SKIPPED_LOGGERS):
            return
        try:
            resp = self._client.post(self.url, json=self.build_event(record))
        except Exception as exc:
            loki_logger.warning(f"Error sending log to Loki: {exc}")
            return
        if not resp.is_success:
            loki_logger.warning(f"Failed to send log to Loki: HTTP status {resp.status_code}")

    def close(self) -> None:
        self._client.close()
        super().close()


def setup_logging(level: str = "INFO") -> None:
    """Configure console logging for the application."""
    root_logger = logging.getLogger()

    # Avoid adding handlers multiple times
    if root_logger.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ConsoleFormatter())
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Quiet noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


class LokiShipping:
    """Root-logger attachment of a queued :class:`LokiHandler`."""

    def __init__(self, handler: LokiHandler) -> None:
        self.handler = handler
        self._queue: queue.SimpleQueue = queue.SimpleQueue()
        self._queue_handler = QueueHandler(self._queue)
        self._listener = QueueListener(self._queue, handler)

    def start(self) -> None:
        self._listener.start()
        logging.getLogger().addHandler(self._queue_handler)

    def stop(self) -> None:
        logging.getLogger().removeHandler(self._queue_handler)
        self._listener.stop()
        self.handler.close()


def start_loki_shipping(
    url: str,
    user_id: str,
    api_key: str,
    source: str,
    transport: Optional[httpx.BaseTransport] = None,
) -> Optional[LokiShipping]:
    """Ship root-logger records to Loki; returns None when not configured."""
    if not (url and api_key):
        return None
    shipping = LokiShipping(LokiHandler(url, user_id, api_key, source, transport=transport))
    shipping.start()
    return shipping
