"""Structured JSON logging for the relay.

Every logger under the ``llm_relay`` namespace writes one JSON object per
line to stdout, plus an optional file set via AUDIT_LOG_FILE. Stream
completions, retries and validation failures all land here, tagged with
the request id of the HTTP call that triggered them.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone

from llm_relay.config.settings import get_settings

ROOT_LOGGER = "llm_relay"

# Request-scoped context for correlating log entries
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class JSONFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": request_id_var.get(""),
        }
        # Merge any extra fields passed via `extra={}` kwarg
        if hasattr(record, "audit_data"):
            log_entry.update(record.audit_data)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def setup_logging() -> None:
    """Attach JSON handlers to the package logger."""
    settings = get_settings()

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    logger.handlers.clear()

    formatter = JSONFormatter()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    logger.addHandler(stdout_handler)

    if settings.audit_log_file:
        file_handler = logging.FileHandler(settings.audit_log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # Keep relay records out of the root logger (uvicorn configures it too)
    logger.propagate = False


def get_audit_logger() -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.audit")


def generate_request_id() -> str:
    return uuid.uuid4().hex[:12]


class StreamTimer:
    """Measures time to the first event and total stream latency.

    Starts on construction; a stream outlives the request handler that
    opened it, so this is not a context manager.
    """

    def __init__(self):
        self.start_time: float = time.perf_counter()
        self.first_event_ms: float | None = None
        self.elapsed_ms: float = 0

    def _since_start(self) -> float:
        return round((time.perf_counter() - self.start_time) * 1000, 2)

    def mark_first_event(self) -> None:
        if self.first_event_ms is None:
            self.first_event_ms = self._since_start()

    def stop(self) -> None:
        self.elapsed_ms = self._since_start()
