"""
Logging setup for the PrintQuote API.

Production emits one JSON object per line. Engine and carrier code attaches
context through ``extra=`` (quote_id, provider_id, duration_ms, ...); those
keys are lifted to the top level of the JSON record so log search can filter
on them directly.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Iterable

SERVICE_NAME = "printquote-api"

_EXTRA_KEYS = (
    "request_id",
    "quote_id",
    "provider_id",
    "configuration_id",
    "duration_ms",
    "quote_count",
    "error_count",
    "error",
    "http_method",
    "http_path",
    "http_status",
)

# Carrier HTTP clients log every request at INFO
_QUIET_LOGGERS = ("uvicorn.access", "httpcore", "httpx")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with known ``extra`` keys promoted."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        payload.update(
            {key: getattr(record, key) for key in _EXTRA_KEYS if hasattr(record, key)}
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(
    level: str = "INFO",
    json_output: bool = True,
    quiet_loggers: Iterable[str] = _QUIET_LOGGERS,
) -> None:
    """Install a single stdout handler on the root logger."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        JSONFormatter()
        if json_output
        else logging.Formatter("%(asctime)s %(levelname)-7s %(name)s | %(message)s")
    )

    root = logging.getLogger()
    root.handlers = [handler]
    resolved = logging.getLevelName(level.upper())
    root.setLevel(resolved if isinstance(resolved, int) else logging.INFO)

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)
