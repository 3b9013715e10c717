"""Structured Logging — JSON formatter and setup for the client's module loggers.

Invariants:
    - All logs include timestamp, level, logger name, and message
    - Extra fields (operation, attempt, error_code, ...) surfaced when present
    - Client code never passes tokens or consumer secrets to a logger; credentials
      that leak in through third-party text (httpx errors, provider bodies) are
      masked by redact() before a line is emitted, in both formats
    - remove_logging() detaches exactly the handler setup_logging() returned

Design Decisions:
    - JSONFormatter over third-party libs: stdlib only, full control
    - setup_logging is opt-in (MpesaClient(configure_logging=True)): a library never
      configures the root logger on import
"""

import json
import logging
import re
from datetime import datetime, timezone

PACKAGE_LOGGER = "mpesa"

EXTRA_KEYS = (
    "operation", "attempt", "delay_ms", "error_kind", "error_code",
    "request_id", "status_code", "expires_in", "active", "admitted",
)

# Authorization header values and the gateway's query-string credentials
_CREDENTIAL_RE = re.compile(r"\b(Bearer|Basic)\s+[A-Za-z0-9._~+/=-]+")
_QUERY_SECRET_RE = re.compile(r"\b(apikey|access_token|SecurityCredential|Password)=([^&\s\"']+)")


def redact(text: str) -> str:
    """Mask credentials in free text."""
    text = _CREDENTIAL_RE.sub(lambda m: f"{m.group(1)} ***", text)
    return _QUERY_SECRET_RE.sub(lambda m: f"{m.group(1)}=***", text)


class JSONFormatter(logging.Formatter):
    """Format logs as JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": redact(record.getMessage()),
        }
        for key in EXTRA_KEYS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = redact(self.formatException(record.exc_info))
        return json.dumps(log, ensure_ascii=False)


class RedactingFormatter(logging.Formatter):
    """Human-readable lines with credentials masked."""

    def format(self, record: logging.LogRecord) -> str:
        return redact(super().format(record))


def setup_logging(level: str = "INFO", fmt: str = "json") -> logging.Handler:
    """Attach a handler to the package logger and return it."""
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(RedactingFormatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
        ))
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.addHandler(handler)
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return handler


def remove_logging(handler: logging.Handler) -> None:
    """Detach a handler installed by setup_logging."""
    logging.getLogger(PACKAGE_LOGGER).removeHandler(handler)
    handler.close()
