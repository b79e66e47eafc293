"""JSON logging with per-request correlation ids.

Every record leaves the process as one JSON line on stdout. Security events
(refresh-token reuse, forced revocations) go to a dedicated logger so they can
be routed or alerted on separately.
"""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from flask import Flask, Response, has_request_context, request

REQUEST_ID_HEADER = "X-Request-ID"
# Inbound headers accepted as the request id, first match wins
CORRELATION_HEADERS = (REQUEST_ID_HEADER, "X-Correlation-ID")
REQUEST_ID_ENVIRON_KEY = "refreshguard.request_id"

# ``extra=`` keys promoted into the JSON payload
EXTRA_KEYS = ("endpoint", "elapsed_ms", "event", "principal_id", "outcome", "attempt")

SECURITY_LOGGER = "refreshguard.security"


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "time": created.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        payload.update({key: record.__dict__[key] for key in EXTRA_KEYS if key in record.__dict__})
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class RequestIdFilter(logging.Filter):
    """Stamp ``request_id`` on every record (``None`` outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = ensure_request_id() if has_request_context() else None
        return True


def _inbound_request_id() -> str | None:
    return next((request.headers[h] for h in CORRELATION_HEADERS if request.headers.get(h)), None)


def ensure_request_id() -> str:
    """Return the id of the current request, adopting or minting it once.

    The id lives in the WSGI environ of the request, not on ``g``: an app
    context can outlive several requests and must not carry one id into the
    next. Outside a request context every call returns a fresh uuid4.
    """
    if not has_request_context():
        return str(uuid4())
    environ = request.environ
    if REQUEST_ID_ENVIRON_KEY not in environ:
        environ[REQUEST_ID_ENVIRON_KEY] = _inbound_request_id() or str(uuid4())
    return environ[REQUEST_ID_ENVIRON_KEY]


def configure_logging(level: str | int = "INFO") -> None:
    """Replace the root handlers with a single JSON stdout handler."""

    if isinstance(level, str):
        level = level.upper()
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"request_id": {"()": RequestIdFilter}},
            "formatters": {"json": {"()": JSONFormatter}},
            "handlers": {
                "stdout": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                    "formatter": "json",
                    "filters": ["request_id"],
                }
            },
            "root": {"level": level, "handlers": ["stdout"]},
        }
    )


def security_logger() -> logging.Logger:
    return logging.getLogger(SECURITY_LOGGER)


def init_app(app: Flask) -> None:
    """Seed the request id early and echo it back on every response."""

    app.logger.addFilter(RequestIdFilter())

    @app.before_request
    def _seed_request_id() -> None:
        ensure_request_id()

    @app.after_request
    def _echo_request_id(response: Response) -> Response:
        response.headers.setdefault(REQUEST_ID_HEADER, ensure_request_id())
        return response


__all__ = [
    "SECURITY_LOGGER",
    "configure_logging",
    "ensure_request_id",
    "init_app",
    "security_logger",
]
