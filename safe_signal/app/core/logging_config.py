"""
Structured logging for the Alert Service and the terminal client.

Provides:
    • JSON-formatted logs for production (machine-parseable)
    • Pretty console logs for development (human-readable)
    • A per-request alert context: the middleware opens it, and the
      routes tag it with the alert or contact they touched

Usage:
    from safe_signal.app.core.logging_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__)
    logger.warning("Alert ingested", extra={"alert_id": 1718000000000})
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from safe_signal.app.core.config import settings

# One mutable dict per request. The endpoint runs in a copied context,
# so tags it adds must land in the same object the middleware holds.
_request_context: ContextVar[Optional[Dict[str, Any]]] = ContextVar(
    "request_context", default=None,
)

# Record attributes passed via ``extra=`` that reach the JSON output
ALERT_FIELDS = ("alert_id", "recipient_count", "lat", "lon", "channel")
CONTACT_FIELDS = ("contact_id",)
REQUEST_FIELDS = ("status_code", "duration_ms")
_EXTRA_FIELDS = ALERT_FIELDS + CONTACT_FIELDS + REQUEST_FIELDS

# Keys the routes may tag onto the open request
_TAGGABLE = ("alert_id", "contact_id")


def open_request_context(request_id: str, client_ip: str, endpoint: str) -> Dict[str, Any]:
    """Start a fresh context for one request; returns the live dict."""
    ctx = {"request_id": request_id, "client_ip": client_ip, "endpoint": endpoint}
    _request_context.set(ctx)
    return ctx


def close_request_context() -> None:
    _request_context.set(None)


def tag_request(**fields: Any) -> None:
    """
    Attach alert or contact ids to the open request.

    Outside a request this is a no-op, so service code can call it from
    the terminal client too.
    """
    unknown = set(fields) - set(_TAGGABLE)
    if unknown:
        raise ValueError(f"Cannot tag request with {sorted(unknown)}")
    ctx = _request_context.get()
    if ctx is not None:
        ctx.update(fields)


def get_request_context() -> Dict[str, Any]:
    """Snapshot of the open request context (empty outside a request)."""
    return dict(_request_context.get() or {})


def _record_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {key: getattr(record, key) for key in _EXTRA_FIELDS if hasattr(record, key)}


# ── JSON Formatter (Production) ──

class JSONFormatter(logging.Formatter):
    """One JSON object per line; alert fields sit at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        ctx = get_request_context()
        if ctx:
            log_entry["request"] = {
                k: ctx[k] for k in ("request_id", "client_ip", "endpoint") if k in ctx
            }
            # A request tagged with an alert makes every line it logs searchable by it
            for key in _TAGGABLE:
                if key in ctx:
                    log_entry[key] = ctx[key]

        log_entry.update(_record_fields(record))

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = {
                "type": type(record.exc_info[1]).__name__,
                "message": str(record.exc_info[1]),
            }

        return json.dumps(log_entry, default=str)


# ── Pretty Formatter (Development) ──

class PrettyFormatter(logging.Formatter):
    """Coloured console output with a short request/alert tag."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, color: bool = True):
        super().__init__()
        self.color = color

    @staticmethod
    def _tag(record: logging.LogRecord) -> str:
        ctx = get_request_context()
        parts = []
        if ctx.get("request_id"):
            parts.append(ctx["request_id"][:8])
        alert_id = getattr(record, "alert_id", None) or ctx.get("alert_id")
        if alert_id is not None:
            parts.append(f"alert={alert_id}")
        return f" [{' '.join(parts)}]" if parts else ""

    def format(self, record: logging.LogRecord) -> str:
        ts = self.formatTime(record, "%H:%M:%S")
        level = f"{record.levelname:8s}"
        if self.color:
            level = f"{self.COLORS.get(record.levelname, self.RESET)}{level}{self.RESET}"

        formatted = f"{ts} {level}{self._tag(record)} {record.name}: {record.getMessage()}"

        if record.exc_info and record.exc_info[1]:
            formatted += f"\n  {type(record.exc_info[1]).__name__}: {record.exc_info[1]}"

        return formatted


# ── Setup ──

def setup_logging(json_output: Optional[bool] = None, stream=None) -> None:
    """
    Configure the root logger.

    ``json_output`` defaults to production mode. The terminal client
    passes ``stream=sys.stderr`` so log lines stay out of the page it
    prints on stdout.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    root.handlers.clear()

    out = stream or sys.stdout
    use_json = settings.is_production if json_output is None else json_output
    handler = logging.StreamHandler(out)
    if use_json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(PrettyFormatter(color=out.isatty()))
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
