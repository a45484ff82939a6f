"""
Logging setup for the BugFixer API.

One stream handler on the root logger, formatted either as JSON lines
(production, log aggregators) or as short colored text (development and
tests). Every record emitted while a request is active is stamped with
``request_id`` and ``user_id`` by RequestContextFilter, so service-level
log lines can be joined with the access log written by middleware.timing.

Settings (see config.py):
    LOG_LEVEL   DEBUG | INFO | WARNING | ... (default INFO in production)
    LOG_FORMAT  "json" | "text"               (default json in production)
"""

import json
import logging
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Attributes passed via ``extra=`` that are worth keeping in JSON output
_EXTRA_FIELDS = (
    "request_id",
    "user_id",
    "project_id",
    "bug_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
)

_QUIET_LOGGERS = ("urllib3", "werkzeug", "sqlalchemy.engine", "flask_limiter")


class RequestContextFilter(logging.Filter):
    """Copy the active request's id and user onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            if getattr(record, "request_id", None) is None:
                record.request_id = g.get("request_id")
            if getattr(record, "user_id", None) is None:
                user = g.get("current_user")
                record.user_id = user["id"] if user else None
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Compact colored lines for a terminal."""

    _COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    _RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self._COLORS.get(record.levelname, "")
        when = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        rid = getattr(record, "request_id", None)
        line = (
            f"{color}{when} {record.levelname:<7}{self._RESET} "
            f"{'[' + rid + '] ' if rid else ''}{record.name}: {record.getMessage()}"
        )
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            line += f" ({duration:.0f}ms)"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install the root handler according to LOG_LEVEL / LOG_FORMAT."""
    production = not app.config.get("DEBUG") and not app.config.get("TESTING")

    level_name = (app.config.get("LOG_LEVEL") or ("INFO" if production else "DEBUG")).upper()
    level = getattr(logging, level_name, logging.INFO)
    fmt = (app.config.get("LOG_FORMAT") or ("json" if production else "text")).lower()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if fmt == "json" else TextFormatter())
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    # create_app may run more than once per process (tests, CLI)
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not app.config.get("TESTING"):
        app.logger.info("Logging configured: level=%s format=%s", level_name, fmt)
