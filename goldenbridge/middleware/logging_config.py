"""
Logging setup for the Golden Bridge API.

Production writes one JSON object per line so the platform's log drain can
index fields; development and tests get a short single-line format.

Request-scoped fields (method, path, status, duration_ms, user_id,
program_id) are attached by the timing middleware through ``extra=`` and
by ``RequestContextFilter`` for any log call made inside a request.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from flask import g, has_request_context, request

CONTEXT_FIELDS = (
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
    "user_id",
    "program_id",
)

QUIET_LOGGERS = ("werkzeug", "sqlalchemy.engine", "alembic.runtime.migration")


class RequestContextFilter(logging.Filter):
    """Stamp the acting user and path on records emitted during a request."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            if getattr(record, "user_id", None) is None:
                record.user_id = getattr(g, "jwt_user_id", None)
            if getattr(record, "path", None) is None:
                record.path = request.path
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}:{record.lineno}",
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ReadableFormatter(logging.Formatter):
    """``12:04:31 INFO  goldenbridge.services.finance_service [user 4]: ...``"""

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        who = getattr(record, "user_id", None)
        who = f" [user {who}]" if who else ""
        line = f"{stamp} {record.levelname:<5} {record.name}{who}: {record.getMessage()}"
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            line += f" ({duration:.0f}ms)"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install a single stderr handler on the root logger.

    ``LOG_LEVEL`` from the app config wins; otherwise production logs at
    INFO and everything else at DEBUG.
    """
    production = not (app.debug or app.testing)
    level_name = (app.config.get("LOG_LEVEL") or ("INFO" if production else "DEBUG")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if production else ReadableFormatter())
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    # create_app runs once per test session, and again from scripts; never stack handlers
    root.handlers[:] = [handler]
    root.setLevel(level)
    app.logger.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if not app.testing:
        app.logger.info("Logging at %s (%s)", level_name, "json" if production else "text")
