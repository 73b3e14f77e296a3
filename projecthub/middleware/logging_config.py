"""
Logging setup for ProjectHub.

Records emitted while serving a request carry the principal and the
project/stage/component the URL addresses (see ``middleware.timing``).
Production writes one JSON object per line with those ids grouped under
``scope``; development prints a coloured line with a short scope tag such
as ``[p=3 s=12 c=40]``. LOG_LEVEL overrides the level (DEBUG in
development, INFO in production).
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

# Request attributes copied verbatim into the JSON entry
_REQUEST_FIELDS = ("method", "path", "status", "duration_ms", "remote_addr", "request_id")

# Entity ids taken from the URL, in containment order; tag letter for readable output
_SCOPE_FIELDS = (
    ("project_id", "p"),
    ("stage_id", "s"),
    ("component_id", "c"),
    ("approval_id", "a"),
)


def record_scope(record: logging.LogRecord) -> dict:
    """Entity ids and principal attached to ``record``; empty outside a request."""
    scope = {}
    for field, _ in _SCOPE_FIELDS:
        value = getattr(record, field, None)
        if value is not None:
            scope[field] = value
    principal_id = getattr(record, "principal_id", None)
    if principal_id is not None:
        scope["principal_id"] = principal_id
        scope["principal_role"] = getattr(record, "principal_role", None)
    return scope


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _REQUEST_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val
        scope = record_scope(record)
        if scope:
            entry["scope"] = scope
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    @staticmethod
    def scope_tag(record: logging.LogRecord) -> str:
        parts = [f"{tag}={getattr(record, field)}" for field, tag in _SCOPE_FIELDS
                 if getattr(record, field, None) is not None]
        return f" [{' '.join(parts)}]" if parts else ""

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.now().strftime("%H:%M:%S")
        line = (f"{color}{ts} {record.levelname:<8}{self.RESET} "
                f"{record.name}{self.scope_tag(record)}: {record.getMessage()}")
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install one stderr handler on the root logger for ``app``.

    Repeated ``create_app`` calls (the test suite) replace the handler
    instead of stacking another one.
    """
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if is_prod else "DEBUG")
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if is_prod else ReadableFormatter())
    handler.setLevel(level)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for noisy in ("werkzeug", "sqlalchemy.engine", "alembic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    app.logger.setLevel(level)
    if not is_testing:
        app.logger.info("Logging configured: level=%s format=%s", level_name, "JSON" if is_prod else "readable")
