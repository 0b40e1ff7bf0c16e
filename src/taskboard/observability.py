"""Logging setup: JSON lines in production, human-readable text in development."""

import json
import logging
from datetime import datetime, timezone

_EXTRA_FIELDS = (
    "resource_type",
    "resource_id",
    "relationship",
    "event_kind",
    "actor_id",
    "path",
    "status",
)


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Configure the root logger once at startup."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_taskboard", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler._taskboard = True  # type: ignore[attr-defined]
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
        ))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
