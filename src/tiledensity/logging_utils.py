"""Logging setup for the tiledensity CLI and estimation session.

Estimator log records may carry a small set of context fields (the region
being estimated, the covering zoom and a single tile key). Build them with
:func:`log_context` and pass the result as ``extra``; both formatters below
render that context, the JSON one under ``context`` and the human one as a
bracketed prefix.
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

CONTEXT_FIELDS = ("region", "zoom", "tile")

_STANDARD_FIELDS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "taskName",
}


@dataclass(frozen=True)
class LogOptions:
    """Console and file logging switches collected from the CLI."""

    verbose: int = 0
    quiet: bool = False
    log_file: Path | None = None
    json_console: bool = False

    @property
    def console_level(self) -> int:
        """Level for the stderr handler; --quiet wins over -v."""
        if self.quiet:
            return logging.WARNING
        if self.verbose > 0:
            return logging.DEBUG
        return logging.INFO


def log_context(
    *,
    region: str | None = None,
    zoom: int | None = None,
    tile: str | None = None,
) -> dict[str, Any]:
    """Return an ``extra`` mapping holding the given estimator context."""
    values = {"region": region, "zoom": zoom, "tile": tile}
    return {key: value for key, value in values.items() if value is not None}


def _record_context(record: logging.LogRecord) -> dict[str, Any]:
    return {
        name: getattr(record, name)
        for name in CONTEXT_FIELDS
        if getattr(record, name, None) is not None
    }


def _utc_timestamp() -> str:
    """Return the current UTC time as an ISO8601 string with a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


class JsonFormatter(logging.Formatter):
    """One JSON object per record, for log files and --log-json."""

    def format(self, record: logging.LogRecord) -> str:
        """Serialize the record, splitting estimator context from other extras."""
        payload: dict[str, Any] = {
            "timestamp": _utc_timestamp(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = _record_context(record)
        if context:
            payload["context"] = context
        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_FIELDS and key not in CONTEXT_FIELDS
        }
        if extra:
            payload["extra"] = extra
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        # numpy scalars and paths end up in extras; str() keeps them readable.
        return json.dumps(payload, default=str)


class HumanFormatter(logging.Formatter):
    """Plain text records prefixed with ``[region zN tile]`` when known."""

    def format(self, record: logging.LogRecord) -> str:
        """Format the record and prepend whatever context it carries."""
        message = super().format(record)
        context = _record_context(record)
        if not context:
            return message
        parts: list[str] = []
        if "region" in context:
            parts.append(str(context["region"]))
        if "zoom" in context:
            parts.append(f"z{context['zoom']}")
        if "tile" in context:
            parts.append(str(context["tile"]))
        return f"[{' '.join(parts)}] {message}"


def _console_handler(options: LogOptions) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(options.console_level)
    if options.json_console:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(HumanFormatter("%(levelname)s: %(message)s"))
    return handler


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(JsonFormatter())
    return handler


def configure_logging(options: LogOptions) -> logging.Logger:
    """Replace root handlers according to ``options`` and return the root logger.

    The console gets human text (or JSON with ``json_console``) at
    ``options.console_level``; a log file, when given, always receives
    every record as JSON.
    """
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.DEBUG)
    root.addHandler(_console_handler(options))
    if options.log_file:
        root.addHandler(_file_handler(options.log_file))
    return root
