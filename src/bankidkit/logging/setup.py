"""Structured logging configuration for bankidkit.

Provides JSON and text formatters, an order-context filter that
injects the current order id into every log record, and a one-call
``configure_logging`` function driven by config settings.

Order workers call :func:`bind_order_id` at the top of their thread so
every line they log (including lines from the transport) carries the
order it belongs to.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from bankidkit.config.settings import LoggingSettings

_current_order_id: ContextVar[str | None] = ContextVar("bankidkit_order_id", default=None)

# Attributes that are part of the standard LogRecord; everything
# else is considered "extra" and gets included in structured output.
_STANDARD_ATTRS = frozenset(
    {
        "args",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
        # Handled explicitly:
        "order_id",
    }
)


def bind_order_id(order_id: str | None) -> None:
    """Attach *order_id* to log records emitted from the current thread."""
    _current_order_id.set(order_id)


def current_order_id() -> str | None:
    return _current_order_id.get()


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class StructuredFormatter(logging.Formatter):
    """JSON-lines formatter for production logging.

    Every record becomes a single JSON object on one line containing
    the standard fields plus any *extra* attributes passed by the
    caller or injected by filters.
    """

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()

        data: dict = {
            "timestamp": datetime.fromtimestamp(
                record.created,
                tz=UTC,
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.message,
        }

        order_id = getattr(record, "order_id", None)
        if order_id not in (None, "-"):
            data["order_id"] = order_id

        # Caller-supplied extra fields
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                data.setdefault(key, value)

        if record.exc_info and record.exc_info[0] is not None:
            data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            data["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for development / console use."""

    _FMT = "%(asctime)s %(levelname)-8s [%(order_id)s] %(name)s — %(message)s"

    def __init__(self) -> None:
        super().__init__(fmt=self._FMT, datefmt="%Y-%m-%d %H:%M:%S")


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


class OrderContextFilter(logging.Filter):
    """Inject the current order id into every log record.

    Uses the id bound with :func:`bind_order_id` in the emitting thread,
    an explicit ``extra={"order_id": ...}`` if the caller passed one,
    and ``"-"`` otherwise.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if getattr(record, "order_id", None) is None:
            record.order_id = _current_order_id.get() or "-"  # type: ignore[attr-defined]
        return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Configure the ``bankidkit`` logger hierarchy from settings.

    Replaces any bootstrap handlers with properly formatted output and
    adds a rotating file handler when ``settings.file`` is set.

    Returns the root ``bankidkit`` logger.
    """
    level = getattr(logging, settings.level.upper(), logging.INFO)

    root = logging.getLogger("bankidkit")
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.propagate = False

    formatter: logging.Formatter
    formatter = StructuredFormatter() if settings.format == "json" else TextFormatter()

    ctx_filter = OrderContextFilter()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.addFilter(ctx_filter)
    root.addHandler(console)

    if settings.file:
        try:
            from logging.handlers import RotatingFileHandler

            fh = RotatingFileHandler(
                settings.file,
                maxBytes=settings.max_file_size_bytes,
                backupCount=settings.backup_count,
            )
            fh.setFormatter(formatter)
            fh.addFilter(ctx_filter)
            root.addHandler(fh)
        except OSError as exc:
            root.warning(
                "Could not open log file %s: %s",
                settings.file,
                exc,
            )

    return root
