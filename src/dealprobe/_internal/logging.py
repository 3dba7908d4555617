"""Structured logging setup for dealprobe."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

# Extra attributes the engine attaches to records via ``extra=``.
_CONTEXT_FIELDS = ("vu_id", "iteration", "step", "check")


class _JsonFormatter(logging.Formatter):
    """One-line JSON formatter.

    Emits timestamp, level, logger and message, plus any virtual-user
    context (``vu_id``, ``iteration``, ``step``, ``check``) present on the
    record.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def setup_logging(
    level: int = logging.INFO,
    *,
    json_format: bool = False,
) -> logging.Logger:
    """Configure and return the ``dealprobe`` logger.

    Installs a single stderr handler on the ``dealprobe`` namespace.
    Calling again only updates the level; handlers are never duplicated.

    Args:
        level: Logging level (e.g., ``logging.DEBUG``).
        json_format: Emit structured JSON lines instead of plain text.

    Returns:
        The configured ``dealprobe`` logger.
    """
    logger = logging.getLogger("dealprobe")
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if json_format:
        formatter: logging.Formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child logger, e.g. ``get_logger("workflow.executor")``."""
    return logging.getLogger(f"dealprobe.{name}")
