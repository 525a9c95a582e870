"""Structured logging configuration built on structlog."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Final, TextIO, cast

import structlog

_VALID_FORMATS: Final = frozenset({"json", "console", "plain"})


def _shared_processors() -> list[structlog.typing.Processor]:
    """Processors applied regardless of the selected output format."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def _renderer(log_format: str) -> structlog.typing.Processor:
    """Return the final renderer for the configured format."""
    if log_format == "json":
        return structlog.processors.JSONRenderer(sort_keys=True)
    if log_format == "console":
        return structlog.dev.ConsoleRenderer(colors=False)
    return structlog.processors.KeyValueRenderer(
        key_order=["timestamp", "level", "event"],
        drop_missing=True,
    )


def configure_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: str | Path | None = None,
) -> None:
    """Configure structlog and the standard library root logger.

    Args:
        log_level: Minimum level name such as ``"DEBUG"`` or ``"INFO"``.
        log_format: One of ``json``, ``console`` or ``plain``.
        log_file: Optional path that receives a copy of every record.

    """
    normalized_format = log_format.lower()
    if normalized_format not in _VALID_FORMATS:
        msg = f"Unsupported log format: {log_format!r}"
        raise ValueError(msg)

    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        msg = f"Unsupported log level: {log_level!r}"
        raise ValueError(msg)

    stream: TextIO = sys.stderr
    handlers: list[logging.Handler] = [logging.StreamHandler(stream)]
    if log_file is not None:
        file_path = Path(log_file)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(file_path, encoding="utf-8"))

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_processors(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(normalized_format),
        ],
    )
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None, **initial_values: Any) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to ``name`` and any initial context."""
    logger = structlog.get_logger(name)
    if initial_values:
        logger = logger.bind(**initial_values)
    return cast("structlog.stdlib.BoundLogger", logger)


__all__ = ["configure_logging", "get_logger"]
