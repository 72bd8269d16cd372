"""Structured logging setup using structlog.

Everything goes to stderr through one ``ProcessorFormatter``. The
``delivery_log`` stream (one record per final channel outcome) can also be
written as JSON lines to its own file for auditing.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import structlog

from src.core.config import get_settings

DELIVERY_LOGGER = "delivery_log"

# Third-party loggers that are chatty at INFO.
_NOISY_LOGGERS = ("aiohttp.access",)


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def _formatter(renderer: structlog.types.Processor) -> logging.Formatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_processors(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def _attach_delivery_file(path: str | Path) -> None:
    """Mirror the delivery stream into a JSON-lines file."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    delivery = logging.getLogger(DELIVERY_LOGGER)
    for handler in list(delivery.handlers):
        if isinstance(handler, logging.FileHandler):
            delivery.removeHandler(handler)
            handler.close()
    file_handler = logging.FileHandler(target, encoding="utf-8")
    file_handler.setFormatter(_formatter(structlog.processors.JSONRenderer()))
    delivery.addHandler(file_handler)


def setup_logging(
    level: str | None = None,
    fmt: str | None = None,
    delivery_log_file: str | Path | None = None,
) -> None:
    """Configure structlog and the stdlib handlers it renders through.

    Args:
        level: Log level override (e.g. "DEBUG"). Uses config if None.
        fmt: Renderer format override ("json" or "console"). Uses config if None.
        delivery_log_file: JSON-lines audit file for delivery outcomes.
            Uses config if None; an empty value disables the file.
    """
    cfg = get_settings().logging
    log_level = getattr(logging, (level or cfg.level).upper(), logging.INFO)
    log_format = fmt or cfg.format
    audit_path = cfg.delivery_log_file if delivery_log_file is None else delivery_log_file

    renderer: structlog.types.Processor
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(_formatter(renderer))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(stderr_handler)
    root_logger.setLevel(log_level)

    if audit_path:
        _attach_delivery_file(audit_path)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))
