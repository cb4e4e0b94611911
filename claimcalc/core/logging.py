"""Structured logging setup shared by the CLI and the JSON API.

Library modules log through ``logging.getLogger(__name__)``; structlog renders
both stdlib and structlog records with the same processor chain, so request
context bound in the web middleware shows up on reserving log lines too.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Any

import structlog

# Chatty third-party loggers kept at WARNING unless LOG_LEVEL is DEBUG.
NOISY_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncpg", "uvicorn.access")


def _wants_json(log_format: str | None) -> bool:
    if log_format is None:
        log_format = os.getenv("LOG_FORMAT")
    if log_format is None:
        return os.getenv("JSON_LOGS", "false").lower() == "true"
    return log_format.lower() == "json"


def configure_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: Log level name; defaults to LOG_LEVEL, then INFO
        log_format: "json" or "text"; defaults to LOG_FORMAT / JSON_LOGS
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if _wants_json(log_format):
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=shared_processors + [renderer],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    log_file = os.getenv("LOG_FILE")
    if log_file and Path(log_file).parent.exists():
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=handlers,
        level=level_name,
    )

    if level_name != "DEBUG":
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
