"""Logging setup for the orders domain.

structlog renders through stdlib logging, so Protean, SQLAlchemy and uvicorn
records share one pipeline with ours. Output goes to the console and to a
rotating ``orders.log``; production writes JSON lines.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path

import structlog

_LEVELS = {"production": "INFO", "staging": "INFO", "development": "DEBUG", "test": "WARNING"}

# Protean logs every UoW commit at DEBUG
_CAPPED_LOGGERS = ("protean", "sqlalchemy", "uvicorn.access", "asyncio")


def _environment() -> str:
    return (os.getenv("PROTEAN_ENV") or os.getenv("ENVIRONMENT") or "development").lower()


def _wants_json() -> bool:
    log_format = os.getenv("LOG_FORMAT")
    if log_format:
        return log_format.lower() == "json"
    return _environment() in ("production", "staging")


def _attach_handlers(level: str) -> None:
    log_dir = Path(os.getenv("LOG_DIR", "logs"))
    log_dir.mkdir(exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [
        logging.StreamHandler(sys.stdout),
        logging.handlers.RotatingFileHandler(
            filename=log_dir / "orders.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        ),
    ]
    for name in _CAPPED_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _renderer():
    if _wants_json():
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=True,
        exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=True, max_frames=2),
    )


def configure_logging() -> None:
    """Route structlog through stdlib logging at the environment's level."""
    level = os.getenv("LOG_LEVEL", _LEVELS.get(_environment(), "INFO"))
    _attach_handlers(level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _renderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
