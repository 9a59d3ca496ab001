"""
Logging setup for natswire tools

The codec itself never logs. StreamParser and the command line tool
emit structlog events, rendered as JSON lines on stderr and in a
rotating per-component file under settings.log_dir.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

import structlog
import structlog.stdlib

from natswire.config import settings
from natswire.exceptions import ConfigurationError

_LINE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _resolve_level(level: Union[int, str, None]) -> int:
    if level is None:
        level = settings.log_level
    if isinstance(level, int):
        return level

    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ConfigurationError(f"unknown log level: {level!r}", {"level": level})
    return resolved


def _file_handler(component: str, log_dir: Path) -> RotatingFileHandler:
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / f"{component}.log",
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
    )
    handler.setFormatter(logging.Formatter(_LINE_FORMAT))
    return handler


def setup_logging(
    component: str = "natswire",
    level: Union[int, str, None] = None,
    log_dir: Optional[Path] = None,
) -> None:
    """
    Configure structlog + stdlib logging for a component.

    Args:
        component: Name of the log file (<component>.log)
        level: Level name or number; settings.log_level when omitted
        log_dir: Directory for the log file; settings.log_dir when omitted

    Raises:
        ConfigurationError: If `level` is not a known level name
    """
    level = _resolve_level(level)

    # stdout is reserved for decoded/encoded output
    handlers = [
        logging.StreamHandler(sys.stderr),
        _file_handler(component, log_dir or settings.log_dir),
    ]
    logging.basicConfig(level=level, handlers=handlers, format=_LINE_FORMAT, force=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    structlog.get_logger(__name__).debug(
        "logging_initialized",
        component=component,
        level=logging.getLevelName(level),
    )
