"""Structured logging setup."""

import logging
import sys
from typing import Optional

import structlog
from structlog.typing import FilteringBoundLogger


def get_logger(name: Optional[str] = None) -> FilteringBoundLogger:
    """Get a structlog logger.

    If ``setup_logging`` has not run yet, structlog's default configuration is used.
    """
    return structlog.get_logger(name)


def setup_logging(level: str = "info", log_file: Optional[str] = None) -> None:
    """Route structlog through the stdlib root logger.

    Args:
        level: debug, info, warning or error
        log_file: Optional file to write logs to instead of stderr
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler: logging.Handler
    if log_file:
        handler = logging.FileHandler(log_file, encoding="utf-8")
        renderer = structlog.processors.JSONRenderer()
    else:
        handler = logging.StreamHandler(sys.stderr)
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=[
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
