"""Structured logging for the store.

Handlers are attached to the ``sqlkv`` logger rather than the root logger,
so an application embedding the store keeps its own logging setup.
Calling ``configure_logging`` again replaces the handlers it installed.
"""

import sys
import structlog
import logging
from pathlib import Path
from typing import List, Optional
from sqlkv.core.config import Settings

LOGGER_NAMESPACE = "sqlkv"
_HANDLER_MARK = "_sqlkv_handler"


def _build_handlers(settings: Settings, level: int) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    formatter = logging.Formatter("%(message)s")
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_MARK, True)
    return handlers


def configure_logging(settings: Settings) -> None:
    """Configure structured logging for the ``sqlkv`` namespace."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    package_logger = logging.getLogger(LOGGER_NAMESPACE)
    for handler in list(package_logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            package_logger.removeHandler(handler)
            handler.close()

    for handler in _build_handlers(settings, level):
        package_logger.addHandler(handler)
    package_logger.setLevel(level)
    package_logger.propagate = False

    # Keep driver chatter out of the store's own events
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))
        processors.insert(0, structlog.stdlib.add_logger_name)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.insert(0, structlog.processors.TimeStamper(fmt="%H:%M:%S"))
        processors.append(structlog.dev.ConsoleRenderer(
            colors=False,
            pad_event=35,
            exception_formatter=structlog.dev.plain_traceback
        ))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def log_store_operation(logger: structlog.BoundLogger, operation: str,
                        key: str, hit: Optional[bool] = None, **kwargs) -> None:
    """Log a key-value operation at debug level."""
    log_data = {
        "operation": operation,
        "store_key": key,
        **kwargs
    }

    if hit is not None:
        log_data["store_hit"] = hit

    logger.debug("Store operation", **log_data)
