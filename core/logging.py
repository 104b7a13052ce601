# core/logging.py

import logging
from typing import TYPE_CHECKING, Optional

import structlog
from structlog.processors import JSONRenderer, TimeStamper, add_log_level
from structlog.stdlib import add_logger_name

if TYPE_CHECKING:
    from .config import TilemapConfig


def configure_logging(log_level: str = "INFO", json_output: bool = True):
    """Configure structured logging for the tile map engine.

    Components log event-style keys (``store.retry``, ``object.upserted``)
    with keyword context; ``json_output=False`` renders them for a terminal.
    """
    logging.basicConfig(format="%(message)s", level=log_level.upper())

    renderer = JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            add_log_level,
            add_logger_name,
            TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_from(config: Optional["TilemapConfig"] = None):
    """Apply the logging settings of a TilemapConfig (the global one by default)."""
    if config is None:
        from .config import config
    configure_logging(config.log_level, json_output=config.log_json)


def get_logger(name: str, **initial_values):
    """Get a structured logger instance, optionally with bound context."""
    return structlog.get_logger(name, **initial_values)
