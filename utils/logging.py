# utils/logging.py

"""Logging helpers for the QuantumGuard demo.

Each key exchange attempt runs in its own task and binds ``attempt`` and
``prompt_chars`` through ``structlog.contextvars``; the processor chain below
merges those fields into every record the attempt emits, including the
listener and client logs triggered from inside it.
"""

from __future__ import annotations

import logging
import logging.handlers
import os

import structlog
from rich.logging import RichHandler

from config import settings

logger = structlog.get_logger(__name__)

__all__ = ["ATTEMPT_CONTEXT_KEYS", "setup_logging", "tag_attempt_context"]

# Fields RequestController binds per attempt.
ATTEMPT_CONTEXT_KEYS = ("attempt", "prompt_chars")


def tag_attempt_context(_logger, _method_name, event_dict):
    """Append bound attempt fields to the message so stdlib handlers show them."""
    fields = [f"{key}={event_dict[key]}" for key in ATTEMPT_CONTEXT_KEYS if key in event_dict]
    if fields:
        event_dict["event"] = f"{event_dict.get('event', '')} [{' '.join(fields)}]"
    return event_dict


SHARED_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    tag_attempt_context,
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
    structlog.stdlib.render_to_log_kwargs,
]


def _file_handler(path: str) -> logging.Handler:
    log_dir = os.path.dirname(path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
    )
    handler.setFormatter(
        logging.Formatter(settings.LOG_FORMAT, datefmt=settings.LOG_DATE_FORMAT)
    )
    return handler


def _console_handler() -> logging.Handler:
    if settings.ENABLE_RICH_PROGRESS:
        # markup off: service text may contain brackets Rich would interpret
        return RichHandler(
            level=settings.LOG_LEVEL_STR,
            rich_tracebacks=True,
            show_path=False,
            markup=False,
        )
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(settings.LOG_FORMAT, datefmt=settings.LOG_DATE_FORMAT)
    )
    return handler


def setup_logging() -> None:
    """Route structlog through stdlib logging with per-attempt context."""
    structlog.configure(
        processors=SHARED_PROCESSORS,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(settings.LOG_LEVEL_STR)

    if settings.LOG_FILE:
        try:
            root_logger.addHandler(_file_handler(settings.LOG_FILE))
        except OSError as e:  # pragma: no cover - path issues
            logger.error("Error setting up file logger: %s", e)
    root_logger.addHandler(_console_handler())

    # Transport chatter would drown the key exchange narrative.
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger.info(
        "QuantumGuard logging ready.",
        log_level=settings.LOG_LEVEL_STR,
        model=settings.GENERATION_MODEL,
        log_file=settings.LOG_FILE,
    )
