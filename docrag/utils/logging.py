"""Structured logging setup using structlog.

One processor chain (context vars, log level, stack info, timestamps) feeds
either a coloured ConsoleRenderer for local runs or a JSONRenderer for
production workers, picked from ``APP_ENV`` or forced with ``json_output``.

Stdlib ``logging`` is routed through the same renderer so that the chatty
third-party libraries the pipeline pulls in (openai, httpx, chromadb,
sentence-transformers) print in the same format, capped at WARNING unless
the docrag level itself is DEBUG.

Background jobs bind ``job_id`` / ``job_type`` with :func:`job_context`;
every event logged while the handler runs carries them.
"""

import contextlib
import logging
import os
import sys
from collections.abc import Iterator
from typing import Any

import structlog

_NOISY_LIBRARIES = ("httpx", "openai", "chromadb", "sentence_transformers", "urllib3")


def _shared_processors() -> list[structlog.types.Processor]:
    # contextvars first so job bindings appear on every event.
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def _select_renderer(json_output: bool) -> structlog.types.Processor:
    if json_output or os.environ.get("APP_ENV", "development") == "production":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> structlog.BoundLogger:
    """Configure structlog and the stdlib bridge.

    Args:
        log_level: Level name for docrag loggers (DEBUG, INFO, WARNING, ERROR).
        json_output: Force JSON rendering regardless of ``APP_ENV``.

    Returns:
        A configured structlog BoundLogger.
    """
    level_name = log_level.upper()
    shared = _shared_processors()
    renderer = _select_renderer(json_output)

    structlog.configure(
        processors=[*shared, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level_name)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *shared,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level_name)

    library_level = level_name if level_name == "DEBUG" else "WARNING"
    for name in _NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(library_level)

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a named structlog logger, configuring defaults on first use.

    Args:
        name: Logger name, typically the module name.
    """
    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(logger_name=name)


@contextlib.contextmanager
def job_context(**bindings: Any) -> Iterator[None]:
    """Bind *bindings* (e.g. ``job_id``) to every event logged inside the block."""
    with structlog.contextvars.bound_contextvars(**bindings):
        yield
