"""structlog configuration for FindDocs.

One processor chain (context vars, level, stack info, ISO timestamps) ends
in one of two renderers:

- console -- coloured key/value lines when stderr is a terminal
- JSON    -- one object per line, picked when ``APP_ENV=production`` or
  ``json_output=True``

Everything goes to **stderr**; stdout belongs to CLI answers and batch
reports.  Stdlib loggers (httpx, aiosqlite) are bridged through the same
chain, and the chattiest of them are capped at WARNING because the poll
loop would otherwise log one request line every few seconds.
"""

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.types import Processor

# Libraries that log every request or statement at INFO/DEBUG.
QUIET_LIBRARIES: tuple[str, ...] = ("httpx", "httpcore", "aiosqlite")


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def _select_renderer(json_output: bool) -> Processor:
    if json_output or os.environ.get("APP_ENV", "development") == "production":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> structlog.BoundLogger:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Level name (DEBUG, INFO, WARNING, ERROR).
        json_output: Force the JSON renderer regardless of ``APP_ENV``.

    Returns:
        The root structlog logger.
    """
    level = logging.getLevelName(log_level.upper())
    processors = _shared_processors()
    renderer = _select_renderer(json_output)

    structlog.configure(
        processors=[*processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    stdlib_handler = logging.StreamHandler(sys.stderr)
    stdlib_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *processors,
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(stdlib_handler)
    root.setLevel(level)

    for name in QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a structlog logger bound to *name*, configuring defaults on first use."""
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(logger_name=name)


@contextmanager
def log_context(**values: Any) -> Iterator[None]:
    """Bind *values* to every log line emitted inside the block.

    The CLI wraps each command in ``log_context(command="directory")`` so
    events from the runner, the stores and the providers can be traced back
    to the invocation that caused them.
    """
    with structlog.contextvars.bound_contextvars(**values):
        yield
