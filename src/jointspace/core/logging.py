"""
Structured logging for jointspace.

All modules log through structlog (https://www.structlog.org/) with an event
name and keyword fields, for example ``building_planning_thread`` with the
problem index, ``ik_failed`` with the best error reached, or
``collision_query_without_checker`` when a collision manager has no engine.
Planning and path-processing workers run concurrently, so every line carries
the emitting thread name, and events logged inside a worker also carry the
``task`` bound by :func:`worker_context`.

Usage::

    from jointspace.core.logging import configure_logging, get_logger

    configure_logging(level="INFO")  # once, the CLI does this
    logger = get_logger(__name__)
    logger.info("planning_finished", planner="birrt_0", success=True, iterations=812, seconds=0.4)
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import structlog


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """
    Route structlog events and stdlib records through one formatter.

    Args:
        level: Minimum level name. Unknown names fall back to INFO.
        json_output: One JSON object per event, for batch planning runs whose
            output is post-processed. Otherwise colored console lines.
        log_file: Also append events to this file.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(format="%(message)s", level=log_level, handlers=handlers, force=True)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.CallsiteParameterAdder([structlog.processors.CallsiteParameter.THREAD_NAME]),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )
    for handler in logging.root.handlers:
        handler.setFormatter(formatter)


@contextmanager
def worker_context(**fields: Any) -> Iterator[None]:
    """
    Bind ``fields`` to every event logged by the current thread inside the
    block. Context variables do not leak between threads, so each worker
    binds its own.
    """
    with structlog.contextvars.bound_contextvars(**fields):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Logger for a module, usually called with ``__name__``."""
    return structlog.get_logger(name)
