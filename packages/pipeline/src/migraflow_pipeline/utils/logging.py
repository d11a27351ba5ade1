"""
utils/logging.py — structlog setup for hosts embedding migraflow.

migraflow is a library called from a dashboard backend's request handlers;
it only emits events and never configures logging itself. The host calls
configure_logging() once at startup (before building a
MigrationQueryPipeline); without it structlog's defaults print to stdout.

Every load_chart_data() call binds its request token with
request_context(), so the sub-query, merge and aggregate events of one
chart request can be told apart from a superseded one.

Usage (host startup):
    from migraflow_pipeline.utils.logging import configure_logging

    configure_logging()                      # level/format from settings
    configure_logging("DEBUG", "console")    # local development

Usage (library modules):
    log = get_logger(__name__, pipeline="migration_query")
    log.info("query_start", scale="province", sub_queries=2)
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog

from migraflow_shared.config import settings


def configure_logging(
    log_level: str | None = None,
    log_format: str | None = None,
) -> None:
    """
    Route migraflow's structlog events through the stdlib root logger.

    Args:
        log_level:  Override settings.log_level ("DEBUG", "INFO", …).
        log_format: Override settings.log_format ("json" | "console").
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    fmt = log_format or settings.log_format

    # No-op when the host already installed root handlers
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    if fmt == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@contextmanager
def request_context(**values: Any) -> Iterator[None]:
    """
    Attach values to every event logged inside the block.

    Tasks spawned inside (the yearly sub-queries) inherit the values.
    """
    with structlog.contextvars.bound_contextvars(**values):
        yield


def get_logger(name: str, **initial_values: Any) -> structlog.BoundLogger:
    """
    Return a structlog logger, optionally bound to initial context values.
    """
    logger = structlog.get_logger(name)
    if initial_values:
        logger = logger.bind(**initial_values)
    return logger  # type: ignore[return-value]
