"""structlog setup for report queries and the request-scoped context they bind.

Every API method binds its report name and coordinates through
:func:`request_context`, so gateway and filter events below it carry them
without passing loggers around.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from structlog.types import Processor

LOG_LEVELS: dict[str, int] = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

# requests logs one line per connection through urllib3 at debug level.
QUIET_LOGGERS = ("urllib3",)


def _level_value(level: str) -> int:
    try:
        return LOG_LEVELS[level.lower()]
    except KeyError:
        valid = ", ".join(sorted(LOG_LEVELS))
        raise ValueError(f"Unsupported log level {level!r}. Choose one of: {valid}.") from None


def build_processors(*, json_output: bool = False) -> list[Processor]:
    """Return the processor chain: request context, module name, timestamp, renderer.

    Reports go to stdout, so log lines always render to stderr; the console
    renderer only colours them when stderr is a terminal.
    """
    renderer: Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        renderer,
    ]


def configure_logging(level: str = "info", *, json_output: bool = False) -> None:
    """Route structlog events for ``level`` and above to stderr.

    Raises ``ValueError`` for a level name outside :data:`LOG_LEVELS`.
    """
    level_value = _level_value(level)
    logging.basicConfig(level=level_value, format="%(message)s", stream=sys.stderr)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level_value, logging.WARNING))

    structlog.configure(
        processors=build_processors(json_output=json_output),
        wrapper_class=structlog.make_filtering_bound_logger(level_value),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@contextmanager
def request_context(**values: object) -> Iterator[None]:
    """Attach report request coordinates to every log line emitted inside the block."""
    with structlog.contextvars.bound_contextvars(**values):
        yield


__all__ = ["LOG_LEVELS", "build_processors", "configure_logging", "request_context"]
