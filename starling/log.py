"""
Structured logging for starling.

All logging goes through structlog, routed into the standard library
`logging` tree under the "starling" logger. As a library, starling stays
silent until an application (or the CLI) calls setup_logging().
"""

import logging
import sys
from typing import Any, List, Optional, TextIO

import structlog

_PACKAGE_LOGGER = "starling"
_handler: Optional[logging.Handler] = None


def _shared_processors() -> List[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _stdlib_processors() -> List[Any]:
    return [*_shared_processors(), structlog.stdlib.ProcessorFormatter.wrap_for_formatter]


def _route_to_stdlib() -> None:
    structlog.configure(
        processors=_stdlib_processors(),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str, **initial_values: Any):
    """
    Get a lazily-bound structlog logger for one starling component.

    The logger carries its own processor chain and wraps the stdlib logger
    of the same name, so the process-wide structlog configuration is left
    to the application. Events end up under the "starling" logger, which
    discards them until setup_logging() installs a handler.
    """
    package_logger = logging.getLogger(_PACKAGE_LOGGER)
    if not any(isinstance(h, logging.NullHandler) for h in package_logger.handlers):
        package_logger.addHandler(logging.NullHandler())
    return structlog.wrap_logger(
        logging.getLogger(name),
        processors=_stdlib_processors(),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        cache_logger_on_first_use=True,
        **initial_values,
    )


def setup_logging(level: str = "WARNING", fmt: str = "console",
                  stream: Optional[TextIO] = None) -> None:
    """
    Send starling's log events to a stream (stderr by default).

    Args:
        level: Minimum level name, e.g. "DEBUG" or "WARNING".
        fmt: "console" for human-readable lines, "json" for one JSON
            object per line.
        stream: Where to write; defaults to sys.stderr.
    """
    global _handler

    _route_to_stdlib()

    renderer: Any
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    package_logger = logging.getLogger(_PACKAGE_LOGGER)
    if _handler is not None:
        package_logger.removeHandler(_handler)
    _handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    _handler.setFormatter(formatter)
    package_logger.addHandler(_handler)
    package_logger.setLevel(getattr(logging, level.upper(), logging.WARNING))
    package_logger.propagate = False
