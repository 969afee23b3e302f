"""Structured logging setup.

Every rignet module obtains its logger with ``structlog.get_logger(__name__)``;
nothing is emitted until :func:`setup` routes structlog through the standard
library handlers. Operator-facing output (prompts, bring-up progress, reply
dumps) is printed directly and does not go through here.
"""

from __future__ import annotations

import logging
import sys

import structlog


def setup(log_level: str = "WARNING", stream=None, json: bool = False) -> None:
    """Configure structured logging.

    The log-level names are the standard library ones. The debug level
    carries the trace notes: bring-up steps, unknown message ids, request id
    mismatches.
    """

    level = getattr(logging, str(log_level).upper(), None)
    if not isinstance(level, int):
        raise ValueError("unknown log level: %r" % (log_level,))

    if stream is None:
        stream = sys.stderr

    logging.basicConfig(format="%(message)s", stream=stream, level=level, force=True)

    if json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
