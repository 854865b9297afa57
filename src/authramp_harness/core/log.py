"""
AuthRamp Harness Logging

structlog configuration used by the command line entry point.
Library code only calls ``structlog.get_logger()``.
"""

from __future__ import annotations

import logging
import sys

import structlog


def configure_logging(verbose: bool = False, json: bool = False) -> None:
    """
    Configure structlog for a harness run.

    Args:
        verbose: Emit debug events (default: warnings and above)
        json: Render events as JSON lines instead of console output
    """
    level = logging.DEBUG if verbose else logging.WARNING

    renderer = (
        structlog.processors.JSONRenderer()
        if json
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
