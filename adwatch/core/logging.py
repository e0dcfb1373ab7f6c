"""structlog configuration shared by the service and the CLI."""

import logging
import sys
from typing import Optional, TextIO

import structlog


def configure_logging(level: str = "INFO", json_output: bool = False, stream: Optional[TextIO] = None) -> None:
    """Configure stdlib logging and structlog with one set of processors.

    Args:
        level: Log level name (e.g. "INFO", "DEBUG")
        json_output: Render JSON lines instead of the coloured console format
        stream: Output stream, stdout by default
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    stream = stream or sys.stdout

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=stream,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if json_output:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )
