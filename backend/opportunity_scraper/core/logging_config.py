"""structlog configuration shared by the CLI and the scheduler."""

import logging
import sys

import structlog


def configure_logging(debug: bool = False, json_logs: bool = False) -> None:
    """Configure structlog and route stdlib logging through the same level.

    Args:
        debug: Emit DEBUG events instead of filtering at INFO
        json_logs: Render JSON lines (production) instead of console output
    """
    level = logging.DEBUG if debug else logging.INFO

    # APScheduler and SQLAlchemy log through the stdlib
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if json_logs:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
