"""structlog setup for replay runs.

Every replay module logs through ``structlog.get_logger()``. The engine wraps
a run in ``LogContext`` so each event carries the run and recording ids, and
times its setup steps with ``log_operation``.
"""

import logging
import sys
import time
from contextlib import contextmanager
from typing import Optional

import structlog

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def configure_logging(
    level: str = "INFO",
    json_format: bool = False,
    include_timestamp: bool = True,
) -> None:
    """Route replay events through the stdlib root logger.

    Args:
        level: One of DEBUG, INFO, WARNING, ERROR, CRITICAL (any case)
        json_format: One JSON object per event, for log shippers
        include_timestamp: Stamp events with an ISO time

    Raises:
        ValueError: If the level is not a known level name
    """
    level = level.upper()
    if level not in LEVELS:
        raise ValueError(f"Unknown log level {level!r}, expected one of {', '.join(LEVELS)}")

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=getattr(logging, level))

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
    ]
    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    processors += [
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class LogContext:
    """Binds run-scoped keys to every event logged inside the block.

    Nested blocks restore the outer values on exit.

    Usage:
        with LogContext(run_id="run-123", recording_id="rec-1"):
            logger.info("Replaying")
    """

    def __init__(self, **context):
        self.context = context
        self._tokens = None

    def __enter__(self) -> "LogContext":
        self._tokens = structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._tokens:
            structlog.contextvars.reset_contextvars(**self._tokens)
            self._tokens = None


@contextmanager
def log_operation(
    operation: str,
    logger: Optional[structlog.BoundLogger] = None,
    **context,
):
    """Log the start and the outcome of a run setup step, with its duration.

    Yields a dict the caller may add fields to; they are logged on completion.
    Failures are logged and re-raised.

    Example:
        with log_operation("open_start_page", url=recording.url) as op:
            response = await page.goto(recording.url)
            op["status"] = response.status
    """
    log = (logger or structlog.get_logger()).bind(operation=operation, **context)
    log.info(f"{operation} started")
    result = {"success": False, "error": None}
    started = time.monotonic()

    try:
        yield result
    except Exception as e:
        result["error"] = str(e)
        log.error(
            f"{operation} failed",
            error_type=type(e).__name__,
            duration_ms=int((time.monotonic() - started) * 1000),
            **result,
        )
        raise

    result["success"] = True
    log.info(f"{operation} completed", duration_ms=int((time.monotonic() - started) * 1000), **result)
