"""
Structured logging for papergres.

Everything is logged through structlog on top of stdlib logging, so
papergres events and the SQLAlchemy / psycopg loggers share one handler.
"""

import logging
import sys
from typing import Any, Sequence, TextIO

import structlog

# Library loggers that are noisy below WARNING (pool checkouts, every statement)
_LIBRARY_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "psycopg")


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    include_timestamp: bool = True,
    stream: TextIO | None = None,
) -> None:
    """
    Configure structured logging for papergres.

    Query events are logged at DEBUG, so level="DEBUG" shows every statement
    with its arguments and timing.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Render one JSON object per line instead of console output
        include_timestamp: Prefix events with an ISO timestamp
        stream: Output stream (defaults to stderr)

    Raises:
        ValueError: If level is not a known level name
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    stream = stream if stream is not None else sys.stderr
    logging.basicConfig(format="%(message)s", stream=stream, level=numeric_level, force=True)
    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    if json_output:
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=stream.isatty())

    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.format_exc_info,
        renderer,
    ]
    if include_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso", utc=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def render_args(args: Sequence[Any]) -> dict[str, str]:
    """Render positional arguments as {"$1": repr, ...} for log output."""
    return {f"${i}": repr(a) for i, a in enumerate(args, start=1)}


class QueryLogger:
    """
    Logger for query execution events.

    Every executed statement is reported once through query_executed.

    Usage:
        log = QueryLogger().bind(app="billing")
        log.query_executed(sql, args, connection, result, repeat_index="3/10")
    """

    def __init__(self, logger: Any | None = None):
        """
        Initialize the query logger.

        Args:
            logger: structlog-compatible logger; defaults to the "papergres" logger
        """
        self._logger = logger if logger is not None else structlog.get_logger("papergres")

    def bind(self, **kwargs: Any) -> "QueryLogger":
        """Bind additional context to the logger."""
        self._logger = self._logger.bind(**kwargs)
        return self

    def query_executed(
        self,
        sql: str,
        args: Sequence[Any],
        connection: str,
        result: Any,
        **kwargs: Any,
    ) -> None:
        """Log one executed statement and its result."""
        self._logger.debug(
            "query_executed",
            sql=sql,
            args=render_args(args),
            connection=connection,
            last_insert_id=_value_or_error(result.last_insert_id.id, result.last_insert_id.err),
            rows_affected=_value_or_error(result.rows_affected.count, result.rows_affected.err),
            rows_returned=result.rows_returned,
            elapsed_ms=round(result.execution_time.total_seconds() * 1000, 3),
            error=str(result.err) if result.err is not None else None,
            **kwargs,
        )

    def repeat_started(self, sql: str, iterations: int, concurrency: int, **kwargs: Any) -> None:
        """Log the start of a Repeat run."""
        self._logger.debug(
            "repeat_started",
            sql=sql,
            iterations=iterations,
            concurrency=concurrency,
            **kwargs,
        )

    def repeat_completed(
        self,
        iterations: int,
        failures: int,
        elapsed_seconds: float,
        **kwargs: Any,
    ) -> None:
        """Log the end of a Repeat run."""
        log = self._logger.warning if failures else self._logger.debug
        log(
            "repeat_completed",
            iterations=iterations,
            failures=failures,
            elapsed_seconds=round(elapsed_seconds, 3),
            **kwargs,
        )

    def prepare_failed(self, sql: str, error: BaseException, **kwargs: Any) -> None:
        """Log a statement that could not be prepared."""
        self._logger.error("prepare_failed", sql=sql, error=str(error), **kwargs)

    def connection_opened(self, connection: str, **kwargs: Any) -> None:
        """Log creation of a pooled connection."""
        self._logger.info("connection_opened", connection=connection, **kwargs)

    def connection_closed(self, connection: str, **kwargs: Any) -> None:
        """Log disposal of a pooled connection."""
        self._logger.info("connection_closed", connection=connection, **kwargs)


def _value_or_error(value: Any, err: BaseException | None) -> str:
    if err is not None:
        return str(err)
    return str(value)
