"""
Database connection management for papergres.

Builds SQLAlchemy engines from configuration and wraps them in the psycopg3
driver the execution engine talks to. Statements run on raw psycopg cursors
checked out from the engine's pool.
"""

import re
from contextlib import contextmanager
from typing import Any, Iterator, Sequence
from uuid import uuid4

import structlog
from psycopg.conninfo import conninfo_to_dict
from psycopg.rows import dict_row
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from papergres.config.models import ConnectionConfig, ExecutionConfig
from papergres.core.errors import NoRowsOrTooManyError, PapergresError
from papergres.db.protocol import StatementOutcome

logger = structlog.get_logger()


# Quoted text and comments are copied through; $n placeholders are rewritten
_SQL_TOKEN = re.compile(
    r"""
    (?P<squote>'(?:[^']|'')*') |
    (?P<dquote>"(?:[^"]|"")*") |
    (?P<dollar_quoted>\$(?P<tag>[A-Za-z_]\w*|)\$[\s\S]*?\$(?P=tag)\$) |
    (?P<line_comment>--[^\r\n]*) |
    (?P<block_comment>/\*[\s\S]*?\*/) |
    (?P<numeric>\$(?P<num>\d+)) |
    (?P<percent>%)
    """,
    re.VERBOSE,
)


def to_pyformat(sql: str, args: Sequence[Any]) -> tuple[str, dict[str, Any]]:
    """
    Rewrite PostgreSQL $n placeholders to psycopg named pyformat.

    $1 becomes %(p1)s and every literal % is doubled, since psycopg scans the
    whole statement for % when parameters are passed.

    Args:
        sql: Statement with $1, $2, ... placeholders
        args: Positional arguments

    Returns:
        (rewritten sql, parameters keyed p1, p2, ...)

    Raises:
        ValueError: If a placeholder has no matching argument
    """
    params: dict[str, Any] = {}

    def replace(match: re.Match) -> str:
        if match.group("numeric") is not None:
            n = int(match.group("num"))
            if n < 1 or n > len(args):
                raise ValueError(
                    f"placeholder ${n} has no argument ({len(args)} given)"
                )
            params[f"p{n}"] = args[n - 1]
            return f"%(p{n})s"
        return match.group(0).replace("%", "%%")

    return _SQL_TOKEN.sub(replace, sql), params


def prettify_dsn(dsn: str) -> str:
    """
    Render a libpq connection string one sorted property per line.

    The password is redacted.
    """
    params = conninfo_to_dict(dsn)
    if "password" in params:
        params["password"] = "***"
    return "".join(f"\n\t{key}={value}" for key, value in sorted(params.items()))


def create_engine_for_connection(
    connection: ConnectionConfig,
    execution: ExecutionConfig,
) -> Engine:
    """
    Create SQLAlchemy engine for a connection.

    Every statement commits on its own (AUTOCOMMIT); papergres coordinates no
    transactions beyond what the server does per statement.

    Args:
        connection: Connection settings
        execution: Pool settings

    Returns:
        SQLAlchemy Engine instance
    """
    return create_engine(
        connection.sqlalchemy_url,
        pool_size=execution.pool_size,
        max_overflow=execution.max_overflow,
        pool_pre_ping=execution.pool_pre_ping,
        isolation_level="AUTOCOMMIT",
    )


class PsycopgDriver:
    """
    Pooled psycopg3 driver over a SQLAlchemy engine.

    Safe for concurrent use: each call checks out its own pooled connection.

    Usage:
        driver = PsycopgDriver.from_config(connection, execution)
        outcome = driver.query_many("SELECT * FROM paper.book WHERE author = $1", ["Andy Weir"])
    """

    def __init__(self, engine: Engine, capacity: int, dsn: str = ""):
        """
        Initialize PsycopgDriver.

        Args:
            engine: SQLAlchemy engine with a psycopg3 dialect
            capacity: Maximum concurrent connections the pool hands out
            dsn: Connection string this driver was opened for (for logging)
        """
        self.engine = engine
        self._capacity = capacity
        self.dsn = dsn

    @classmethod
    def from_config(
        cls,
        connection: ConnectionConfig,
        execution: ExecutionConfig,
    ) -> "PsycopgDriver":
        engine = create_engine_for_connection(connection, execution)
        return cls(engine, execution.pool_capacity, connection.dsn)

    @property
    def capacity(self) -> int:
        return self._capacity

    @contextmanager
    def _cursor(self) -> Iterator[Any]:
        with self.engine.connect() as conn:
            raw_conn = conn.connection.dbapi_connection
            with raw_conn.cursor(row_factory=dict_row) as cursor:
                yield cursor

    def run(
        self,
        sql: str,
        args: Sequence[Any],
        prepare: bool | None = None,
    ) -> StatementOutcome:
        """
        Execute one statement and collect whatever it reports.

        Args:
            sql: Statement with $n placeholders
            args: Positional arguments
            prepare: Force psycopg server-side preparation (None lets psycopg decide)

        Returns:
            StatementOutcome with rows (if any), row count and last row id
        """
        # Without parameters psycopg uses the simple protocol, which accepts
        # several statements and leaves % alone
        query, params = to_pyformat(sql, args) if args else (sql, None)
        with self._cursor() as cursor:
            cursor.execute(query, params, prepare=prepare)
            rows = cursor.fetchall() if cursor.description is not None else []
            return StatementOutcome(
                rows=list(rows),
                rows_affected=cursor.rowcount,
                last_row_id=getattr(cursor, "lastrowid", None),
            )

    def execute_non_query(self, sql: str, args: Sequence[Any]) -> StatementOutcome:
        outcome = self.run(sql, args)
        outcome.rows = []
        return outcome

    def query_one(self, sql: str, args: Sequence[Any]) -> StatementOutcome:
        return _exactly_one(self.run(sql, args))

    def query_many(self, sql: str, args: Sequence[Any]) -> StatementOutcome:
        return self.run(sql, args)

    def prepare(self, sql: str) -> "PsycopgStatement":
        """
        Prepare a statement.

        The SQL is validated server-side once with PREPARE/DEALLOCATE; each
        execution is then prepared by psycopg on the pooled connection it runs on.

        Raises:
            psycopg.Error: If the server rejects the statement
        """
        name = f"papergres_{uuid4().hex}"
        body = sql.strip().rstrip(";")
        with self._cursor() as cursor:
            cursor.execute(f"PREPARE {name} AS {body}")
            cursor.execute(f"DEALLOCATE {name}")
        return PsycopgStatement(self, sql)

    def ping(self) -> None:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def stats(self) -> dict[str, Any]:
        pool = self.engine.pool
        stats: dict[str, Any] = {"capacity": self._capacity, "status": pool.status()}
        for name in ("size", "checkedin", "checkedout", "overflow"):
            method = getattr(pool, name, None)
            if callable(method):
                stats[name] = method()
        return stats

    def close(self) -> None:
        self.engine.dispose()
        logger.debug("driver_closed", connection=prettify_dsn(self.dsn))


class PsycopgStatement:
    """A prepared statement bound to its SQL text."""

    def __init__(self, driver: PsycopgDriver, sql: str):
        self.sql = sql
        self._driver = driver
        self._closed = False

    def _run(self, args: Sequence[Any]) -> StatementOutcome:
        if self._closed:
            raise PapergresError("prepared statement is closed")
        return self._driver.run(self.sql, args, prepare=True)

    def execute_non_query(self, args: Sequence[Any]) -> StatementOutcome:
        outcome = self._run(args)
        outcome.rows = []
        return outcome

    def query_one(self, args: Sequence[Any]) -> StatementOutcome:
        return _exactly_one(self._run(args))

    def query_many(self, args: Sequence[Any]) -> StatementOutcome:
        return self._run(args)

    def close(self) -> None:
        self._closed = True


def _exactly_one(outcome: StatementOutcome) -> StatementOutcome:
    if len(outcome.rows) != 1:
        raise NoRowsOrTooManyError(len(outcome.rows))
    return outcome
