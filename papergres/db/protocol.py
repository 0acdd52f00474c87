"""
Protocol definitions for the database driver boundary.

The execution engine depends only on these contracts. PsycopgDriver is the
production implementation; tests substitute an in-memory driver.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence, runtime_checkable


@dataclass
class StatementOutcome:
    """What the driver reports for one executed statement."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    rows_affected: int | None = None
    last_row_id: Any = None


@runtime_checkable
class Executor(Protocol):
    """Operations shared by drivers and prepared statements."""

    def execute_non_query(self, sql: str, args: Sequence[Any]) -> StatementOutcome:
        """Execute without expecting a result set."""
        ...

    def query_one(self, sql: str, args: Sequence[Any]) -> StatementOutcome:
        """Execute and return exactly one row, else raise NoRowsOrTooManyError."""
        ...

    def query_many(self, sql: str, args: Sequence[Any]) -> StatementOutcome:
        """Execute and return all rows."""
        ...


@runtime_checkable
class PreparedStatement(Protocol):
    """A statement prepared once and executed with varying arguments."""

    sql: str

    def execute_non_query(self, args: Sequence[Any]) -> StatementOutcome:
        """Execute without expecting a result set."""
        ...

    def query_one(self, args: Sequence[Any]) -> StatementOutcome:
        """Execute and return exactly one row, else raise NoRowsOrTooManyError."""
        ...

    def query_many(self, args: Sequence[Any]) -> StatementOutcome:
        """Execute and return all rows."""
        ...

    def close(self) -> None:
        """Release the statement."""
        ...


@runtime_checkable
class Driver(Executor, Protocol):
    """A pooled connection to one database, safe for concurrent use."""

    @property
    def capacity(self) -> int:
        """Maximum number of connections the pool will hand out at once."""
        ...

    def prepare(self, sql: str) -> PreparedStatement:
        """Prepare a statement; raises the driver error on failure."""
        ...

    def ping(self) -> None:
        """Round-trip to the database; raises on failure."""
        ...

    def stats(self) -> dict[str, Any]:
        """Pool statistics."""
        ...

    def close(self) -> None:
        """Close every pooled connection."""
        ...
