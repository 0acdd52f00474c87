"""
Queries and their execution modes.

A Query is immutable once built; each execution mode runs it against the
owning Database's cached driver and returns a Result instead of raising.
"""

import dataclasses
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Sequence

from papergres.core.binding import bind_many, bind_one
from papergres.core.exec import exec_command, set_insert_meta
from papergres.core.repeat import ParamsFn, Repeat
from papergres.core.result import Result

if TYPE_CHECKING:
    from papergres.core.database import Database


# Quoted text is copied through; bare ? marks a bindvar
_BINDVAR = re.compile(r"""'(?:[^']|'')*'|"(?:[^"]|"")*"|\?""")

_IN_COLLECTIONS = (list, tuple, set, frozenset)

# Marks an exhausted argument iterator
_END = object()


@dataclass(frozen=True)
class Query:
    """SQL to execute, its arguments and the database to run it on."""

    sql: str
    database: "Database"
    args: tuple[Any, ...] = ()
    is_insert: bool = False

    def with_args(self, args: Sequence[Any]) -> "Query":
        """Same statement with different arguments."""
        return dataclasses.replace(self, args=tuple(args))

    def exec(self) -> Result:
        """
        Run a statement that returns no rows of its own.

        Insert queries read the generated id and row count from the
        statement's RETURNING row; other queries report the driver's
        best-effort row count.
        """
        if not self.is_insert:
            return self.exec_non_query()

        def insert(result: Result) -> None:
            outcome = self.database.driver().query_one(self.sql, self.args)
            set_insert_meta(result, outcome)

        return exec_command(self, insert)

    def exec_non_query(self) -> Result:
        """Run the SQL without looking for any results."""

        def non_query(result: Result) -> None:
            outcome = self.database.driver().execute_non_query(self.sql, self.args)
            result.set_meta(outcome.last_row_id, outcome.rows_affected)

        return exec_command(self, non_query)

    def exec_single(self, dest: Any) -> Result:
        """
        Fetch exactly one row into dest.

        Zero rows or more than one fail with NoRowsOrTooManyError on Result.err.
        """

        def single(result: Result) -> None:
            outcome = self.database.driver().query_one(self.sql, self.args)
            bind_one(dest, outcome.rows[0])
            result.rows_returned = 1

        return exec_command(self, single)

    def exec_all(self, dest: Any) -> Result:
        """Fetch all rows into dest, a list or RecordList."""

        def all_rows(result: Result) -> None:
            outcome = self.database.driver().query_many(self.sql, self.args)
            result.rows_returned = bind_many(dest, outcome.rows)

        return exec_command(self, all_rows)

    def exec_all_in(self, dest: Any) -> Result:
        """
        Fetch all rows for a query written with ? bindvars and IN lists.

        A list, tuple or set argument expands to one bindvar per element;
        the statement is then rebound to $n placeholders:

            db.query("SELECT * FROM paper.book WHERE book_id IN (?)", [1, 2, 3])
        """

        def all_in(result: Result) -> None:
            sql, args = expand_in(self.sql, self.args)
            outcome = self.database.driver().query_many(sql, args)
            result.rows_returned = bind_many(dest, outcome.rows)

        return exec_command(self, all_in)

    def repeat(self, times: int, params_fn: ParamsFn) -> Repeat:
        """
        Execute this query times times with per-iteration arguments.

        params_fn(i) returns (dest, args) for iteration i; dest receives the
        rows of that iteration. Iterations run concurrently, so params_fn
        must not depend on other iterations.

            def params(i):
                parent = parents[i]
                return parent.children, [parent.id]

            results, err = db.query(sql).repeat(len(parents), params).exec()
        """
        return Repeat(self, params_fn, times)

    def __str__(self) -> str:
        lines = ["Query:", self.sql]
        if self.args:
            lines.append("Args:")
            lines.extend(f"\t${i}: {a!r}" for i, a in enumerate(self.args, start=1))
        lines.append(f"Connection: {self.database.pretty_connection}")
        return "\n".join(lines)


def expand_in(sql: str, args: Sequence[Any]) -> tuple[str, list[Any]]:
    """
    Expand ? bindvars, spreading collection arguments, and rebind to $n.

    Raises:
        ValueError: If bindvars and arguments don't line up, or a collection is empty
    """
    remaining = iter(args)
    flat: list[Any] = []

    def next_placeholder(value: Any) -> str:
        flat.append(value)
        return f"${len(flat)}"

    def replace(match: re.Match) -> str:
        if match.group(0) != "?":
            return match.group(0)
        try:
            arg = next(remaining)
        except StopIteration:
            raise ValueError("more bindvars than arguments") from None
        if isinstance(arg, _IN_COLLECTIONS):
            values = list(arg)
            if not values:
                raise ValueError("empty collection passed to an IN query")
            return ", ".join(next_placeholder(v) for v in values)
        return next_placeholder(arg)

    rebound = _BINDVAR.sub(replace, sql)
    if next(remaining, _END) is not _END:
        raise ValueError("more arguments than bindvars")
    return rebound, flat

