"""
Concurrent execution of one statement across many argument sets.

The statement is prepared once and shared by every iteration. Iterations run
on a thread pool no wider than the driver's connection pool, so a large
batch queues for connections instead of exhausting the server's client limit.
"""

import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Sequence

from papergres.core.binding import bind_many
from papergres.core.errors import (
    IterationCancelledError,
    IterationFailedError,
    PrepareFailedError,
    RepeatError,
    merge_errors,
)
from papergres.core.exec import exec_command, set_insert_meta
from papergres.core.result import Result
from papergres.db.protocol import PreparedStatement

if TYPE_CHECKING:
    from papergres.core.query import Query


# Maps an iteration index to (destination, arguments) for that iteration
ParamsFn = Callable[[int], tuple[Any, Sequence[Any]]]


@dataclass
class Repeat:
    """A query, its per-iteration parameter function and the iteration count."""

    query: "Query"
    params_fn: ParamsFn
    n: int

    def exec(
        self,
        timeout: float | None = None,
    ) -> tuple[list[Result], RepeatError | None]:
        """
        Prepare the statement once and run all iterations concurrently.

        results[i] always belongs to iteration i. An iteration failure is
        stored on its Result (wrapped in IterationFailedError) and does not
        stop the others; all failures are merged into the returned error.

        Args:
            timeout: Seconds to wait for the batch. Iterations that have not
                started by then are cancelled; running ones finish. Defaults
                to execution.repeat_timeout_seconds.

        Returns:
            (results in iteration order, merged error or None)

        Raises:
            PrepareFailedError: If the statement cannot be prepared; no iteration runs
            ValueError: If n is negative
        """
        if self.n < 0:
            raise ValueError(f"iteration count must not be negative: {self.n}")
        if self.n == 0:
            return [], None

        database = self.query.database
        if timeout is None:
            timeout = database.execution.repeat_timeout_seconds

        driver = database.driver()
        try:
            stmt = driver.prepare(self.query.sql)
        except Exception as e:
            database.log.prepare_failed(self.query.sql, e)
            raise PrepareFailedError(self.query.sql, e) from e

        concurrency = min(self.n, database.execution.max_concurrency or driver.capacity)
        results: list[Result | None] = [None] * self.n
        start = time.perf_counter()
        database.log.repeat_started(self.query.sql, self.n, concurrency)

        try:
            with ThreadPoolExecutor(
                max_workers=concurrency,
                thread_name_prefix="papergres-repeat",
            ) as pool:
                futures: dict[Future, int] = {
                    pool.submit(self._run_iteration, stmt, i): i for i in range(self.n)
                }
                _, pending = wait(futures, timeout=timeout)
                for future in pending:
                    if future.cancel():
                        i = futures[future]
                        results[i] = Result(
                            err=IterationCancelledError(i, self.n, timeout)
                        )

            for future, i in futures.items():
                if results[i] is None:
                    results[i] = future.result()
        finally:
            stmt.close()

        final: list[Result] = [r for r in results if r is not None]
        error = merge_errors([r.err for r in final])
        database.log.repeat_completed(
            iterations=self.n,
            failures=len(error.errors) if error else 0,
            elapsed_seconds=time.perf_counter() - start,
        )
        return final, error

    def _run_iteration(self, stmt: PreparedStatement, i: int) -> Result:
        try:
            dest, args = self.params_fn(i)
            # A new query per iteration since the args change
            query = self.query.with_args(args)
        except Exception as e:
            return Result(err=IterationFailedError(i, self.n, e))

        def cmd(result: Result) -> None:
            if query.is_insert:
                outcome = stmt.query_one(query.args)
                set_insert_meta(result, outcome)
            else:
                outcome = stmt.query_many(query.args)
                result.rows_returned = bind_many(dest, outcome.rows)

        result = exec_command(query, cmd, repeat_index=f"{i + 1}/{self.n}")
        if result.err is not None:
            result.err = IterationFailedError(i, self.n, result.err)
        return result
