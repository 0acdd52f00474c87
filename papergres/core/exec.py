"""
The single instrumentation point every statement runs through.

exec_command creates the Result, times the command, captures its failure
onto Result.err and reports the execution to the query logger.
"""

import time
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Callable

from papergres.core.result import Result
from papergres.db.protocol import StatementOutcome

if TYPE_CHECKING:
    from papergres.core.query import Query

# Column the generated INSERT aliases its RETURNING value to (folded to lower case)
LAST_INSERT_ID_COLUMN = "lastinsertid"
ROWS_AFFECTED_COLUMN = "rowsaffected"


def exec_command(
    query: "Query",
    cmd: Callable[[Result], None],
    **log_context: Any,
) -> Result:
    """
    Run cmd against a fresh Result and log the execution.

    Args:
        query: Query being executed (logged with the result)
        cmd: Fills in the Result; any exception it raises becomes Result.err
        **log_context: Extra fields for the log event (e.g. repeat_index)

    Returns:
        The Result, with execution_time always set
    """
    result = Result()
    start = time.perf_counter()
    try:
        cmd(result)
    except Exception as e:
        result.err = e
    finally:
        result.execution_time = timedelta(seconds=time.perf_counter() - start)
        database = query.database
        database.log.query_executed(
            query.sql,
            query.args,
            database.pretty_connection,
            result,
            **log_context,
        )
    return result


def set_insert_meta(result: Result, outcome: StatementOutcome) -> None:
    """
    Copy insert metadata from a single-row outcome into result.

    The generated id comes from the LastInsertId column. The row count comes
    from a RowsAffected column when the statement returns one, else from the
    driver's count.
    """
    row = {key.lower(): value for key, value in outcome.rows[0].items()} if outcome.rows else {}
    rows_affected = row.get(ROWS_AFFECTED_COLUMN, outcome.rows_affected)
    result.set_meta(row.get(LAST_INSERT_ID_COLUMN), rows_affected)
