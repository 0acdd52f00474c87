"""
Execution results.

A Result tolerates partial failure: the generated id and the affected-row
count each carry their own error, independent of the top-level error.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Union
from uuid import UUID

from papergres.core.errors import MissingMetadataError

# Supported primary key kinds
PrimaryKey = Union[int, str, UUID]

# Supported column value kinds for generated arguments
SqlValue = Union[
    None, bool, int, float, Decimal, str, bytes, date, datetime, timedelta, UUID,
    list, dict,
]

# DB-API reports an unknown row count as -1
_UNKNOWN_ROWCOUNT = -1


@dataclass
class LastInsertId:
    """Generated primary key of an executed statement."""

    id: PrimaryKey | None = None
    err: Exception | None = None


@dataclass
class RowsAffected:
    """Affected-row count of an executed statement."""

    count: int = 0
    err: Exception | None = None


@dataclass
class Result:
    """Outcome of one execution."""

    last_insert_id: LastInsertId = field(default_factory=LastInsertId)
    rows_affected: RowsAffected = field(default_factory=RowsAffected)
    rows_returned: int = 0
    execution_time: timedelta = timedelta(0)
    err: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.err is None

    def raise_for_error(self) -> "Result":
        """Raise the top-level error if there is one, else return self."""
        if self.err is not None:
            raise self.err
        return self

    def set_meta(self, last_insert_id: Any, rows_affected: int | None) -> None:
        """
        Populate insert metadata reported by the driver.

        A missing id is None; 0 is a valid id. A missing row count is None or
        the DB-API unknown marker (-1). Missing values are recorded as errors
        on the respective field.

        Args:
            last_insert_id: Generated id, or None
            rows_affected: Row count, or None / -1 when unknown
        """
        self.last_insert_id.id = last_insert_id
        if last_insert_id is None:
            self.last_insert_id.err = MissingMetadataError("no LastInsertId returned")

        if rows_affected is None or rows_affected == _UNKNOWN_ROWCOUNT:
            self.rows_affected.count = _UNKNOWN_ROWCOUNT
            self.rows_affected.err = MissingMetadataError("no RowsAffected returned")
        else:
            self.rows_affected.count = rows_affected

    def __str__(self) -> str:
        if self.last_insert_id.err is None:
            lid = str(self.last_insert_id.id)
        else:
            lid = str(self.last_insert_id.err)
        if self.rows_affected.err is None:
            ra = str(self.rows_affected.count)
        else:
            ra = str(self.rows_affected.err)

        return (
            f"LastInsertId:  {lid}\n"
            f"RowsAffected:  {ra}\n"
            f"RowsReturned:  {self.rows_returned}\n"
            f"ExecutionTime: {self.execution_time}\n"
            f"Error: {self.err}"
        )
