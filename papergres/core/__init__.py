"""
Core query building and execution for papergres.

Provides:
- Record field introspection and INSERT generation
- Results with per-field metadata errors
- Query execution modes and the concurrent Repeat runner
- Database and Schema entry points
"""

from papergres.core.binding import RecordList
from papergres.core.database import Database, Schema, exec_non_query
from papergres.core.errors import (
    EmptyBatchError,
    InvalidRecordShapeError,
    IterationCancelledError,
    IterationFailedError,
    MissingMetadataError,
    NoRowsOrTooManyError,
    PapergresError,
    PrepareFailedError,
    RepeatError,
)
from papergres.core.fields import Field, column, fields, to_sql_name
from papergres.core.insert import insert_args, insert_sql
from papergres.core.query import Query
from papergres.core.repeat import Repeat
from papergres.core.result import LastInsertId, PrimaryKey, Result, RowsAffected

__all__ = [
    "Database",
    "Schema",
    "Query",
    "Repeat",
    "Result",
    "LastInsertId",
    "RowsAffected",
    "PrimaryKey",
    "RecordList",
    "Field",
    "column",
    "fields",
    "to_sql_name",
    "insert_sql",
    "insert_args",
    "exec_non_query",
    "PapergresError",
    "PrepareFailedError",
    "IterationFailedError",
    "IterationCancelledError",
    "RepeatError",
    "InvalidRecordShapeError",
    "EmptyBatchError",
    "MissingMetadataError",
    "NoRowsOrTooManyError",
]
