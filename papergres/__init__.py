"""
papergres: PostgreSQL data access helper.

Generates INSERT statements from records, runs queries into typed results
and executes one statement across many argument sets concurrently.
"""

__version__ = "0.1.0"

from papergres.core import (
    Database,
    EmptyBatchError,
    InvalidRecordShapeError,
    IterationFailedError,
    PapergresError,
    PrepareFailedError,
    Query,
    RecordList,
    RepeatError,
    Result,
    Schema,
    column,
    exec_non_query,
)

__all__ = [
    "__version__",
    "Database",
    "Schema",
    "Query",
    "Result",
    "RecordList",
    "column",
    "exec_non_query",
    "PapergresError",
    "PrepareFailedError",
    "IterationFailedError",
    "RepeatError",
    "InvalidRecordShapeError",
    "EmptyBatchError",
]
