"""
Database module for papergres.

Provides:
- Driver protocols the execution engine depends on
- psycopg3 driver over a pooled SQLAlchemy engine
- Connection registry keyed by connection string
"""

from papergres.db.connection import (
    PsycopgDriver,
    create_engine_for_connection,
    prettify_dsn,
    to_pyformat,
)
from papergres.db.protocol import Driver, Executor, PreparedStatement, StatementOutcome
from papergres.db.registry import ConnectionRegistry

__all__ = [
    "ConnectionRegistry",
    "Driver",
    "Executor",
    "PreparedStatement",
    "PsycopgDriver",
    "StatementOutcome",
    "create_engine_for_connection",
    "prettify_dsn",
    "to_pyformat",
]
