"""
INSERT statement generation from records.

Table name is derived from the record's type name, columns from its fields.
Placeholders are 1-based PostgreSQL positional parameters ($1, $2, ...) and
the argument list always follows the column order.
"""

from typing import Any

from papergres.core.errors import InvalidRecordShapeError
from papergres.core.fields import Field, column_name, fields, to_sql_name, type_name


def prepare_fields(record: Any, with_pk: bool) -> tuple[list[Field], Field]:
    """
    Select the fields that go into an INSERT.

    Args:
        record: Record instance
        with_pk: Include the primary key field

    Returns:
        (fields to insert in declaration order, primary key field)

    Raises:
        InvalidRecordShapeError: If the record declares no primary key
    """
    selected: list[Field] = []
    primary: Field | None = None
    for f in fields(record):
        if f.is_primary:
            primary = f
            if not with_pk:
                continue
        selected.append(f)

    if primary is None:
        raise InvalidRecordShapeError(
            f"{type_name(record)} declares no primary key column"
        )
    return selected, primary


def table_name(record: Any, schema: str) -> str:
    """Return the schema-qualified table name for a record."""
    return f"{schema}.{to_sql_name(type_name(record))}"


def build_insert(record: Any, schema: str, with_pk: bool) -> tuple[str, list[Any]]:
    """
    Build the INSERT statement and its arguments from one introspection pass.

    Args:
        record: Record instance
        schema: Target schema name
        with_pk: Include the primary key column and value

    Returns:
        (sql, args)
    """
    selected, primary = prepare_fields(record, with_pk)
    table = table_name(record, schema)
    returning = f"RETURNING {column_name(primary)} as LastInsertId;"

    if not selected:
        return f"INSERT INTO {table} DEFAULT VALUES {returning}", []

    columns = ", ".join(column_name(f) for f in selected)
    placeholders = ", ".join(f"${i}" for i in range(1, len(selected) + 1))
    sql = f"INSERT INTO {table} ({columns}) VALUES ({placeholders}) {returning}"
    return sql, [f.value for f in selected]


def insert_sql(record: Any, schema: str, with_pk: bool) -> str:
    """Generate the INSERT statement for a record."""
    sql, _ = build_insert(record, schema, with_pk)
    return sql


def insert_args(record: Any, with_pk: bool) -> list[Any]:
    """Generate the INSERT argument list for a record, in column order."""
    selected, _ = prepare_fields(record, with_pk)
    return [f.value for f in selected]
