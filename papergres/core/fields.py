"""
Field introspection for records.

A record is a dataclass or a pydantic model. Column overrides and the
primary-key marker are declared on the field itself:

    @dataclass
    class Book:
        book_id: int | None = column("book_id", primary_key=True, default=None)
        title: str = ""
        created_by: str = column("created_by", default="")

    class Book(BaseModel):
        book_id: int | None = Field(None, json_schema_extra={"db": "book_id", "db_pk": True})
        title: str
"""

import dataclasses
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from papergres.core.errors import InvalidRecordShapeError

# Field metadata keys
COLUMN_KEY = "db"
PRIMARY_KEY = "db_pk"


@dataclass(frozen=True)
class Field:
    """A single record field, representing one column."""

    name: str
    declared_type: str
    value: Any = None
    tag: str | None = None
    is_primary: bool = False


def column(
    name: str | None = None,
    *,
    primary_key: bool = False,
    **kwargs: Any,
) -> Any:
    """
    Declare a dataclass field with an explicit column name and/or primary key flag.

    Args:
        name: Column name override (None derives it from the field name)
        primary_key: Mark the field as the record's primary key
        **kwargs: Passed through to dataclasses.field (default, default_factory, ...)

    Returns:
        A dataclasses.Field carrying the column metadata
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[COLUMN_KEY] = name
    metadata[PRIMARY_KEY] = primary_key
    return dataclasses.field(metadata=metadata, **kwargs)


def is_record(value: Any) -> bool:
    """True for dataclass or pydantic model instances and classes."""
    if isinstance(value, BaseModel):
        return True
    if isinstance(value, type) and issubclass(value, BaseModel):
        return True
    return dataclasses.is_dataclass(value)


def type_name(value: Any) -> str:
    """Get the type name of a record instance or record class."""
    if isinstance(value, type):
        return value.__name__
    return type(value).__name__


def fields(record: Any) -> list[Field]:
    """
    Return a record's fields and their values in declaration order.

    Classes are accepted too; their fields carry no values.

    Args:
        record: Dataclass or pydantic model instance (or class)

    Returns:
        Ordered list of Field descriptors

    Raises:
        InvalidRecordShapeError: If record is not a dataclass or pydantic model,
            or marks more than one field as primary
    """
    if not is_record(record):
        raise InvalidRecordShapeError(
            f"cannot introspect {type_name(record)!r}: "
            "expected a dataclass or pydantic model"
        )

    is_instance = not isinstance(record, type)
    if dataclasses.is_dataclass(record):
        result = [
            Field(
                name=f.name,
                declared_type=_type_label(f.type),
                value=getattr(record, f.name) if is_instance else None,
                tag=f.metadata.get(COLUMN_KEY) or None,
                is_primary=bool(f.metadata.get(PRIMARY_KEY, False)),
            )
            for f in dataclasses.fields(record)
        ]
    else:
        model = record if not is_instance else type(record)
        result = []
        for name, info in model.model_fields.items():
            extra = info.json_schema_extra if isinstance(info.json_schema_extra, dict) else {}
            result.append(
                Field(
                    name=name,
                    declared_type=_type_label(info.annotation),
                    value=getattr(record, name) if is_instance else None,
                    tag=extra.get(COLUMN_KEY) or None,
                    is_primary=bool(extra.get(PRIMARY_KEY, False)),
                )
            )

    primaries = [f.name for f in result if f.is_primary]
    if len(primaries) > 1:
        raise InvalidRecordShapeError(
            f"{type_name(record)} marks more than one primary key: {', '.join(primaries)}"
        )
    return result


def as_record_list(value: Any) -> list[Any]:
    """
    Convert a list or tuple of records into a list.

    Raises:
        InvalidRecordShapeError: If value is not a list or tuple
    """
    if not isinstance(value, (list, tuple)):
        raise InvalidRecordShapeError(
            f"value is not a list of records: got {type_name(value)}"
        )
    return list(value)


def to_sql_name(name: str) -> str:
    """
    Convert a mixed-case name to lower case with underscores.

    Each upper-case character starts a new segment:
    TransactionSource -> transaction_source, ID -> i_d.
    """
    out: list[str] = []
    for c in name:
        if c.isupper() and out:
            out.append("_")
        out.append(c.lower())
    return "".join(out)


def column_name(field: Field) -> str:
    """
    Return a field's column name.

    The explicit tag wins; otherwise the name is derived from the field name.
    """
    if field.tag:
        return field.tag
    return to_sql_name(field.name)


def _type_label(annotation: Any) -> str:
    if isinstance(annotation, str):
        return annotation
    name = getattr(annotation, "__name__", None)
    if name and not getattr(annotation, "__args__", None):
        return name
    return str(annotation)
