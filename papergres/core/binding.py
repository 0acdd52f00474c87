"""
Binding fetched rows into caller-supplied destinations.

Destinations:
- None: rows are discarded
- dict: updated in place with the (single) row
- record instance: attributes set from matching columns
- RecordList(record_type): rows built into record instances
- any other mutable sequence: row dicts appended

Columns are matched case-insensitively, since PostgreSQL folds unquoted
names and aliases to lower case.
"""

from collections.abc import MutableSequence
from functools import lru_cache
from typing import Any, Iterable, Mapping

from papergres.core.errors import InvalidRecordShapeError
from papergres.core.fields import column_name, fields, is_record, type_name


class RecordList(list):
    """
    List that builds record_type instances from fetched rows.

    Usage:
        books = RecordList(Book)
        db.query("SELECT * FROM paper.book").exec_all(books)
    """

    def __init__(self, record_type: type, iterable: Iterable[Any] = ()):
        if not is_record(record_type):
            raise InvalidRecordShapeError(
                f"{type_name(record_type)} is not a dataclass or pydantic model"
            )
        super().__init__(iterable)
        self.record_type = record_type


@lru_cache(maxsize=256)
def _column_map(record_type: type) -> dict[str, str]:
    """Map lower-cased column names (and field names) to attribute names."""
    mapping: dict[str, str] = {}
    for f in fields(record_type):
        mapping[f.name.lower()] = f.name
        mapping[column_name(f).lower()] = f.name
    return mapping


def build_record(record_type: type, row: Mapping[str, Any]) -> Any:
    """Construct a record from a row; columns without a matching field are ignored."""
    columns = _column_map(record_type)
    kwargs = {
        columns[key.lower()]: value
        for key, value in row.items()
        if key.lower() in columns
    }
    return record_type(**kwargs)


def bind_one(dest: Any, row: Mapping[str, Any]) -> None:
    """
    Bind a single row into dest.

    Raises:
        InvalidRecordShapeError: If dest is not a supported destination
    """
    if dest is None:
        return
    if isinstance(dest, RecordList):
        dest.append(build_record(dest.record_type, row))
    elif isinstance(dest, dict):
        dest.update(row)
    elif isinstance(dest, MutableSequence):
        dest.append(dict(row))
    elif is_record(dest) and not isinstance(dest, type):
        columns = _column_map(type(dest))
        for key, value in row.items():
            attr = columns.get(key.lower())
            if attr is not None:
                setattr(dest, attr, value)
    else:
        raise InvalidRecordShapeError(
            f"cannot bind a row into {type_name(dest)}"
        )


def bind_many(dest: Any, rows: Iterable[Mapping[str, Any]]) -> int:
    """
    Bind all rows into dest.

    A destination that is not a list is rejected rather than counted as
    zero rows, so a wrong destination never passes silently.

    Returns:
        len(dest) after binding, or 0 when dest is None

    Raises:
        InvalidRecordShapeError: If dest is not a list-like destination
    """
    if dest is None:
        return 0
    if isinstance(dest, RecordList):
        dest.extend(build_record(dest.record_type, row) for row in rows)
    elif isinstance(dest, MutableSequence):
        dest.extend(dict(row) for row in rows)
    else:
        raise InvalidRecordShapeError(
            f"cannot bind rows into {type_name(dest)}: expected a list"
        )
    return len(dest)
