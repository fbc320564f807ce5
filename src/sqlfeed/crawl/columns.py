"""Recognized result columns and case-insensitive column lookup."""

from enum import Enum
from typing import Any, Mapping, Optional, Sequence


class SpecialColumn(str, Enum):
    """Columns with a fixed meaning when present in an ACL or update query."""

    PERMIT_USERS = "FEED_PERMIT_USERS"
    DENY_USERS = "FEED_DENY_USERS"
    PERMIT_GROUPS = "FEED_PERMIT_GROUPS"
    DENY_GROUPS = "FEED_DENY_GROUPS"
    TIMESTAMP = "FEED_TIMESTAMP"

    def __str__(self) -> str:
        return self.value


_MISSING = object()


def find_column(columns: Sequence[str], name: str) -> Optional[str]:
    """Return the spelling of `name` used in `columns`, ignoring case."""
    if name in columns:
        return name
    wanted = name.lower()
    for column in columns:
        if column.lower() == wanted:
            return column
    return None


def get_column_value(row: Mapping[str, Any], name: str, default: Any = _MISSING) -> Any:
    """Read a column from a row mapping, ignoring case.

    Raises KeyError when the column is absent and no default is given.
    """
    if name in row:
        return row[name]
    column = find_column(list(row.keys()), name)
    if column is not None:
        return row[column]
    if default is _MISSING:
        raise KeyError(name)
    return default
