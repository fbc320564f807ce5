"""Document ids derived from the unique key columns of a row.

The key is configured as comma-separated `column:type` pairs, for example
`"dept:string, id:int"`. An id joins the key values with "/"; when encoding
is on, each value is percent-encoded first so that the id can be split back
into typed query parameters.
"""

import re
from datetime import date, datetime, time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import quote, unquote

from sqlfeed.config.configuration import ConfigurationError
from sqlfeed.crawl.columns import get_column_value

_FRACTION = re.compile(r"\.(\d+)")


def _normalize_iso(text: str) -> str:
    """Rewrite a trailing Z as +00:00 and pad or cut fractional seconds to 6 digits."""
    text = text.strip()
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    return _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)


def parse_iso_timestamp(text: str) -> datetime:
    """Parse an ISO 8601 timestamp as written by databases and drivers.

    Raises ValueError for text that is not a timestamp.
    """
    return datetime.fromisoformat(_normalize_iso(text))


def _parse_iso_time(text: str) -> time:
    return time.fromisoformat(_normalize_iso(text))


_CONVERTERS: Dict[str, Callable[[str], Any]] = {
    "int": int,
    "string": str,
    "timestamp": parse_iso_timestamp,
    "date": date.fromisoformat,
    "time": _parse_iso_time,
}


class RowMappingError(ValueError):
    """Raised when a row or a document id does not fit the unique key."""

    pass


def parse_key_spec(key_spec: str) -> List[Tuple[str, str]]:
    """
    Parse a unique key definition.

    Args:
        key_spec: Comma-separated `column:type` pairs.

    Returns:
        Ordered list of (column name, type name).

    Raises:
        ConfigurationError: If the definition is empty, malformed or repeats a column.
    """
    columns: List[Tuple[str, str]] = []
    for part in key_spec.split(","):
        part = part.strip()
        if not part:
            continue
        name, sep, type_name = part.partition(":")
        name = name.strip()
        type_name = type_name.strip().lower()
        if not sep or not name or not type_name:
            raise ConfigurationError(f"Invalid unique key element '{part}', expected column:type")
        if type_name not in _CONVERTERS:
            raise ConfigurationError(
                f"Unknown type '{type_name}' for unique key column '{name}'. "
                f"Supported types: {', '.join(sorted(_CONVERTERS))}"
            )
        if any(existing.lower() == name.lower() for existing, _ in columns):
            raise ConfigurationError(f"Unique key column '{name}' is listed twice")
        columns.append((name, type_name))

    if not columns:
        raise ConfigurationError("Unique key needs at least one column")
    return columns


class UniqueKey:
    """Builds document ids from rows and binds them back into queries."""

    def __init__(
        self,
        key_spec: str,
        content_sql_columns: Optional[Sequence[str]] = None,
        acl_sql_columns: Optional[Sequence[str]] = None,
        encoded_ids: bool = True,
    ):
        """Initialize the unique key.

        Args:
            key_spec: Comma-separated `column:type` pairs.
            content_sql_columns: Key columns bound into the content query (default: all).
            acl_sql_columns: Key columns bound into the ACL query (default: all).
            encoded_ids: Whether ids handed back for binding were percent-encoded.
        """
        self._columns = parse_key_spec(key_spec)
        self._types = {name: type_name for name, type_name in self._columns}
        self._encoded_ids = encoded_ids
        self._content_params = self._check_param_columns(content_sql_columns, "content")
        self._acl_params = self._check_param_columns(acl_sql_columns, "acl")

    def _check_param_columns(self, columns: Optional[Sequence[str]], purpose: str) -> List[str]:
        if not columns:
            return list(self.column_names)
        unknown = [c for c in columns if c not in self._types]
        if unknown:
            raise ConfigurationError(
                f"{purpose} sql parameters {unknown} are not unique key columns {self.column_names}"
            )
        return list(columns)

    @property
    def column_names(self) -> List[str]:
        return [name for name, _ in self._columns]

    def make_id(self, row: Mapping[str, Any], encode: bool) -> str:
        """
        Build the document id for one row.

        Args:
            row: Result row as a column-name mapping.
            encode: Percent-encode each key value.

        Returns:
            The document id.

        Raises:
            RowMappingError: If a key column is missing or NULL.
        """
        parts = []
        for name, _ in self._columns:
            try:
                value = get_column_value(row, name)
            except KeyError:
                raise RowMappingError(f"Unique key column '{name}' is not in the result") from None
            if value is None:
                raise RowMappingError(f"Unique key column '{name}' is null")
            text = str(value)
            parts.append(quote(text, safe="") if encode else text)
        return "/".join(parts)

    def parse_id(self, doc_id: str) -> Dict[str, Any]:
        """
        Split a document id into typed key values.

        Raises:
            RowMappingError: If the id has the wrong number of parts or a part
                cannot be converted to its column type.
        """
        if len(self._columns) == 1 and not self._encoded_ids:
            raw_parts = [doc_id]
        else:
            raw_parts = doc_id.split("/")
            if self._encoded_ids:
                raw_parts = [unquote(part) for part in raw_parts]

        if len(raw_parts) != len(self._columns):
            raise RowMappingError(
                f"Document id '{doc_id}' has {len(raw_parts)} parts, "
                f"expected {len(self._columns)}"
            )

        values = {}
        for (name, type_name), raw in zip(self._columns, raw_parts):
            try:
                values[name] = _CONVERTERS[type_name](raw)
            except ValueError as e:
                raise RowMappingError(
                    f"Document id '{doc_id}': '{raw}' is not a valid {type_name} for column '{name}'"
                ) from e
        return values

    def bind_content_query_params(self, doc_id: str) -> Dict[str, Any]:
        """Named parameters for the single-document content query."""
        values = self.parse_id(doc_id)
        return {name: values[name] for name in self._content_params}

    def bind_acl_query_params(self, doc_id: str) -> Dict[str, Any]:
        """Named parameters for the ACL query."""
        values = self.parse_id(doc_id)
        return {name: values[name] for name in self._acl_params}

    def __str__(self) -> str:
        return ", ".join(f"{name}:{type_name}" for name, type_name in self._columns)
