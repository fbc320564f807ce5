"""Mapping from result column names to metadata names."""

from typing import Dict, Optional

from sqlfeed.config.configuration import ConfigurationError


class MetadataColumns:
    """Explicit column-to-metadata mapping, e.g. `"db_col1:title, col2:author"`.

    A bare column name maps to itself. Columns not listed are not metadata.
    """

    def __init__(self, mapping_spec: str = ""):
        self._mapping: Dict[str, str] = {}
        for part in mapping_spec.split(","):
            part = part.strip()
            if not part:
                continue
            column, sep, name = part.partition(":")
            column = column.strip()
            name = name.strip() if sep else column
            if not column or not name:
                raise ConfigurationError(f"Invalid metadata column element '{part}'")
            self._mapping[column] = name

    @classmethod
    def from_config(cls, mapping_spec: str, include_all_columns: bool) -> "MetadataColumns":
        """All columns become metadata only when nothing is listed explicitly."""
        if include_all_columns and not mapping_spec.strip():
            return AllColumns()
        return cls(mapping_spec)

    def map_column_name(self, column_name: str) -> Optional[str]:
        return self._mapping.get(column_name)

    def __eq__(self, other) -> bool:
        return type(other) is type(self) and other._mapping == self._mapping

    def __hash__(self) -> int:
        return hash(tuple(sorted(self._mapping.items())))

    def __repr__(self) -> str:
        return f"MetadataColumns({dict(sorted(self._mapping.items()))})"


class AllColumns(MetadataColumns):
    """Every column is metadata under its own name."""

    def __init__(self):
        super().__init__("")

    def map_column_name(self, column_name: str) -> Optional[str]:
        return column_name

    def __repr__(self) -> str:
        return "MetadataColumns.AllColumns()"
