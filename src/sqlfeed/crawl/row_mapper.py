"""Turns result rows into document records."""

from typing import Any, Mapping, Tuple

from sqlfeed.crawl.metadata_columns import MetadataColumns
from sqlfeed.crawl.unique_key import UniqueKey
from sqlfeed.models.document import DocumentRecord, MetadataPair

NULL_TEXT = "null"


def value_to_text(value: Any) -> str:
    """Render a column value as metadata text. NULL becomes the literal "null"."""
    if value is None:
        return NULL_TEXT
    return str(value)


class RowMapper:
    """Derives the doc id and the metadata pairs of one row."""

    def __init__(self, unique_key: UniqueKey, metadata_columns: MetadataColumns, encode_doc_id: bool):
        self._unique_key = unique_key
        self._metadata_columns = metadata_columns
        self._encode_doc_id = encode_doc_id

    def to_document_identifier(self, row: Mapping[str, Any]) -> str:
        return self._unique_key.make_id(row, self._encode_doc_id)

    def to_metadata(self, row: Mapping[str, Any]) -> Tuple[MetadataPair, ...]:
        """Metadata pairs in column order; unmapped columns are skipped."""
        pairs = []
        for column, value in row.items():
            name = self._metadata_columns.map_column_name(column)
            if name is not None:
                pairs.append(MetadataPair(name=name, value=value_to_text(value)))
        return tuple(pairs)

    def to_record(
        self,
        row: Mapping[str, Any],
        include_metadata: bool = False,
        crawl_immediately: bool = False,
    ) -> DocumentRecord:
        metadata = self.to_metadata(row) if include_metadata else ()
        return DocumentRecord(
            doc_id=self.to_document_identifier(row),
            metadata=metadata,
            crawl_immediately=crawl_immediately,
        )
