"""Document body renderers, looked up by the configured mode of operation."""

import csv
import html
import io
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Mapping, Optional

from sqlfeed.config.configuration import LISTER_MODE, ConfigurationError
from sqlfeed.crawl.columns import get_column_value
from sqlfeed.crawl.unique_key import RowMappingError
from sqlfeed.models.document import DocumentResponse

logger = logging.getLogger(__name__)


class ResponseRenderer(ABC):
    """Writes the body of a document response from its content row."""

    def __init__(self, options: Optional[Dict[str, Any]] = None):
        self._options = dict(options or {})

    @abstractmethod
    def render(self, row: Mapping[str, Any], response: DocumentResponse) -> None:
        """Set the content type and write the body."""

    def _required_option(self, key: str) -> str:
        value = self._options.get(key)
        if value is None or not str(value).strip():
            raise ConfigurationError(f"{type(self).__name__} requires the '{key}' option")
        return str(value).strip()

    def _column_value(self, row: Mapping[str, Any], column_name: str) -> Any:
        try:
            return get_column_value(row, column_name)
        except KeyError:
            raise RowMappingError(f"Content column '{column_name}' is not in the result") from None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._options})"


class RowToText(ResponseRenderer):
    """Body is the row's values as one CSV line."""

    def render(self, row, response):
        buffer = io.StringIO()
        csv.writer(buffer).writerow(["" if v is None else v for v in row.values()])
        response.content_type = "text/plain; charset=utf-8"
        response.write(buffer.getvalue().encode("utf-8"))


class RowToHtml(ResponseRenderer):
    """Body is an HTML table with one line per column."""

    def render(self, row, response):
        lines = ["<!DOCTYPE html>", "<html><body><table>"]
        for column, value in row.items():
            text = "" if value is None else str(value)
            lines.append(f"<tr><th>{html.escape(column)}</th><td>{html.escape(text)}</td></tr>")
        lines.append("</table></body></html>")
        response.content_type = "text/html; charset=utf-8"
        response.write("\n".join(lines).encode("utf-8"))


class TextColumn(ResponseRenderer):
    """Body is the text of one column (`column_name` option)."""

    def __init__(self, options=None):
        super().__init__(options)
        self._column_name = self._required_option("column_name")
        self._content_type = self._options.get("content_type", "text/plain; charset=utf-8")

    def render(self, row, response):
        value = self._column_value(row, self._column_name)
        response.content_type = self._content_type
        if value is None:
            return
        if isinstance(value, (bytes, bytearray, memoryview)):
            response.write(bytes(value))
        else:
            response.write(str(value).encode("utf-8"))


class BlobColumn(ResponseRenderer):
    """Body is the raw bytes of one column (`column_name` option)."""

    def __init__(self, options=None):
        super().__init__(options)
        self._column_name = self._required_option("column_name")
        self._content_type = self._options.get("content_type", "application/octet-stream")

    def render(self, row, response):
        value = self._column_value(row, self._column_name)
        response.content_type = self._content_type
        if value is None:
            return
        if isinstance(value, str):
            value = value.encode("utf-8")
        response.write(bytes(value))


class UrlAndMetadataLister(ResponseRenderer):
    """Lister-only deployments never serve content; the body stays empty."""

    def render(self, row, response):
        return


RESPONSE_RENDERERS: Dict[str, Callable[[Dict[str, Any]], ResponseRenderer]] = {
    "row_to_text": RowToText,
    "row_to_html": RowToHtml,
    "text_column": TextColumn,
    "blob_column": BlobColumn,
    LISTER_MODE: UrlAndMetadataLister,
}


def load_response_renderer(mode: str, options: Optional[Dict[str, Any]] = None) -> ResponseRenderer:
    """
    Build the renderer registered under `mode`.

    Args:
        mode: Configured mode of operation.
        options: Renderer options from the `renderers.<mode>` config section.

    Returns:
        The renderer.

    Raises:
        ConfigurationError: If the mode is empty, unknown, or its options are invalid.
    """
    if not mode or not mode.strip():
        raise ConfigurationError("mode_of_operation can not be an empty string")
    factory = RESPONSE_RENDERERS.get(mode.strip())
    if factory is None:
        raise ConfigurationError(
            f"Unknown mode_of_operation '{mode}'. Known modes: {', '.join(sorted(RESPONSE_RENDERERS))}"
        )
    renderer = factory(options or {})
    logger.info(f"loaded response renderer: {renderer!r}")
    return renderer
