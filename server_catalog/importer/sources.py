"""
Tabular sources for the importer: CSV files and Excel workbooks.

Both are streamed: CSV through `csv.reader`, workbooks through openpyxl's
read-only mode, which parses the sheet XML lazily instead of building the
whole workbook in memory. Rows are yielded as `(row_number, cells)` with
1-based sheet row numbers (the header is row 1) and every cell rendered as a
stripped string.

Pre-flight problems (unsupported extension, missing or unreadable file) raise
a `CatalogImportError` before any row is read.
"""

from __future__ import annotations

import abc
import csv
import os
import zipfile
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Type

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from server_catalog.utils.logging import get_logger

log = get_logger(__name__)

Row = Tuple[int, List[str]]


class CatalogImportError(RuntimeError):
    """Fatal import failure; nothing has been written when it is raised."""


class SourceNotFoundError(CatalogImportError, FileNotFoundError):
    pass


class UnsupportedSourceError(CatalogImportError, ValueError):
    pass


class HeaderResolutionError(CatalogImportError):
    pass


def cell_text(value: Any) -> str:
    """Render a cell value as the text a person would read in the sheet."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value).strip()


class TabularSource(abc.ABC):
    """
    A header row followed by data rows. Use as a context manager.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    @abc.abstractmethod
    def rows(self) -> Iterator[Row]:
        """Yield every row, header included, as (row_number, cells)."""
        raise NotImplementedError

    @abc.abstractmethod
    def estimate_data_rows(self) -> int:
        """Number of rows below the header; 0 when unknown."""
        raise NotImplementedError

    def close(self) -> None:
        """Release file handles."""

    def __enter__(self) -> "TabularSource":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class CsvSource(TabularSource):
    encoding = "utf-8-sig"

    def rows(self) -> Iterator[Row]:
        with self.path.open("r", newline="", encoding=self.encoding) as f:
            try:
                for row_number, cells in enumerate(csv.reader(f), start=1):
                    yield row_number, [cell_text(cell) for cell in cells]
            except (UnicodeDecodeError, csv.Error) as exc:
                raise CatalogImportError(f"File could not be read: {self.path} ({exc})") from exc

    def estimate_data_rows(self) -> int:
        with self.path.open("r", newline="", encoding=self.encoding) as f:
            try:
                total = sum(1 for _ in csv.reader(f))
            except (UnicodeDecodeError, csv.Error) as exc:
                raise CatalogImportError(f"File could not be read: {self.path} ({exc})") from exc
        return max(total - 1, 0)


class XlsxSource(TabularSource):
    def __init__(self, path: Path) -> None:
        super().__init__(path)
        try:
            self._workbook = load_workbook(path, read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
            raise CatalogImportError(f"File could not be read: {path} ({exc})") from exc
        self._sheet = self._workbook.active

    def rows(self) -> Iterator[Row]:
        for row_number, values in enumerate(self._sheet.iter_rows(values_only=True), start=1):
            yield row_number, [cell_text(value) for value in values]

    def estimate_data_rows(self) -> int:
        max_row: Optional[int] = self._sheet.max_row
        return max(max_row - 1, 0) if max_row else 0

    def close(self) -> None:
        self._workbook.close()


SOURCE_TYPES: Dict[str, Type[TabularSource]] = {
    ".csv": CsvSource,
    ".xlsx": XlsxSource,
    ".xlsm": XlsxSource,
}
SUPPORTED_EXTENSIONS = tuple(SOURCE_TYPES)


def validate_source(path: str | os.PathLike[str]) -> Path:
    """
    Check extension, existence and readability, in that order.

    Raises
    ------
    UnsupportedSourceError
        The extension is not one of SUPPORTED_EXTENSIONS.
    SourceNotFoundError
        The path does not point to a file.
    CatalogImportError
        The file exists but cannot be read.
    """
    source_path = Path(path)
    extension = source_path.suffix.lower()
    if extension not in SOURCE_TYPES:
        supported = ", ".join(ext.lstrip(".") for ext in SUPPORTED_EXTENSIONS)
        raise UnsupportedSourceError(
            f"Invalid file type: {extension.lstrip('.') or '(none)'}. Supported types: {supported}"
        )
    if not source_path.is_file():
        raise SourceNotFoundError(f"File not found: {source_path}")
    if not os.access(source_path, os.R_OK):
        raise CatalogImportError(f"File is not readable: {source_path}")
    return source_path


def open_source(path: str | os.PathLike[str]) -> TabularSource:
    source_path = validate_source(path)
    source = SOURCE_TYPES[source_path.suffix.lower()](source_path)
    log.debug("Source opened", extra={"path": str(source_path), "kind": type(source).__name__})
    return source


def estimate_row_count(path: str | os.PathLike[str]) -> int:
    """Data rows in the file (header excluded), without importing anything."""
    with open_source(path) as source:
        return source.estimate_data_rows()


__all__ = [
    "CatalogImportError",
    "CsvSource",
    "HeaderResolutionError",
    "SUPPORTED_EXTENSIONS",
    "SourceNotFoundError",
    "TabularSource",
    "UnsupportedSourceError",
    "XlsxSource",
    "cell_text",
    "estimate_row_count",
    "open_source",
    "validate_source",
]
