"""
Importer package for the server catalog.

Streams CSV/XLSX listing sheets into a catalog store with natural-key upserts.
"""

from server_catalog.importer.pipeline import (
    HEADER_SYNONYMS,
    ImportPipeline,
    ProgressCallback,
    import_catalog,
    resolve_columns,
)
from server_catalog.importer.sources import (
    SUPPORTED_EXTENSIONS,
    CatalogImportError,
    HeaderResolutionError,
    SourceNotFoundError,
    UnsupportedSourceError,
    estimate_row_count,
    open_source,
)

__all__ = [
    "HEADER_SYNONYMS",
    "SUPPORTED_EXTENSIONS",
    "CatalogImportError",
    "HeaderResolutionError",
    "ImportPipeline",
    "ProgressCallback",
    "SourceNotFoundError",
    "UnsupportedSourceError",
    "estimate_row_count",
    "import_catalog",
    "open_source",
    "resolve_columns",
]
