"""
Catalog Ingest - Exception Types

Structural problems abort a whole import; everything else is reported as
strings on ParseResult / ImportReport and never raised.
"""
from __future__ import annotations

from typing import Optional


class CatalogIngestError(Exception):
    """Base class for all catalog ingestion errors."""


class CSVStructureError(CatalogIngestError, ValueError):
    """File cannot be imported at all (missing headers, no data, bad quoting)."""

    def __init__(self, message: str, line: Optional[int] = None):
        super().__init__(message)
        self.line = line


class RepositoryError(CatalogIngestError):
    """Storage write or lookup failed for a single product."""


class DuplicateHandleError(CatalogIngestError):
    """Handle already claimed by an earlier product of the same import."""
