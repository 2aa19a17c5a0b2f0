"""
Catalog Ingest - Import Service

Preview and commit entry points. Nothing parsed is kept between calls:
commit either re-parses the content (import_csv) or receives the product
list explicitly (commit).
"""
from __future__ import annotations
import logging
from pathlib import Path
from typing import Optional, Sequence

from catalog_ingest.assembler import AssemblerConfig, ProductAssembler
from catalog_ingest.category_detector import CategoryDetector
from catalog_ingest.config import Settings, get_settings
from catalog_ingest.errors import CSVStructureError
from catalog_ingest.models import ImportReport, ParsedProduct, ParseResult
from catalog_ingest.reconciler import DEFAULT_CONFIG, ImportReconciler, ReconcilerConfig
from catalog_ingest.repository import CatalogRepository, InMemoryRepository

logger = logging.getLogger(__name__)

UTF8_BOM = b"\xef\xbb\xbf"


class CatalogImportService:
    """Parser + assembler + classifier + reconciler behind one object."""

    def __init__(
        self,
        repo: CatalogRepository,
        assembler: Optional[ProductAssembler] = None,
        reconciler_config: ReconcilerConfig = DEFAULT_CONFIG,
    ):
        self.repo = repo
        self.assembler = assembler or ProductAssembler()
        self.reconciler = ImportReconciler(repo, reconciler_config)

    @classmethod
    def from_settings(
        cls, repo: CatalogRepository, settings: Optional[Settings] = None,
    ) -> CatalogImportService:
        settings = settings or get_settings()
        assembler = ProductAssembler(
            detector=CategoryDetector.from_settings(settings),
            config=AssemblerConfig.from_settings(settings),
        )
        return cls(repo, assembler, ReconcilerConfig.from_settings(settings))

    @staticmethod
    def decode(data: bytes) -> str:
        """UTF-8 (optionally BOM-prefixed) bytes -> str. Raises CSVStructureError."""
        if data.startswith(UTF8_BOM):
            data = data[len(UTF8_BOM):]
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CSVStructureError(f"File is not valid UTF-8 text: {e}") from e

    def preview(self, content: str) -> ParseResult:
        """Dry run: parse, group, classify, validate. No storage access."""
        return self.assembler.parse(content)

    async def import_csv(self, content: str) -> ImportReport:
        """Parse and reconcile in one call."""
        parsed = self.assembler.parse(content)
        report = await self.reconciler.reconcile(parsed.products, parse_warnings=parsed.warnings)
        report.errors[:0] = parsed.errors
        return report

    async def commit(
        self,
        products: Sequence[ParsedProduct],
        parse_warnings: Optional[Sequence[str]] = None,
    ) -> ImportReport:
        """Reconcile a product list the caller previewed and sent back."""
        return await self.reconciler.reconcile(products, parse_warnings=parse_warnings)


# ============================================================
# CLI / Script Entry Point
# ============================================================

async def import_file(
    path: str | Path,
    repo: Optional[CatalogRepository] = None,
    settings: Optional[Settings] = None,
    dry_run: bool = False,
) -> ParseResult | ImportReport:
    """
    Import one CSV file from disk.
    Convenience function for scripts; defaults to an in-memory repository.
    """
    if repo is None:
        repo = InMemoryRepository()
    service = CatalogImportService.from_settings(repo, settings)
    content = service.decode(Path(path).read_bytes())

    logger.info(f"Importing {path} (dry_run={dry_run})")
    if dry_run:
        return service.preview(content)
    return await service.import_csv(content)
