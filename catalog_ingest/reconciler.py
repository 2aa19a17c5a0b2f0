"""
Catalog Ingest - Import Reconciler

Merges assembled products into storage:
  1. Pre-write checks (title, handle synthesis, default variant)
  2. Category find-or-create (failure degrades to no category)
  3. Collision-safe SKU and handle assignment, batch-scoped
  4. Handle lookup -> replace existing product or create a new one,
     each as one atomic write
  5. Per-product failures are recorded and the batch continues
"""
from __future__ import annotations
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence
from urllib.parse import urlparse
from uuid import UUID, uuid4

from catalog_ingest.errors import DuplicateHandleError
from catalog_ingest.models import (
    ImageRecord, ImportReport, ImportSummary, ParsedImage, ParsedProduct,
    ParsedVariant, ProductRecord, VariantRecord, strip_html,
)
from catalog_ingest.repository import CatalogRepository
from catalog_ingest.slugs import category_slug, generate_slug, unique_slug

logger = logging.getLogger(__name__)

# ============================================================
# Configuration
# ============================================================

@dataclass
class ReconcilerConfig:
    """Tunable parameters for reconciliation behavior."""
    # Also avoid SKUs already stored on other products
    check_persisted_skus: bool = True

    allowed_image_schemes: frozenset[str] = field(
        default_factory=lambda: frozenset({'http', 'https'}))

    short_description_length: int = 200
    meta_description_length: int = 160

    # Recorded in product metadata
    import_source: str = 'csv'

    @classmethod
    def from_settings(cls, settings: Any) -> ReconcilerConfig:
        return cls(
            check_persisted_skus=settings.check_persisted_skus,
            allowed_image_schemes=frozenset(settings.image_scheme_list),
        )


DEFAULT_CONFIG = ReconcilerConfig()


# ============================================================
# SKU Allocation
# ============================================================

class SkuAllocator:
    """
    Hands out variant SKUs that are unique within one reconcile call.
    A taken candidate gets -1, -2, ... appended: RED-01, RED-01-1, RED-01-2.

    SKUs for the product being written stay pending until commit(); a failed
    write calls discard() so they are free for later products.
    """

    def __init__(
        self,
        repo: Optional[CatalogRepository] = None,
        check_persisted: bool = False,
    ):
        self.repo = repo
        self.check_persisted = check_persisted and repo is not None
        self.used: set[str] = set()
        self.pending: set[str] = set()

    async def allocate(self, candidate: str, product_id: Optional[UUID] = None) -> str:
        """
        product_id is the stored product being replaced, if any; its own
        persisted SKUs do not count as taken.
        """
        sku = candidate
        counter = 0
        while await self._is_taken(sku, product_id):
            counter += 1
            sku = f"{candidate}-{counter}"
        self.pending.add(sku)
        return sku

    def commit(self) -> None:
        self.used |= self.pending
        self.pending.clear()

    def discard(self) -> None:
        self.pending.clear()

    async def _is_taken(self, sku: str, product_id: Optional[UUID]) -> bool:
        if sku in self.used or sku in self.pending:
            return True
        if self.check_persisted:
            owner = await self.repo.find_sku_owner(sku)
            return owner is not None and owner != product_id
        return False


# ============================================================
# Reconciler
# ============================================================

class ImportReconciler:
    """
    Create-or-replace pass over a parsed product set. Sequential; one
    product's failure never affects the others.
    """

    def __init__(
        self,
        repo: CatalogRepository,
        config: ReconcilerConfig = DEFAULT_CONFIG,
    ):
        self.repo = repo
        self.config = config

    # ----------------------------------------------------------
    # Public API
    # ----------------------------------------------------------

    async def reconcile(
        self,
        products: Sequence[ParsedProduct],
        parse_warnings: Optional[Sequence[str]] = None,
    ) -> ImportReport:
        start = time.monotonic()
        report = ImportReport(summary=ImportSummary(
            total_products=len(products),
            total_variants=sum(len(p.variants) for p in products),
            total_images=sum(len(p.images) for p in products),
        ))
        if parse_warnings:
            report.warnings.extend(parse_warnings)

        allocator = SkuAllocator(self.repo, self.config.check_persisted_skus)
        category_cache: dict[str, UUID] = {}

        # Explicit handles are reserved up front so synthesized ones avoid them
        reserved = {p.handle.strip() for p in products if p.handle.strip() and p.title.strip()}
        claimed: set[str] = set()

        for index, parsed in enumerate(products):
            if not parsed.title.strip():
                report.skipped += 1
                report.errors.append(
                    f"Product at index {index} (Handle: {parsed.handle or '?'}): Missing title")
                continue

            product = parsed
            try:
                product = self._prepare(index, parsed, reserved, report)
                if product.handle in claimed:
                    raise DuplicateHandleError(
                        "handle already used by an earlier product in this import")
                claimed.add(product.handle)
                await self._reconcile_product(product, allocator, category_cache, report)
            except Exception as e:
                allocator.discard()
                report.failed += 1
                err = f'Product "{product.title}" (Handle: {product.handle or "?"}): {e}'
                report.errors.append(err)
                logger.exception(err)
            else:
                allocator.commit()

        report.summary.processing_time_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "%s (%d skipped, %d errors, %d warnings, %dms)",
            report.message, report.skipped, len(report.errors),
            len(report.warnings), report.summary.processing_time_ms)
        return report

    # ----------------------------------------------------------
    # Internal Pipeline
    # ----------------------------------------------------------

    def _prepare(
        self,
        index: int,
        parsed: ParsedProduct,
        reserved: set[str],
        report: ImportReport,
    ) -> ParsedProduct:
        """Backfill handle and default variant on a copy."""
        handle = parsed.handle.strip()
        if not handle:
            base = generate_slug(parsed.title) or f"product-{index + 1}"
            handle = unique_slug(base, reserved)
            reserved.add(handle)
            report.warnings.append(
                f'Product "{parsed.title}": missing handle, using "{handle}"')

        variants = parsed.variants
        if not variants:
            variants = [ParsedVariant(sku=f"{handle}-v1", price=0, inventory_qty=0)]
            report.warnings.append(
                f'Product "{parsed.title}" (Handle: {handle}): no variants, created default variant')

        return parsed.model_copy(update={'handle': handle, 'variants': variants})

    async def _reconcile_product(
        self,
        product: ParsedProduct,
        allocator: SkuAllocator,
        category_cache: dict[str, UUID],
        report: ImportReport,
    ) -> None:
        existing = await self.repo.find_product_by_handle(product.handle)
        product_id = existing.id if existing else uuid4()

        category_id = await self._resolve_category(product, category_cache, report)
        variants = await self._build_variants(
            product, allocator, existing.id if existing else None, report)
        images = self._build_images(product, report)
        record = self._build_record(product, product_id, variants, category_id)

        if existing:
            await self.repo.replace_product(existing.id, record, variants, images)
            report.updated += 1
            logger.debug("Replaced %s (%d variants, %d images)",
                         product.handle, len(variants), len(images))
        else:
            await self.repo.create_product(record, variants, images)
            report.imported += 1
            logger.debug("Created %s (%d variants, %d images)",
                         product.handle, len(variants), len(images))

        report.variants_created += len(variants)
        report.images_created += len(images)

    async def _resolve_category(
        self,
        product: ParsedProduct,
        cache: dict[str, UUID],
        report: ImportReport,
    ) -> Optional[UUID]:
        name = (product.category_name or '').strip()
        if not name:
            return None
        key = category_slug(name)
        if key in cache:
            return cache[key]
        try:
            category = await self.repo.find_or_create_category(name)
        except Exception as e:
            msg = (f'Product "{product.title}" (Handle: {product.handle}): '
                   f'category "{name}" unavailable, imported without category ({e})')
            report.warnings.append(msg)
            logger.warning(msg)
            return None
        cache[key] = category.id
        return category.id

    async def _build_variants(
        self,
        product: ParsedProduct,
        allocator: SkuAllocator,
        existing_id: Optional[UUID],
        report: ImportReport,
    ) -> list[VariantRecord]:
        records = []
        for position, variant in enumerate(product.variants, start=1):
            candidate = variant.sku or f"{product.handle}-v{position}"
            sku = await allocator.allocate(candidate, existing_id)
            if sku != candidate:
                msg = (f'Product "{product.title}" (Handle: {product.handle}): '
                       f'SKU "{candidate}" already in use, stored as "{sku}"')
                report.warnings.append(msg)
                logger.warning(msg)
            records.append(_variant_record(variant, sku, position))
        return records

    def _build_images(self, product: ParsedProduct, report: ImportReport) -> list[ImageRecord]:
        usable: list[ParsedImage] = []
        seen: set[tuple[str, int]] = set()
        for image in product.images:
            if not self._is_usable_src(image.src):
                msg = (f'Product "{product.title}" (Handle: {product.handle}): '
                       f'skipped image with unusable src "{image.src}"')
                report.warnings.append(msg)
                logger.warning(msg)
                continue
            if image.key in seen:
                continue
            seen.add(image.key)
            usable.append(image)

        usable.sort(key=lambda img: img.position)
        return [
            ImageRecord(
                src=img.src,
                position=img.position,
                alt_text=img.alt_text,
                is_primary=(i == 0),
                file_name=_file_name(img.src),
            )
            for i, img in enumerate(usable)
        ]

    def _is_usable_src(self, src: str) -> bool:
        parsed = urlparse(src.strip())
        return parsed.scheme.lower() in self.config.allowed_image_schemes and bool(parsed.netloc)

    def _build_record(
        self,
        product: ParsedProduct,
        product_id: UUID,
        variants: list[VariantRecord],
        category_id: Optional[UUID],
    ) -> ProductRecord:
        plain = strip_html(product.body_html)
        cheapest = min(variants, key=lambda v: v.price_cents)
        meta_description = (product.seo_description or plain)[:self.config.meta_description_length]
        return ProductRecord(
            id=product_id,
            slug=product.handle,
            name=product.title,
            description=product.body_html,
            short_description=plain[:self.config.short_description_length],
            sku=variants[0].sku,
            stock_quantity=sum(v.inventory_qty for v in variants),
            price_cents=cheapest.price_cents,
            compare_at_cents=cheapest.compare_at_cents,
            tags=list(product.tags),
            meta_title=product.seo_title or product.title,
            meta_description=meta_description or None,
            status=product.status,
            category_id=category_id,
            metadata={
                'import_source': self.config.import_source,
                'vendor': product.vendor,
                'type': product.product_type,
                'csv_handle': product.handle,
            },
        )


# ============================================================
# Helpers
# ============================================================

def _variant_record(variant: ParsedVariant, sku: str, position: int) -> VariantRecord:
    return VariantRecord(
        sku=sku,
        title=variant.title,
        option1_name=variant.option1_name,
        option1_value=variant.option1_value,
        option2_name=variant.option2_name,
        option2_value=variant.option2_value,
        option3_name=variant.option3_name,
        option3_value=variant.option3_value,
        price_cents=variant.price,
        compare_at_cents=variant.compare_at_price,
        inventory_qty=variant.inventory_qty,
        weight_grams=variant.weight_grams,
        barcode=variant.barcode,
        requires_shipping=variant.requires_shipping,
        taxable=variant.taxable,
        inventory_tracker=variant.inventory_tracker,
        inventory_policy=variant.inventory_policy,
        fulfillment_service=variant.fulfillment_service,
        image_src=variant.image_src,
        position=position,
    )


def _file_name(src: str) -> Optional[str]:
    path = urlparse(src).path
    name = path.rstrip('/').rsplit('/', 1)[-1]
    return name or None
