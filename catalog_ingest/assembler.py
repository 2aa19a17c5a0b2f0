"""
Catalog Ingest - Row-to-Product Assembler

Groups exchange-file rows by handle into ParsedProduct records:
  1. First row of a handle carries the product-level fields
  2. Every row contributes one variant (image-only rows are opt-in)
  3. Images are deduplicated on (src, position) and sorted by position
  4. Each product is classified once all of its rows are in
"""
from __future__ import annotations
import logging
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence, Union

from catalog_ingest.category_detector import CategoryDetector
from catalog_ingest.csv_parser import Row, parse_csv_content
from catalog_ingest.errors import CSVStructureError
from catalog_ingest.field_mapping import (
    CatalogField, FieldMapping, HeaderIndex, SHOPIFY_FIELD_MAPPING, VARIANT_FIELDS,
)
from catalog_ingest.models import (
    DetectionInput, ParsedImage, ParsedProduct, ParsedVariant, ParseResult,
    PriceUnit, ProductStatus,
    parse_bool, parse_int, parse_price, parse_status, parse_tags,
)

logger = logging.getLogger(__name__)

F = CatalogField

# ============================================================
# Configuration
# ============================================================

@dataclass
class AssemblerConfig:
    """Parsing and validation knobs for one import."""
    price_unit: PriceUnit = PriceUnit.MINOR
    strict_quotes: bool = True

    # Run the classifier during assembly; off leaves category_name = hint
    classify: bool = True

    # Shopify convention: a later row with only image cells adds no variant
    image_only_rows: bool = False

    # Validation limits
    max_title_length: int = 255
    max_sku_length: int = 100
    max_price: int = 99_999_999         # minor units
    max_inventory: int = 999_999
    max_description_length: int = 10_000

    @classmethod
    def from_settings(cls, settings: Any) -> AssemblerConfig:
        return cls(
            price_unit=PriceUnit(settings.price_unit),
            strict_quotes=settings.strict_quotes,
            image_only_rows=settings.image_only_rows,
        )


DEFAULT_ASSEMBLER_CONFIG = AssemblerConfig()

MIN_ROWS_MESSAGE = "CSV file must contain at least a header row and one data row"


# ============================================================
# Assembler
# ============================================================

class ProductAssembler:
    """
    Turns raw file text into ParsedProducts:
      content -> rows -> header index -> grouped products -> classified
    """

    def __init__(
        self,
        detector: Optional[CategoryDetector] = None,
        mapping: FieldMapping = SHOPIFY_FIELD_MAPPING,
        config: AssemblerConfig = DEFAULT_ASSEMBLER_CONFIG,
    ):
        self.detector = detector or CategoryDetector()
        self.mapping = mapping
        self.config = config

    # ----------------------------------------------------------
    # Public API
    # ----------------------------------------------------------

    def parse(self, content: str) -> ParseResult:
        """
        Full preview pass. Raises CSVStructureError for files that cannot be
        imported at all; everything else lands in result.errors / warnings.
        """
        start = time.monotonic()
        rows = parse_csv_content(content, strict_quotes=self.config.strict_quotes)
        if len(rows) < 2:
            raise CSVStructureError(MIN_ROWS_MESSAGE)

        header = HeaderIndex.resolve(rows[0], self.mapping)
        warnings: list[str] = []
        grouped = self.group(rows[1:], header, warnings)

        result = ParseResult(
            products=list(grouped.values()),
            warnings=warnings,
            total_rows=len(rows) - 1,
        )
        for product in result.products:
            errors, product_warnings = validate_parsed_product(product, self.config)
            result.errors.extend(errors)
            result.warnings.extend(product_warnings)
        result.warnings.extend(find_cross_product_duplicate_skus(result.products))

        logger.info(
            "Parsed %d rows into %d products (%d variants, %d images) in %dms",
            result.total_rows, len(result.products), result.total_variants,
            result.total_images, int((time.monotonic() - start) * 1000))
        return result

    def group(
        self,
        rows: Sequence[Row],
        header: Union[HeaderIndex, Sequence[str]],
        warnings: Optional[list[str]] = None,
    ) -> dict[str, ParsedProduct]:
        """Group data rows by handle. Dict order = first appearance."""
        if not isinstance(header, HeaderIndex):
            header = HeaderIndex.resolve(header, self.mapping)
        if warnings is None:
            warnings = []

        products: dict[str, ParsedProduct] = {}
        for offset, raw in enumerate(rows):
            row_no = offset + 2  # header is row 1
            row = _fit_row(raw, header.width, row_no, warnings)

            handle = header.get(row, F.HANDLE)
            if not handle:
                warnings.append(f"Row {row_no}: missing {self.mapping.header_for(F.HANDLE)}, row skipped")
                continue

            product = products.get(handle)
            is_first = product is None
            if product is None:
                product = self._start_product(handle, row, header, row_no, warnings)
                products[handle] = product

            image_only = (
                self.config.image_only_rows
                and not is_first
                and not header.has_any(row, VARIANT_FIELDS)
                and bool(header.get(row, F.IMAGE_SRC))
            )
            if not image_only:
                product.variants.append(
                    self._parse_variant(row, header, row_no, warnings, product))

            image = self._parse_image(row, header, row_no, warnings)
            if image is not None and not product.has_image(image.src, image.position):
                product.images.append(image)

        for product in products.values():
            product.images.sort(key=lambda img: img.position)
            if not product.variants:
                product.variants.append(ParsedVariant())
                warnings.append(f'Product "{product.handle}": no variants, added default variant')
            self._classify(product)

        return products

    # ----------------------------------------------------------
    # Row Parsing
    # ----------------------------------------------------------

    def _start_product(
        self, handle: str, row: Row, header: HeaderIndex,
        row_no: int, warnings: list[str],
    ) -> ParsedProduct:
        category = header.get(row, F.PRODUCT_CATEGORY)
        product_type = header.get(row, F.TYPE)

        published = parse_bool(header.get(row, F.PUBLISHED), default=False)
        status_cell = header.get(row, F.STATUS)
        status = parse_status(status_cell)
        if status_cell and status is None:
            warnings.append(f"Row {row_no}: unknown status '{status_cell}', derived from Published")
        if status is None:
            status = ProductStatus.ACTIVE if published else ProductStatus.DRAFT

        return ParsedProduct(
            handle=handle,
            title=header.get(row, F.TITLE),
            body_html=header.get(row, F.BODY_HTML),
            vendor=header.get_optional(row, F.VENDOR),
            product_type=product_type or None,
            category_hint=category or product_type or None,
            tags=parse_tags(header.get(row, F.TAGS)),
            published=bool(published),
            status=status,
            seo_title=header.get_optional(row, F.SEO_TITLE),
            seo_description=header.get_optional(row, F.SEO_DESCRIPTION),
        )

    def _parse_variant(
        self, row: Row, header: HeaderIndex, row_no: int,
        warnings: list[str], product: ParsedProduct,
    ) -> ParsedVariant:
        def number(f: CatalogField, parser: Callable[[str], Optional[int]]) -> Optional[int]:
            return self._read_number(row, header, f, parser, row_no, warnings)

        def price_parser(cell: str) -> Optional[int]:
            return parse_price(cell, self.config.price_unit)

        options: dict[str, Optional[str]] = {}
        first = product.variants[0] if product.variants else None
        for n, (name_f, value_f) in enumerate((
            (F.OPTION1_NAME, F.OPTION1_VALUE),
            (F.OPTION2_NAME, F.OPTION2_VALUE),
            (F.OPTION3_NAME, F.OPTION3_VALUE),
        ), start=1):
            name = header.get_optional(row, name_f)
            value = header.get_optional(row, value_f)
            if value and not name and first is not None:
                name = getattr(first, f"option{n}_name")
            options[f"option{n}_name"] = name
            options[f"option{n}_value"] = value

        price = number(F.VARIANT_PRICE, price_parser)
        inventory = number(F.VARIANT_INVENTORY_QTY, parse_int)

        return ParsedVariant(
            sku=header.get_optional(row, F.VARIANT_SKU),
            price=price if price is not None else 0,
            compare_at_price=number(F.VARIANT_COMPARE_AT_PRICE, price_parser),
            inventory_qty=inventory if inventory is not None else 0,
            weight_grams=number(F.VARIANT_GRAMS, parse_int),
            requires_shipping=bool(parse_bool(header.get(row, F.VARIANT_REQUIRES_SHIPPING), default=True)),
            taxable=bool(parse_bool(header.get(row, F.VARIANT_TAXABLE), default=True)),
            barcode=header.get_optional(row, F.VARIANT_BARCODE),
            inventory_tracker=header.get_optional(row, F.VARIANT_INVENTORY_TRACKER),
            inventory_policy=header.get_optional(row, F.VARIANT_INVENTORY_POLICY),
            fulfillment_service=header.get_optional(row, F.VARIANT_FULFILLMENT_SERVICE),
            image_src=header.get_optional(row, F.VARIANT_IMAGE),
            **options,
        )

    def _parse_image(
        self, row: Row, header: HeaderIndex, row_no: int, warnings: list[str],
    ) -> Optional[ParsedImage]:
        src = header.get(row, F.IMAGE_SRC)
        if not src:
            return None
        position = self._read_number(row, header, F.IMAGE_POSITION, parse_int, row_no, warnings)
        if position is not None and position < 1:
            warnings.append(f"Row {row_no}: image position {position} below 1, using 1")
            position = None
        return ParsedImage(
            src=src,
            position=position or 1,
            alt_text=header.get_optional(row, F.IMAGE_ALT_TEXT),
        )

    def _read_number(
        self, row: Row, header: HeaderIndex, f: CatalogField,
        parser: Callable[[str], Optional[int]], row_no: int, warnings: list[str],
    ) -> Optional[int]:
        """Empty -> None silently; junk or negative -> None with a warning."""
        cell = header.get(row, f)
        if not cell:
            return None
        value = parser(cell)
        if value is None or value < 0:
            warnings.append(f"Row {row_no}: invalid {self.mapping.header_for(f)} '{cell}'")
            return None
        return value

    def _classify(self, product: ParsedProduct) -> None:
        if not self.config.classify:
            product.category_name = product.category_hint
            return
        result = self.detector.detect(DetectionInput(
            title=product.title,
            description=product.body_html,
            tags=product.tags,
            handle=product.handle,
            vendor=product.vendor or "",
            explicit_type=product.category_hint,
        ))
        product.category_name = result.category
        product.category_confidence = result.confidence


def _fit_row(row: Row, width: int, row_no: int, warnings: list[str]) -> Row:
    if len(row) == width:
        return row
    warnings.append(f"Row {row_no}: expected {width} columns, found {len(row)}")
    if len(row) < width:
        return row + ("",) * (width - len(row))
    return row[:width]


# ============================================================
# Validation
# ============================================================

def _sku_ok(sku: str) -> bool:
    return all(ch.isascii() and (ch.isalnum() or ch in "-_") for ch in sku)


def validate_parsed_product(
    product: ParsedProduct, config: AssemblerConfig = DEFAULT_ASSEMBLER_CONFIG,
) -> tuple[list[str], list[str]]:
    """Return (errors, warnings). Neither list blocks the import."""
    errors: list[str] = []
    warnings: list[str] = []
    label = f'Product "{product.handle or product.title or "?"}"'

    if not product.handle:
        errors.append(f"{label}: handle is required")
    if not product.title:
        errors.append(f"{label}: title is required")
    elif len(product.title) > config.max_title_length:
        errors.append(f"{label}: title exceeds {config.max_title_length} characters")
    if not product.variants:
        errors.append(f"{label}: at least one variant is required")

    seen: set[str] = set()
    for i, variant in enumerate(product.variants, start=1):
        if variant.price > config.max_price:
            warnings.append(f"{label}: variant {i} price {variant.price} exceeds {config.max_price}")
        if variant.inventory_qty > config.max_inventory:
            warnings.append(f"{label}: variant {i} inventory exceeds {config.max_inventory}")
        if variant.sku:
            if variant.sku in seen:
                warnings.append(f'{label}: duplicate SKU "{variant.sku}" will be renamed on import')
            seen.add(variant.sku)
            if len(variant.sku) > config.max_sku_length:
                warnings.append(f'{label}: SKU "{variant.sku}" exceeds {config.max_sku_length} characters')
            if not _sku_ok(variant.sku):
                warnings.append(
                    f'{label}: SKU "{variant.sku}" should only contain letters, numbers, hyphens and underscores')

    if len(product.body_html) > config.max_description_length:
        warnings.append(f"{label}: description exceeds {config.max_description_length} characters")

    # best-practice gaps
    if not product.body_html:
        warnings.append(f"{label}: no description")
    if not product.images:
        warnings.append(f"{label}: no images")
    if not product.tags:
        warnings.append(f"{label}: no tags")

    return errors, warnings


def find_cross_product_duplicate_skus(products: Sequence[ParsedProduct]) -> list[str]:
    owners: dict[str, list[str]] = defaultdict(list)
    for product in products:
        for sku in dict.fromkeys(v.sku for v in product.variants if v.sku):
            owners[sku].append(product.handle)
    return [
        f'SKU "{sku}" appears in multiple products ({", ".join(handles)}) and will be renamed on import'
        for sku, handles in owners.items() if len(handles) > 1
    ]
