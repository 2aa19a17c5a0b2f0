"""
Catalog Ingest - Header Mapping

Maps semantic catalog fields to the literal column headers of an exchange
file. The mapping is resolved once per import into a HeaderIndex; nothing
past that point looks cells up by header string.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from catalog_ingest.errors import CSVStructureError

logger = logging.getLogger(__name__)

# ============================================================
# Semantic Fields
# ============================================================

class CatalogField(str, Enum):
    HANDLE = "handle"
    TITLE = "title"
    BODY_HTML = "body_html"
    VENDOR = "vendor"
    PRODUCT_CATEGORY = "product_category"
    TYPE = "type"
    TAGS = "tags"
    PUBLISHED = "published"
    OPTION1_NAME = "option1_name"
    OPTION1_VALUE = "option1_value"
    OPTION2_NAME = "option2_name"
    OPTION2_VALUE = "option2_value"
    OPTION3_NAME = "option3_name"
    OPTION3_VALUE = "option3_value"
    VARIANT_SKU = "variant_sku"
    VARIANT_GRAMS = "variant_grams"
    VARIANT_INVENTORY_TRACKER = "variant_inventory_tracker"
    VARIANT_INVENTORY_QTY = "variant_inventory_qty"
    VARIANT_INVENTORY_POLICY = "variant_inventory_policy"
    VARIANT_FULFILLMENT_SERVICE = "variant_fulfillment_service"
    VARIANT_PRICE = "variant_price"
    VARIANT_COMPARE_AT_PRICE = "variant_compare_at_price"
    VARIANT_REQUIRES_SHIPPING = "variant_requires_shipping"
    VARIANT_TAXABLE = "variant_taxable"
    VARIANT_BARCODE = "variant_barcode"
    VARIANT_IMAGE = "variant_image"
    IMAGE_SRC = "image_src"
    IMAGE_POSITION = "image_position"
    IMAGE_ALT_TEXT = "image_alt_text"
    SEO_TITLE = "seo_title"
    SEO_DESCRIPTION = "seo_description"
    STATUS = "status"


REQUIRED_FIELDS: tuple[CatalogField, ...] = (CatalogField.HANDLE, CatalogField.TITLE)

# Cells that make a row carry a variant. A later row of the same handle with
# all of these empty but an image src is an image-only row when the
# assembler opts into that convention.
VARIANT_FIELDS: tuple[CatalogField, ...] = (
    CatalogField.OPTION1_VALUE,
    CatalogField.OPTION2_VALUE,
    CatalogField.OPTION3_VALUE,
    CatalogField.VARIANT_SKU,
    CatalogField.VARIANT_GRAMS,
    CatalogField.VARIANT_INVENTORY_QTY,
    CatalogField.VARIANT_PRICE,
    CatalogField.VARIANT_COMPARE_AT_PRICE,
    CatalogField.VARIANT_BARCODE,
)


@dataclass(frozen=True)
class FieldMapping:
    """Versioned field -> header table."""
    version: str
    columns: dict[CatalogField, str]

    def header_for(self, f: CatalogField) -> str:
        return self.columns[f]

    def headers(self) -> list[str]:
        """Headers in mapping order, used as the export header row."""
        return list(self.columns.values())


SHOPIFY_FIELD_MAPPING = FieldMapping(
    version="shopify-2024-01",
    columns={
        CatalogField.HANDLE: "Handle",
        CatalogField.TITLE: "Title",
        CatalogField.BODY_HTML: "Body (HTML)",
        CatalogField.VENDOR: "Vendor",
        CatalogField.PRODUCT_CATEGORY: "Product Category",
        CatalogField.TYPE: "Type",
        CatalogField.TAGS: "Tags",
        CatalogField.PUBLISHED: "Published",
        CatalogField.OPTION1_NAME: "Option1 Name",
        CatalogField.OPTION1_VALUE: "Option1 Value",
        CatalogField.OPTION2_NAME: "Option2 Name",
        CatalogField.OPTION2_VALUE: "Option2 Value",
        CatalogField.OPTION3_NAME: "Option3 Name",
        CatalogField.OPTION3_VALUE: "Option3 Value",
        CatalogField.VARIANT_SKU: "Variant SKU",
        CatalogField.VARIANT_GRAMS: "Variant Grams",
        CatalogField.VARIANT_INVENTORY_TRACKER: "Variant Inventory Tracker",
        CatalogField.VARIANT_INVENTORY_QTY: "Variant Inventory Qty",
        CatalogField.VARIANT_INVENTORY_POLICY: "Variant Inventory Policy",
        CatalogField.VARIANT_FULFILLMENT_SERVICE: "Variant Fulfillment Service",
        CatalogField.VARIANT_PRICE: "Variant Price",
        CatalogField.VARIANT_COMPARE_AT_PRICE: "Variant Compare At Price",
        CatalogField.VARIANT_REQUIRES_SHIPPING: "Variant Requires Shipping",
        CatalogField.VARIANT_TAXABLE: "Variant Taxable",
        CatalogField.VARIANT_BARCODE: "Variant Barcode",
        CatalogField.IMAGE_SRC: "Image Src",
        CatalogField.IMAGE_POSITION: "Image Position",
        CatalogField.IMAGE_ALT_TEXT: "Image Alt Text",
        CatalogField.VARIANT_IMAGE: "Variant Image",
        CatalogField.SEO_TITLE: "SEO Title",
        CatalogField.SEO_DESCRIPTION: "SEO Description",
        CatalogField.STATUS: "Status",
    },
)


# ============================================================
# Resolved Header Index
# ============================================================

@dataclass
class HeaderIndex:
    """Column positions for one file, resolved from its header row."""
    mapping: FieldMapping
    headers: tuple[str, ...]
    positions: dict[CatalogField, int] = field(default_factory=dict)
    unmapped: list[str] = field(default_factory=list)

    @classmethod
    def resolve(
        cls,
        header_row: Sequence[str],
        mapping: FieldMapping = SHOPIFY_FIELD_MAPPING,
    ) -> HeaderIndex:
        headers = tuple(h.strip() for h in header_row)
        exact = {h: i for i, h in reversed(list(enumerate(headers)))}
        folded = {h.lower(): i for i, h in reversed(list(enumerate(headers)))}

        positions: dict[CatalogField, int] = {}
        for f, header in mapping.columns.items():
            idx = exact.get(header)
            if idx is None:
                idx = folded.get(header.lower())
            if idx is not None:
                positions[f] = idx

        missing = [mapping.columns[f] for f in REQUIRED_FIELDS if f not in positions]
        if missing:
            raise CSVStructureError(
                f"Missing required headers: {', '.join(missing)}. "
                f"Found headers: {', '.join(h for h in headers if h)}"
            )

        known = set(positions.values())
        unmapped = [h for i, h in enumerate(headers) if i not in known and h]
        if unmapped:
            logger.debug("Ignoring unmapped columns: %s", unmapped)
        return cls(mapping=mapping, headers=headers, positions=positions, unmapped=unmapped)

    @property
    def width(self) -> int:
        return len(self.headers)

    def has(self, f: CatalogField) -> bool:
        return f in self.positions

    def get(self, row: Sequence[str], f: CatalogField) -> str:
        """Trimmed cell value, or '' when the column is absent."""
        idx = self.positions.get(f)
        if idx is None or idx >= len(row):
            return ""
        return row[idx].strip()

    def get_optional(self, row: Sequence[str], f: CatalogField) -> Optional[str]:
        return self.get(row, f) or None

    def has_any(self, row: Sequence[str], fields: Sequence[CatalogField]) -> bool:
        return any(self.get(row, f) for f in fields)
