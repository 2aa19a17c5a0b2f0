"""
Catalog Ingest - CSV Export

Writes products back out in the exchange layout the assembler reads:
one row per variant, product-level cells on the first row only, and
image-only rows when a product has more images than variants. Those
rows read back as images only with AssemblerConfig(image_only_rows=True).
"""
from __future__ import annotations
from decimal import Decimal
from typing import Iterable, Optional

from catalog_ingest.csv_parser import format_csv_row
from catalog_ingest.field_mapping import CatalogField, FieldMapping, SHOPIFY_FIELD_MAPPING
from catalog_ingest.models import ParsedImage, ParsedProduct, ParsedVariant, PriceUnit

F = CatalogField


def _flag(value: bool) -> str:
    return "TRUE" if value else "FALSE"


def _text(value: Optional[object]) -> str:
    return "" if value is None else str(value)


def format_price(value: Optional[int], unit: PriceUnit | str = PriceUnit.MINOR) -> str:
    if value is None:
        return ""
    if PriceUnit(unit) == PriceUnit.MAJOR:
        return f"{Decimal(value).scaleb(-2):.2f}"
    return str(value)


def _product_cells(product: ParsedProduct) -> dict[CatalogField, str]:
    return {
        F.TITLE: product.title,
        F.BODY_HTML: product.body_html,
        F.VENDOR: _text(product.vendor),
        F.PRODUCT_CATEGORY: _text(product.category_hint),
        F.TYPE: _text(product.product_type),
        F.TAGS: ", ".join(product.tags),
        F.PUBLISHED: _flag(product.published),
        F.SEO_TITLE: _text(product.seo_title),
        F.SEO_DESCRIPTION: _text(product.seo_description),
        F.STATUS: product.status.value,
    }


def _variant_cells(variant: ParsedVariant, unit: PriceUnit | str) -> dict[CatalogField, str]:
    return {
        F.OPTION1_NAME: _text(variant.option1_name),
        F.OPTION1_VALUE: _text(variant.option1_value),
        F.OPTION2_NAME: _text(variant.option2_name),
        F.OPTION2_VALUE: _text(variant.option2_value),
        F.OPTION3_NAME: _text(variant.option3_name),
        F.OPTION3_VALUE: _text(variant.option3_value),
        F.VARIANT_SKU: _text(variant.sku),
        F.VARIANT_GRAMS: _text(variant.weight_grams),
        F.VARIANT_INVENTORY_TRACKER: _text(variant.inventory_tracker),
        F.VARIANT_INVENTORY_QTY: str(variant.inventory_qty),
        F.VARIANT_INVENTORY_POLICY: _text(variant.inventory_policy),
        F.VARIANT_FULFILLMENT_SERVICE: _text(variant.fulfillment_service),
        F.VARIANT_PRICE: format_price(variant.price, unit),
        F.VARIANT_COMPARE_AT_PRICE: format_price(variant.compare_at_price, unit),
        F.VARIANT_REQUIRES_SHIPPING: _flag(variant.requires_shipping),
        F.VARIANT_TAXABLE: _flag(variant.taxable),
        F.VARIANT_BARCODE: _text(variant.barcode),
        F.VARIANT_IMAGE: _text(variant.image_src),
    }


def _image_cells(image: ParsedImage) -> dict[CatalogField, str]:
    return {
        F.IMAGE_SRC: image.src,
        F.IMAGE_POSITION: str(image.position),
        F.IMAGE_ALT_TEXT: _text(image.alt_text),
    }


def product_rows(
    product: ParsedProduct,
    mapping: FieldMapping = SHOPIFY_FIELD_MAPPING,
    price_unit: PriceUnit | str = PriceUnit.MINOR,
) -> list[list[str]]:
    fields = list(mapping.columns)
    rows = []
    for i in range(max(len(product.variants), len(product.images), 1)):
        cells: dict[CatalogField, str] = {F.HANDLE: product.handle}
        if i == 0:
            cells.update(_product_cells(product))
        if i < len(product.variants):
            cells.update(_variant_cells(product.variants[i], price_unit))
        if i < len(product.images):
            cells.update(_image_cells(product.images[i]))
        rows.append([cells.get(f, "") for f in fields])
    return rows


def export_products_csv(
    products: Iterable[ParsedProduct],
    mapping: FieldMapping = SHOPIFY_FIELD_MAPPING,
    price_unit: PriceUnit | str = PriceUnit.MINOR,
) -> str:
    lines = [format_csv_row(mapping.headers())]
    for product in products:
        lines.extend(format_csv_row(row) for row in product_rows(product, mapping, price_unit))
    return "\n".join(lines) + "\n"
