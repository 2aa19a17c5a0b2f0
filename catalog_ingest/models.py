"""
Catalog Ingest - Core Pydantic Models
"""
from __future__ import annotations
from datetime import datetime, timezone
from decimal import Decimal, DecimalException, InvalidOperation, ROUND_FLOOR, ROUND_HALF_UP
from enum import Enum
from html import unescape
from typing import Any, Optional, Union
from uuid import UUID, uuid4
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
import re

# ============================================================
# Enums
# ============================================================

class ProductStatus(str, Enum):
    ACTIVE = "active"
    DRAFT = "draft"
    ARCHIVED = "archived"

class DetectionSource(str, Enum):
    TITLE = "title"
    TAGS = "tags"
    DESCRIPTION = "description"
    HANDLE = "handle"
    VENDOR = "vendor"
    MULTIPLE = "multiple"
    EXPLICIT = "explicit"

class PriceUnit(str, Enum):
    MINOR = "minor"   # cells hold integer cents, e.g. 1999
    MAJOR = "major"   # cells hold currency amounts, e.g. 19.99

# ============================================================
# Parsed (pre-storage) Models
# ============================================================

class ParsedVariant(BaseModel):
    sku: Optional[str] = None
    option1_name: Optional[str] = None
    option1_value: Optional[str] = None
    option2_name: Optional[str] = None
    option2_value: Optional[str] = None
    option3_name: Optional[str] = None
    option3_value: Optional[str] = None
    price: int = Field(default=0, ge=0)
    compare_at_price: Optional[int] = Field(default=None, ge=0)
    inventory_qty: int = Field(default=0, ge=0)
    weight_grams: Optional[int] = Field(default=None, ge=0)
    requires_shipping: bool = True
    taxable: bool = True
    barcode: Optional[str] = None
    inventory_tracker: Optional[str] = None
    inventory_policy: Optional[str] = None
    fulfillment_service: Optional[str] = None
    image_src: Optional[str] = None

    @property
    def options(self) -> list[tuple[Optional[str], str]]:
        pairs = [
            (self.option1_name, self.option1_value),
            (self.option2_name, self.option2_value),
            (self.option3_name, self.option3_value),
        ]
        return [(name, value) for name, value in pairs if value]

    @property
    def title(self) -> str:
        values = [value for _, value in self.options]
        return " / ".join(values) if values else "Default Title"


class ParsedImage(BaseModel):
    src: str = Field(min_length=1)
    position: int = Field(default=1, ge=1)
    alt_text: Optional[str] = None

    @property
    def key(self) -> tuple[str, int]:
        return (self.src, self.position)


class ParsedProduct(BaseModel):
    handle: str = ""
    title: str = ""
    body_html: str = ""
    vendor: Optional[str] = None
    product_type: Optional[str] = None
    category_hint: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    published: bool = False
    status: ProductStatus = ProductStatus.DRAFT
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    variants: list[ParsedVariant] = Field(default_factory=list)
    images: list[ParsedImage] = Field(default_factory=list)
    category_name: Optional[str] = None
    category_confidence: Optional[float] = None

    def has_image(self, src: str, position: int) -> bool:
        return any(img.src == src and img.position == position for img in self.images)


# ============================================================
# Classification Models
# ============================================================

class CategoryRule(BaseModel):
    """Static keyword rule; higher priority is checked first."""
    model_config = ConfigDict(frozen=True)

    category: str = Field(min_length=1)
    keywords: tuple[str, ...] = Field(min_length=1)
    priority: int = 0
    min_confidence: float = Field(default=0, ge=0, le=100)


class DetectionInput(BaseModel):
    title: str = ""
    description: str = ""
    tags: Union[list[str], str] = ""
    handle: str = ""
    vendor: str = ""
    explicit_type: Optional[str] = None

    @property
    def tags_text(self) -> str:
        if isinstance(self.tags, str):
            return self.tags
        return " ".join(self.tags)


class CategoryDetectionResult(BaseModel):
    category: str
    confidence: float = Field(ge=0, le=100)
    matched_keywords: list[str] = Field(default_factory=list)
    source: DetectionSource = DetectionSource.MULTIPLE


# ============================================================
# Results
# ============================================================

class ParseResult(BaseModel):
    products: list[ParsedProduct] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    total_rows: int = 0

    @computed_field
    @property
    def total_variants(self) -> int:
        return sum(len(p.variants) for p in self.products)

    @computed_field
    @property
    def total_images(self) -> int:
        return sum(len(p.images) for p in self.products)

    @computed_field
    @property
    def is_valid(self) -> bool:
        return not self.errors


class ImportSummary(BaseModel):
    total_products: int = 0
    total_variants: int = 0
    total_images: int = 0
    processing_time_ms: int = 0


class ImportReport(BaseModel):
    imported: int = 0
    updated: int = 0
    failed: int = 0
    skipped: int = 0
    variants_created: int = 0
    images_created: int = 0
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    summary: ImportSummary = Field(default_factory=ImportSummary)

    @computed_field
    @property
    def message(self) -> str:
        return (
            f"Import completed: {self.imported} created, {self.updated} updated, "
            f"{self.failed} failed. {self.variants_created} variants and "
            f"{self.images_created} images created."
        )


# ============================================================
# Storage Records
# ============================================================

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Category(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    name: str
    slug: str
    created_at: datetime = Field(default_factory=_utcnow)


class ProductRecord(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    slug: str
    name: str
    description: str = ""
    short_description: str = ""
    sku: Optional[str] = None
    stock_quantity: int = 0
    price_cents: int = 0
    compare_at_cents: Optional[int] = None
    tags: list[str] = Field(default_factory=list)
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    status: ProductStatus = ProductStatus.DRAFT
    category_id: Optional[UUID] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class VariantRecord(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    product_id: Optional[UUID] = None
    sku: str
    title: str = "Default Title"
    option1_name: Optional[str] = None
    option1_value: Optional[str] = None
    option2_name: Optional[str] = None
    option2_value: Optional[str] = None
    option3_name: Optional[str] = None
    option3_value: Optional[str] = None
    price_cents: int = 0
    compare_at_cents: Optional[int] = None
    inventory_qty: int = 0
    weight_grams: Optional[int] = None
    barcode: Optional[str] = None
    requires_shipping: bool = True
    taxable: bool = True
    inventory_tracker: Optional[str] = None
    inventory_policy: Optional[str] = None
    fulfillment_service: Optional[str] = None
    image_src: Optional[str] = None
    position: int = 1


class ImageRecord(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    product_id: Optional[UUID] = None
    src: str
    position: int = 1
    alt_text: Optional[str] = None
    is_primary: bool = False
    file_name: Optional[str] = None

    @field_validator("src")
    @classmethod
    def src_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("image src must not be blank")
        return v


# ============================================================
# Utility Parsers
# ============================================================

# Cells above 10**15 are treated as junk
MAX_DECIMAL_EXPONENT = 15

TRUTHY_TOKENS = {"true", "1", "yes", "y"}
FALSY_TOKENS = {"false", "0", "no", "n"}


def parse_decimal(text: Optional[str]) -> Optional[Decimal]:
    """
    Tolerant number parser. Returns None for empty or unparseable input.
    Accepts '19.99', '$1,299.00', '1e3'. Rejects NaN / Infinity
    and magnitudes beyond 10**MAX_DECIMAL_EXPONENT.
    """
    if text is None:
        return None
    cleaned = text.strip().replace(",", "").lstrip("$")
    if not cleaned:
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not value.is_finite() or value.adjusted() > MAX_DECIMAL_EXPONENT:
        return None
    return value


def parse_int(text: Optional[str]) -> Optional[int]:
    """Parse to int, flooring fractional input ('3.7' -> 3)."""
    value = parse_decimal(text)
    if value is None:
        return None
    try:
        return int(value.to_integral_value(rounding=ROUND_FLOOR))
    except DecimalException:
        return None


def parse_price(text: Optional[str], unit: PriceUnit | str = PriceUnit.MINOR) -> Optional[int]:
    """
    Parse a price cell into integer minor units.
    MINOR: '1999' -> 1999. MAJOR: '19.99' -> 1999 (half-up).
    """
    value = parse_decimal(text)
    if value is None:
        return None
    try:
        if PriceUnit(unit) == PriceUnit.MAJOR:
            value = value * 100
        return int(value.to_integral_value(rounding=ROUND_HALF_UP))
    except DecimalException:
        return None


def parse_bool(text: Optional[str], default: Optional[bool] = None) -> Optional[bool]:
    if text is None:
        return default
    token = text.strip().lower()
    if token in TRUTHY_TOKENS:
        return True
    if token in FALSY_TOKENS:
        return False
    return default


def parse_tags(text: Optional[str]) -> list[str]:
    """'art, decor,, wall ' -> ['art', 'decor', 'wall']"""
    if not text or not text.strip():
        return []
    return [t.strip() for t in text.split(",") if t.strip()]


def parse_status(text: Optional[str]) -> Optional[ProductStatus]:
    if not text:
        return None
    try:
        return ProductStatus(text.strip().lower())
    except ValueError:
        return None


_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")


def strip_html(text: Optional[str]) -> str:
    """Drop markup, unescape entities, collapse whitespace."""
    if not text:
        return ""
    plain = unescape(_TAG_RE.sub(" ", text))
    return _WS_RE.sub(" ", plain).strip()
