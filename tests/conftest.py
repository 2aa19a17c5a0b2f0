"""Shared fixtures for the catalog ingest test suite."""

import pytest

from catalog_ingest.assembler import ProductAssembler
from catalog_ingest.category_detector import CategoryDetector
from catalog_ingest.config import Settings
from catalog_ingest.models import CategoryRule, ParsedImage, ParsedProduct, ParsedVariant
from catalog_ingest.repository import InMemoryRepository


SCENARIO_CSV = (
    "Handle,Title,Variant SKU,Variant Price,Image Src,Image Position\n"
    'shirt-1,"Red Shirt",RED-01,1999,,\n'
    "shirt-1,,BLUE-01,2099,http://x/img.jpg,1\n"
)


def make_product(handle, title=None, skus=("SKU-1",), images=(), **kwargs):
    """Build a ParsedProduct with one variant per SKU (None = undeclared)."""
    return ParsedProduct(
        handle=handle,
        title=title if title is not None else handle.replace("-", " ").title(),
        variants=[ParsedVariant(sku=sku, price=1000 + i, inventory_qty=2)
                  for i, sku in enumerate(skus)],
        images=[ParsedImage(src=src, position=i) for i, src in enumerate(images, start=1)],
        **kwargs,
    )


@pytest.fixture
def scenario_csv():
    """The two-row shirt import: one product, two variants, one image."""
    return SCENARIO_CSV


@pytest.fixture
def small_rules():
    """Three-rule table; Misc is lowest priority and becomes the fallback."""
    return [
        CategoryRule(category="Mugs", keywords=("mug", "cup", "coffee"), priority=50, min_confidence=30),
        CategoryRule(category="Posters", keywords=("poster", "print", "wall art"), priority=40, min_confidence=30),
        CategoryRule(category="Misc", keywords=("item",), priority=0, min_confidence=0),
    ]


@pytest.fixture
def detector(small_rules):
    return CategoryDetector(small_rules)


@pytest.fixture
def assembler(detector):
    return ProductAssembler(detector=detector)


@pytest.fixture
def repo():
    """Fresh in-memory catalog."""
    return InMemoryRepository()


@pytest.fixture
def settings():
    """Settings built from defaults only (no .env file)."""
    return Settings(_env_file=None)
