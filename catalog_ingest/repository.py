"""
Catalog Ingest - Storage Interface

CatalogRepository is what the reconciler talks to. Implementations:
  - InMemoryRepository (tests / local dev)
  - AsyncPGCatalogRepository (asyncpg_repository.py)
"""
from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from catalog_ingest.errors import RepositoryError
from catalog_ingest.models import Category, ImageRecord, ProductRecord, VariantRecord
from catalog_ingest.slugs import category_slug

logger = logging.getLogger(__name__)

# ============================================================
# Database Abstraction Layer (Repository Pattern)
# ============================================================

class CatalogRepository:
    """
    Abstract catalog storage. create_product and replace_product must be
    all-or-nothing: a product is never left with a partial set of children.
    """

    async def find_product_by_handle(self, handle: str) -> Optional[ProductRecord]:
        raise NotImplementedError

    async def find_or_create_category(self, name: str) -> Category:
        raise NotImplementedError

    async def create_product(
        self, product: ProductRecord,
        variants: list[VariantRecord], images: list[ImageRecord],
    ) -> ProductRecord:
        raise NotImplementedError

    async def replace_product(
        self, product_id: UUID, product: ProductRecord,
        variants: list[VariantRecord], images: list[ImageRecord],
    ) -> ProductRecord:
        """Delete existing children, update scalars, recreate children."""
        raise NotImplementedError

    async def find_sku_owner(self, sku: str) -> Optional[UUID]:
        raise NotImplementedError

    async def find_variant_by_sku(self, sku: str) -> Optional[VariantRecord]:
        raise NotImplementedError

    async def get_variants(self, product_id: UUID) -> list[VariantRecord]:
        raise NotImplementedError

    async def get_images(self, product_id: UUID) -> list[ImageRecord]:
        raise NotImplementedError

    async def count_products(self) -> int:
        raise NotImplementedError


# ============================================================
# In-Memory Repository (for testing / local dev)
# ============================================================

class InMemoryRepository(CatalogRepository):
    """In-memory implementation for testing without a database."""

    def __init__(self):
        self.products: dict[UUID, ProductRecord] = {}
        self.variants: dict[UUID, list[VariantRecord]] = {}
        self.images: dict[UUID, list[ImageRecord]] = {}
        self.categories: dict[str, Category] = {}
        self._handle_index: dict[str, UUID] = {}
        self._sku_index: dict[str, UUID] = {}

    @asynccontextmanager
    async def unit_of_work(self):
        """Restore every index if the body raises."""
        snapshot = (
            dict(self.products), dict(self.variants), dict(self.images),
            dict(self._handle_index), dict(self._sku_index),
        )
        try:
            yield
        except Exception:
            (self.products, self.variants, self.images,
             self._handle_index, self._sku_index) = snapshot
            raise

    async def find_product_by_handle(self, handle: str) -> Optional[ProductRecord]:
        pid = self._handle_index.get(handle)
        return self.products.get(pid) if pid else None

    async def find_or_create_category(self, name: str) -> Category:
        slug = category_slug(name)
        if not slug:
            raise RepositoryError(f"Category name '{name}' has no usable characters")
        existing = self.categories.get(slug)
        if existing:
            return existing
        category = Category(name=name.strip(), slug=slug)
        self.categories[slug] = category
        return category

    async def create_product(
        self, product: ProductRecord,
        variants: list[VariantRecord], images: list[ImageRecord],
    ) -> ProductRecord:
        if product.slug in self._handle_index:
            raise RepositoryError(f"Product slug '{product.slug}' already exists")
        async with self.unit_of_work():
            self.products[product.id] = product
            self._handle_index[product.slug] = product.id
            self._insert_children(product.id, variants, images)
        return product

    async def replace_product(
        self, product_id: UUID, product: ProductRecord,
        variants: list[VariantRecord], images: list[ImageRecord],
    ) -> ProductRecord:
        existing = self.products.get(product_id)
        if existing is None:
            raise RepositoryError(f"Product {product_id} not found")
        async with self.unit_of_work():
            self._delete_children(product_id)
            updated = product.model_copy(update={
                'id': product_id,
                'created_at': existing.created_at,
                'updated_at': datetime.now(timezone.utc),
            })
            if existing.slug != updated.slug:
                self._handle_index.pop(existing.slug, None)
                self._handle_index[updated.slug] = product_id
            self.products[product_id] = updated
            self._insert_children(product_id, variants, images)
        return updated

    async def find_sku_owner(self, sku: str) -> Optional[UUID]:
        return self._sku_index.get(sku)

    async def find_variant_by_sku(self, sku: str) -> Optional[VariantRecord]:
        pid = self._sku_index.get(sku)
        if pid is None:
            return None
        return next((v for v in self.variants.get(pid, []) if v.sku == sku), None)

    async def get_variants(self, product_id: UUID) -> list[VariantRecord]:
        return list(self.variants.get(product_id, []))

    async def get_images(self, product_id: UUID) -> list[ImageRecord]:
        return list(self.images.get(product_id, []))

    async def count_products(self) -> int:
        return len(self.products)

    # ----------------------------------------------------------
    # Internals
    # ----------------------------------------------------------

    def _delete_children(self, product_id: UUID) -> None:
        for variant in self.variants.pop(product_id, []):
            self._sku_index.pop(variant.sku, None)
        self.images.pop(product_id, None)

    def _insert_children(
        self, product_id: UUID,
        variants: list[VariantRecord], images: list[ImageRecord],
    ) -> None:
        stored: list[VariantRecord] = []
        for variant in variants:
            owner = self._sku_index.get(variant.sku)
            if owner is not None:
                # unique constraint on variant sku
                raise RepositoryError(f"Duplicate variant SKU '{variant.sku}'")
            self._sku_index[variant.sku] = product_id
            stored.append(variant.model_copy(update={'product_id': product_id}))
        self.variants[product_id] = stored
        self.images[product_id] = [
            img.model_copy(update={'product_id': product_id}) for img in images
        ]
