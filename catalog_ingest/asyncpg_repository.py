"""
asyncpg_repository.py - PostgreSQL catalog repository.

Implements the CatalogRepository interface on an asyncpg connection pool.
Product create / replace each run inside a single transaction.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

import asyncpg

from catalog_ingest.errors import RepositoryError
from catalog_ingest.models import Category, ImageRecord, ProductRecord, VariantRecord
from catalog_ingest.repository import CatalogRepository
from catalog_ingest.slugs import category_slug

logger = logging.getLogger(__name__)

# ── Schema ───────────────────────────────────────────────────────────────────

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS categories (
    id          UUID PRIMARY KEY,
    name        TEXT NOT NULL,
    slug        TEXT NOT NULL UNIQUE,
    created_at  TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS products (
    id                 UUID PRIMARY KEY,
    slug               TEXT NOT NULL UNIQUE,
    name               TEXT NOT NULL,
    description        TEXT NOT NULL DEFAULT '',
    short_description  TEXT NOT NULL DEFAULT '',
    sku                TEXT,
    stock_quantity     INTEGER NOT NULL DEFAULT 0,
    price_cents        INTEGER NOT NULL DEFAULT 0 CHECK (price_cents >= 0),
    compare_at_cents   INTEGER,
    tags               TEXT[] NOT NULL DEFAULT '{}',
    meta_title         TEXT,
    meta_description   TEXT,
    status             TEXT NOT NULL DEFAULT 'draft',
    category_id        UUID REFERENCES categories(id),
    metadata           JSONB NOT NULL DEFAULT '{}',
    created_at         TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at         TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS product_variants (
    id                   UUID PRIMARY KEY,
    product_id           UUID NOT NULL REFERENCES products(id) ON DELETE CASCADE,
    sku                  TEXT NOT NULL UNIQUE,
    title                TEXT NOT NULL,
    option1_name         TEXT,
    option1_value        TEXT,
    option2_name         TEXT,
    option2_value        TEXT,
    option3_name         TEXT,
    option3_value        TEXT,
    price_cents          INTEGER NOT NULL CHECK (price_cents >= 0),
    compare_at_cents     INTEGER,
    inventory_qty        INTEGER NOT NULL DEFAULT 0 CHECK (inventory_qty >= 0),
    weight_grams         INTEGER,
    barcode              TEXT,
    requires_shipping    BOOLEAN NOT NULL DEFAULT TRUE,
    taxable              BOOLEAN NOT NULL DEFAULT TRUE,
    inventory_tracker    TEXT,
    inventory_policy     TEXT,
    fulfillment_service  TEXT,
    image_src            TEXT,
    position             INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS product_media (
    id          UUID PRIMARY KEY,
    product_id  UUID NOT NULL REFERENCES products(id) ON DELETE CASCADE,
    src         TEXT NOT NULL,
    position    INTEGER NOT NULL,
    alt_text    TEXT,
    is_primary  BOOLEAN NOT NULL DEFAULT FALSE,
    file_name   TEXT,
    UNIQUE (product_id, src, position)
);

CREATE INDEX IF NOT EXISTS idx_product_variants_product ON product_variants(product_id);
CREATE INDEX IF NOT EXISTS idx_product_media_product ON product_media(product_id);
"""

PRODUCT_COLUMNS = list(ProductRecord.model_fields)
VARIANT_COLUMNS = list(VariantRecord.model_fields)
IMAGE_COLUMNS = list(ImageRecord.model_fields)


# ── Connection Pool Manager ──────────────────────────────────────────────────

class DatabasePool:
    """Manages asyncpg connection pool lifecycle."""

    def __init__(self, dsn: str, min_size: int = 2, max_size: int = 10):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self._pool: Optional[asyncpg.Pool] = None

    async def initialize(self) -> None:
        """Create connection pool and install the jsonb codec."""
        self._pool = await asyncpg.create_pool(
            self.dsn,
            min_size=self.min_size,
            max_size=self.max_size,
            command_timeout=30,
            init=self._init_connection,
        )
        logger.info(
            "Database pool initialized (min=%d, max=%d)", self.min_size, self.max_size
        )

    async def _init_connection(self, conn: asyncpg.Connection) -> None:
        """Per-connection setup: jsonb <-> dict."""
        await conn.set_type_codec(
            "jsonb",
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog",
        )

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database pool not initialized. Call initialize() first.")
        return self._pool

    @asynccontextmanager
    async def acquire(self):
        async with self.pool.acquire() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self):
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def close(self) -> None:
        if self._pool:
            await self._pool.close()
            logger.info("Database pool closed")


# ── Catalog Repository ───────────────────────────────────────────────────────

class AsyncPGCatalogRepository(CatalogRepository):
    """
    Production repository implementing CatalogRepository.

    Tables: categories, products, product_variants, product_media
    (see SCHEMA_SQL). Variant SKUs are globally unique.
    """

    def __init__(self, db: DatabasePool):
        self.db = db

    async def create_schema(self) -> None:
        async with self.db.acquire() as conn:
            await conn.execute(SCHEMA_SQL)
        logger.info("Catalog schema ensured")

    # ── Products ─────────────────────────────────────────────────────────

    async def find_product_by_handle(self, handle: str) -> Optional[ProductRecord]:
        async with self.db.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM products WHERE slug = $1", handle)
            return ProductRecord(**dict(row)) if row else None

    async def create_product(
        self, product: ProductRecord,
        variants: list[VariantRecord], images: list[ImageRecord],
    ) -> ProductRecord:
        values = _product_values(product)
        placeholders = ", ".join(f"${i+1}" for i in range(len(values)))
        try:
            async with self.db.transaction() as conn:
                await conn.execute(
                    f"INSERT INTO products ({', '.join(PRODUCT_COLUMNS)}) VALUES ({placeholders})",
                    *values,
                )
                await self._insert_children(conn, product.id, variants, images)
        except asyncpg.PostgresError as e:
            raise RepositoryError(f"create failed for '{product.slug}': {e}") from e
        logger.info("Created product %s (%s)", product.slug, product.id)
        return product

    async def replace_product(
        self, product_id: UUID, product: ProductRecord,
        variants: list[VariantRecord], images: list[ImageRecord],
    ) -> ProductRecord:
        updates = {
            k: v for k, v in zip(PRODUCT_COLUMNS, _product_values(product))
            if k not in ("id", "created_at")
        }
        updates["updated_at"] = datetime.now(timezone.utc)
        sets = [f"{k} = ${i+1}" for i, k in enumerate(updates)]
        vals = list(updates.values()) + [product_id]
        query = (
            f"UPDATE products SET {', '.join(sets)} "
            f"WHERE id = ${len(vals)} RETURNING *"
        )

        try:
            async with self.db.transaction() as conn:
                await conn.execute("DELETE FROM product_variants WHERE product_id = $1", product_id)
                await conn.execute("DELETE FROM product_media WHERE product_id = $1", product_id)
                row = await conn.fetchrow(query, *vals)
                if row is None:
                    raise RepositoryError(f"Product {product_id} not found")
                await self._insert_children(conn, product_id, variants, images)
        except asyncpg.PostgresError as e:
            raise RepositoryError(f"replace failed for '{product.slug}': {e}") from e
        logger.info("Replaced product %s (%s)", product.slug, product_id)
        return ProductRecord(**dict(row))

    async def _insert_children(
        self, conn: asyncpg.Connection, product_id: UUID,
        variants: list[VariantRecord], images: list[ImageRecord],
    ) -> None:
        if variants:
            await conn.executemany(
                _insert_sql("product_variants", VARIANT_COLUMNS),
                [_child_values(v, VARIANT_COLUMNS, product_id) for v in variants],
            )
        if images:
            await conn.executemany(
                _insert_sql("product_media", IMAGE_COLUMNS),
                [_child_values(img, IMAGE_COLUMNS, product_id) for img in images],
            )

    async def count_products(self) -> int:
        async with self.db.acquire() as conn:
            return await conn.fetchval("SELECT COUNT(*) FROM products")

    # ── Variants & Media ─────────────────────────────────────────────────

    async def find_sku_owner(self, sku: str) -> Optional[UUID]:
        async with self.db.acquire() as conn:
            return await conn.fetchval(
                "SELECT product_id FROM product_variants WHERE sku = $1", sku
            )

    async def find_variant_by_sku(self, sku: str) -> Optional[VariantRecord]:
        async with self.db.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM product_variants WHERE sku = $1", sku)
            return VariantRecord(**dict(row)) if row else None

    async def get_variants(self, product_id: UUID) -> list[VariantRecord]:
        async with self.db.acquire() as conn:
            rows = await conn.fetch(
                "SELECT * FROM product_variants WHERE product_id = $1 ORDER BY position",
                product_id,
            )
            return [VariantRecord(**dict(r)) for r in rows]

    async def get_images(self, product_id: UUID) -> list[ImageRecord]:
        async with self.db.acquire() as conn:
            rows = await conn.fetch(
                "SELECT * FROM product_media WHERE product_id = $1 ORDER BY position",
                product_id,
            )
            return [ImageRecord(**dict(r)) for r in rows]

    # ── Categories ───────────────────────────────────────────────────────

    async def find_or_create_category(self, name: str) -> Category:
        slug = category_slug(name)
        if not slug:
            raise RepositoryError(f"Category name '{name}' has no usable characters")
        async with self.db.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM categories WHERE slug = $1", slug)
            if row:
                return Category(**dict(row))

            await conn.execute(
                """
                INSERT INTO categories (id, name, slug, created_at)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (slug) DO NOTHING
                """,
                uuid4(),
                name.strip(),
                slug,
                datetime.now(timezone.utc),
            )
            row = await conn.fetchrow("SELECT * FROM categories WHERE slug = $1", slug)
            return Category(**dict(row))

    # ── Health Check ─────────────────────────────────────────────────────

    async def health_check(self) -> dict:
        try:
            async with self.db.acquire() as conn:
                version = await conn.fetchval("SELECT version()")
                pool = self.db.pool
                return {
                    "status": "healthy",
                    "postgres_version": version,
                    "pool_size": pool.get_size(),
                    "pool_free": pool.get_idle_size(),
                }
        except Exception as e:
            return {"status": "unhealthy", "error": str(e)}


# ── Helpers ──────────────────────────────────────────────────────────────────

def _insert_sql(table: str, columns: list[str]) -> str:
    placeholders = ", ".join(f"${i+1}" for i in range(len(columns)))
    return f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"


def _product_values(product: ProductRecord) -> list[Any]:
    data = product.model_dump()
    data["status"] = product.status.value
    return [data[c] for c in PRODUCT_COLUMNS]


def _child_values(record: VariantRecord | ImageRecord, columns: list[str], product_id: UUID) -> tuple:
    data = record.model_dump()
    data["product_id"] = product_id
    return tuple(data[c] for c in columns)
