"""
Catalog Ingest - FastAPI Application Layer

Endpoints:
  1. POST /imports/preview   - Dry-run parse of an uploaded CSV
  2. POST /imports           - Parse + reconcile an uploaded CSV
  3. POST /imports/commit    - Reconcile a previewed product list
  4. GET  /categories        - Available category labels
  5. POST /categories/detect - Classify one product's text
  6. GET  /health            - Health check
"""
from __future__ import annotations
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from catalog_ingest import __version__
from catalog_ingest.asyncpg_repository import AsyncPGCatalogRepository, DatabasePool
from catalog_ingest.config import Settings, get_settings
from catalog_ingest.errors import CSVStructureError
from catalog_ingest.models import (
    CategoryDetectionResult, DetectionInput, ImportReport, ParsedProduct, ParseResult,
)
from catalog_ingest.repository import CatalogRepository, InMemoryRepository
from catalog_ingest.service import CatalogImportService

logger = logging.getLogger(__name__)

# ============================================================
# Application State (shared singletons)
# ============================================================

class AppState:
    """Holds all shared service instances."""
    settings: Settings
    repo: CatalogRepository
    service: CatalogImportService
    db: Optional[DatabasePool]
    start_time: float

    def __init__(self):
        self.start_time = time.monotonic()
        self.db = None


_state = AppState()


# ============================================================
# Lifespan: Startup / Shutdown
# ============================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize services on startup, cleanup on shutdown."""
    settings = get_settings()
    _state.settings = settings

    if settings.use_database:
        db = DatabasePool(settings.asyncpg_dsn, settings.db_pool_min, settings.db_pool_max)
        await db.initialize()
        repo = AsyncPGCatalogRepository(db)
        await repo.create_schema()
        _state.db = db
        _state.repo = repo
    else:
        logger.info("use_database disabled, using in-memory catalog")
        _state.repo = InMemoryRepository()

    _state.service = CatalogImportService.from_settings(_state.repo, settings)
    _state.start_time = time.monotonic()
    logger.info("Catalog ingest API ready")

    yield

    if _state.db is not None:
        await _state.db.close()
        _state.db = None
    logger.info("Catalog ingest API stopped")


app = FastAPI(
    title="Catalog Ingest",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origin_list,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================
# Request/Response Models (API-specific)
# ============================================================

class CommitRequest(BaseModel):
    products: list[ParsedProduct]
    parse_warnings: list[str] = Field(default_factory=list)


class CategoryListResponse(BaseModel):
    categories: list[str]


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: int
    components: dict[str, Any] = Field(default_factory=dict)


# ============================================================
# Helpers
# ============================================================

async def _read_upload(file: UploadFile) -> str:
    data = await file.read()
    limit = _state.settings.max_upload_bytes
    if len(data) > limit:
        raise HTTPException(
            413, f"{file.filename}: exceeds {_state.settings.max_upload_size_mb}MB limit")
    try:
        return _state.service.decode(data)
    except CSVStructureError as e:
        raise HTTPException(400, str(e))


# ============================================================
# Imports
# ============================================================

@app.post("/imports/preview", response_model=ParseResult, tags=["Imports"])
async def preview_import(file: UploadFile = File(...)):
    """Parse and classify without writing anything."""
    content = await _read_upload(file)
    try:
        return _state.service.preview(content)
    except CSVStructureError as e:
        raise HTTPException(400, str(e))


@app.post("/imports", response_model=ImportReport, tags=["Imports"])
async def run_import(file: UploadFile = File(...)):
    """Parse and reconcile in a single request."""
    content = await _read_upload(file)
    try:
        report = await _state.service.import_csv(content)
    except CSVStructureError as e:
        raise HTTPException(400, str(e))
    logger.info(f"[import] file={file.filename} {report.message}")
    return report


@app.post("/imports/commit", response_model=ImportReport, tags=["Imports"])
async def commit_import(request: CommitRequest):
    """Reconcile products previously returned by /imports/preview."""
    if not request.products:
        raise HTTPException(400, "No products to import")
    return await _state.service.commit(request.products, request.parse_warnings)


# ============================================================
# Categories
# ============================================================

@app.get("/categories", response_model=CategoryListResponse, tags=["Categories"])
async def list_categories():
    detector = _state.service.assembler.detector
    return CategoryListResponse(categories=detector.available_categories())


@app.post("/categories/detect", response_model=CategoryDetectionResult, tags=["Categories"])
async def detect_category(fields: DetectionInput):
    return _state.service.assembler.detector.detect(fields)


# ============================================================
# System
# ============================================================

@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check():
    """System health check."""
    if isinstance(_state.repo, AsyncPGCatalogRepository):
        repository = await _state.repo.health_check()
    else:
        repository = {
            "status": "healthy",
            "backend": "memory",
            "products": await _state.repo.count_products(),
        }
    return HealthResponse(
        status=repository.get("status", "healthy"),
        version=__version__,
        uptime_seconds=int(time.monotonic() - _state.start_time),
        components={"repository": repository},
    )


# ============================================================
# Entry Point
# ============================================================

if __name__ == "__main__":
    import uvicorn
    from catalog_ingest.logging_config import setup_logging_from_settings

    settings = get_settings()
    setup_logging_from_settings(settings)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
