"""ShopCompare API backend."""

from .config import APIConfig, load_config
from .database import close_db, get_session, init_db, is_initialized
from .ingest import CatalogIngester, IngestResult, refresh_catalog_stats
from .main import app, create_app
from .models import Base, Brand, Category, Listing, Product, ProductVariant
from .routes import router
from .schemas import (
    IngestResponse,
    IngestStats,
    RecordResult,
    ScrapedRecord,
)
from .seed import seed_categories

__all__ = [
    # Configuration
    "APIConfig",
    "load_config",
    # Database
    "init_db",
    "get_session",
    "close_db",
    "is_initialized",
    # Models
    "Base",
    "Brand",
    "Category",
    "Product",
    "ProductVariant",
    "Listing",
    # Ingestion
    "CatalogIngester",
    "IngestResult",
    "refresh_catalog_stats",
    "seed_categories",
    # Application
    "app",
    "create_app",
    "router",
    # Schemas
    "ScrapedRecord",
    "IngestResponse",
    "IngestStats",
    "RecordResult",
]
