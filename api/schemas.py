"""Pydantic schemas for API request/response validation.

The /ingest endpoint receives scraped records in the nested shape scrapers
produce. Browsing endpoints return the response models defined below.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from shared.types import ProductStatus, SearchSort, StockStatus

# =============================================================================
# Ingest Schemas (scraper → API)
# =============================================================================


class ProductIdentifiers(BaseModel):
    brand: str | None = None
    model_name: str | None = None
    model_number: str | None = None
    original_title: str | None = None


class VariantAttributes(BaseModel):
    ram: int | None = None
    storage: int | None = None
    color: str | None = None


class PriceInfo(BaseModel):
    current: float | None = None
    original: float | None = None
    discount_percent: float | None = None
    currency: str | None = None


class RatingInfo(BaseModel):
    score: float | None = None
    count: int | None = None


class ListingInfo(BaseModel):
    price: PriceInfo = Field(default_factory=PriceInfo)
    rating: RatingInfo = Field(default_factory=RatingInfo)
    availability: str | None = None
    image_url: str | None = None


class SourceDetails(BaseModel):
    source_name: str | None = None
    url: str | None = None
    scraped_at_utc: datetime | None = None


class SourceMetadata(BaseModel):
    category_breadcrumb: list[str] = Field(default_factory=list)


class ScrapedRecord(BaseModel):
    """One product offer as scraped from a store page."""

    model_config = ConfigDict(extra="ignore")

    product_identifiers: ProductIdentifiers = Field(default_factory=ProductIdentifiers)
    key_specifications: dict[str, Any] = Field(default_factory=dict)
    variant_attributes: VariantAttributes = Field(default_factory=VariantAttributes)
    listing_info: ListingInfo = Field(default_factory=ListingInfo)
    source_details: SourceDetails = Field(default_factory=SourceDetails)
    source_metadata: SourceMetadata = Field(default_factory=SourceMetadata)


# =============================================================================
# Ingest Response Schemas
# =============================================================================


class CreatedExisting(BaseModel):
    created: int = 0
    existing: int = 0


class DeduplicationStats(BaseModel):
    model_number_matches: int = 0
    exact_name_matches: int = 0
    variant_matches: int = 0
    new_products: int = 0
    apple_variants: int = 0


class IngestStats(BaseModel):
    """Counters accumulated over one ingestion batch."""

    brands: CreatedExisting = Field(default_factory=CreatedExisting)
    categories: CreatedExisting = Field(default_factory=CreatedExisting)
    products: CreatedExisting = Field(default_factory=CreatedExisting)
    variants: CreatedExisting = Field(default_factory=CreatedExisting)
    listings: CreatedExisting = Field(default_factory=CreatedExisting)
    deduplication: DeduplicationStats = Field(default_factory=DeduplicationStats)
    errors: list[str] = Field(default_factory=list)


class RecordResult(BaseModel):
    """Result for a single record in the batch."""

    index: int
    success: bool
    product_id: UUID | None = None
    variant_id: UUID | None = None
    listing_id: UUID | None = None
    match_type: str | None = None
    error: str | None = None


class IngestResponse(BaseModel):
    """Response for the /ingest endpoint.

    Always returns HTTP 200 with success/failure counts.
    This supports fail-open semantics - scrapers shouldn't retry
    partial failures.
    """

    processed: int
    succeeded: int
    failed: int
    results: list[RecordResult]
    stats: IngestStats


# =============================================================================
# Catalog Schemas (API → clients)
# =============================================================================


class _ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class BrandOut(_ORMModel):
    id: UUID
    name: str
    slug: str
    logo_url: str | None = None
    website_url: str | None = None
    description: str | None = None
    is_active: bool


class BrandWithCount(BaseModel):
    id: UUID
    name: str
    slug: str
    logo_url: str | None = None
    description: str | None = None
    product_count: int


class CategoryOut(_ORMModel):
    id: UUID
    name: str
    slug: str
    parent_id: UUID | None = None
    level: int
    path: str | None = None
    description: str | None = None
    icon: str | None = None
    image_url: str | None = None
    sort_order: int
    is_active: bool
    is_featured: bool
    product_count: int


class BreadcrumbItem(BaseModel):
    id: UUID
    name: str
    slug: str
    path: str | None = None


class BrandRef(_ORMModel):
    id: UUID
    name: str
    slug: str
    logo_url: str | None = None


class CategoryRef(_ORMModel):
    id: UUID
    name: str
    slug: str
    level: int


class ProductOut(_ORMModel):
    id: UUID
    slug: str
    model_name: str
    model_number: str | None = None
    description: str | None = None
    min_price: float | None = None
    max_price: float | None = None
    avg_price: float | None = None
    rating: float | None = None
    is_featured: bool
    launch_date: datetime | None = None
    variant_count: int
    status: ProductStatus
    specifications: dict[str, Any] | None = None
    brand_id: UUID
    category_id: UUID
    brand: BrandRef | None = None
    category: CategoryRef | None = None
    created_at: datetime


class ListingOut(_ORMModel):
    id: UUID
    store_name: str
    title: str
    url: str
    price: float
    original_price: float | None = None
    discount_percentage: float | None = None
    currency: str
    stock_status: StockStatus
    stock_quantity: int | None = None
    seller_name: str | None = None
    seller_rating: float | None = None
    shipping_info: dict[str, Any] | None = None
    rating: float | None = None
    review_count: int
    affiliate_url: str | None = None
    is_active: bool
    price_history: list[dict[str, Any]] = Field(default_factory=list)
    scraped_at: datetime
    last_seen_at: datetime
    created_at: datetime


class VariantOut(_ORMModel):
    id: UUID
    product_id: UUID
    name: str
    sku: str | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)
    images: list[dict[str, Any]] | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class VariantWithListings(VariantOut):
    listings: list[ListingOut] = Field(default_factory=list)


class VariantSummaryOut(BaseModel):
    """A variant with its listings and the price figures computed from them."""

    variant: VariantOut
    product: ProductOut
    brand: BrandRef
    category: CategoryRef
    listings: list[ListingOut]
    min_price: float
    second_min_price: float | None = None
    store_count: int
    primary_image: str | None = None
    avg_rating: float | None = None
    total_reviews: int


class VariantPage(BaseModel):
    total: int
    items: list[VariantSummaryOut]


class CountOut(BaseModel):
    count: int


class SearchFilters(BaseModel):
    """Filters accepted by the /search endpoint."""

    query: str | None = None
    min_price: float | None = None
    max_price: float | None = None
    brands: list[str] = Field(default_factory=list)
    stores: list[str] = Field(default_factory=list)
    min_rating: float | None = None
    in_stock_only: bool = False
    sort: SearchSort = SearchSort.lowest
    limit: int = 20
    offset: int = 0


class DealOut(BaseModel):
    listing: ListingOut
    variant_id: UUID
    variant_name: str
    images: list[dict[str, Any]] | None = None
    product_id: UUID
    model_name: str
    brand: BrandRef | None = None


class StoreListingOut(BaseModel):
    listing: ListingOut
    variant_name: str
    model_name: str
    brand_name: str


class StoreListingPage(BaseModel):
    total: int
    page: int
    limit: int
    items: list[StoreListingOut]


class StoreStats(BaseModel):
    store_name: str
    listing_count: int
    avg_price: float | None = None
    min_price: float | None = None
    max_price: float | None = None


class DeactivateResponse(BaseModel):
    deactivated: int


class RefreshResponse(BaseModel):
    products: int
    categories: int
