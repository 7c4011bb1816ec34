"""FastAPI route handlers for the ShopCompare API.

POST /ingest receives batches of scraped store records and resolves them
into the catalog. Records are processed sequentially so that a product
created by one record is matched, not duplicated, by the next. The GET
routes serve the browsing, search and price comparison views.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from shared.types import SearchSort, SortOption

from . import catalog
from .config import APIConfig
from .database import get_session
from .ingest import CatalogIngester, refresh_catalog_stats
from .models import Listing
from .schemas import (
    BrandOut,
    BrandRef,
    BrandWithCount,
    BreadcrumbItem,
    CategoryOut,
    CategoryRef,
    CountOut,
    DeactivateResponse,
    DealOut,
    IngestResponse,
    ListingOut,
    ProductOut,
    RefreshResponse,
    ScrapedRecord,
    SearchFilters,
    StoreListingOut,
    StoreListingPage,
    StoreStats,
    VariantOut,
    VariantPage,
    VariantSummaryOut,
    VariantWithListings,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_config(request: Request) -> APIConfig:
    """Config stored on the app by create_app(), or defaults."""
    return getattr(request.app.state, "config", None) or APIConfig()


def _summary_out(summary: catalog.VariantSummary) -> VariantSummaryOut:
    return VariantSummaryOut(
        variant=VariantOut.model_validate(summary.variant),
        product=ProductOut.model_validate(summary.product),
        brand=BrandRef.model_validate(summary.brand),
        category=CategoryRef.model_validate(summary.category),
        listings=[ListingOut.model_validate(l) for l in summary.listings],
        min_price=summary.min_price,
        second_min_price=summary.second_min_price,
        store_count=summary.store_count,
        primary_image=summary.primary_image,
        avg_rating=summary.avg_rating,
        total_reviews=summary.total_reviews,
    )


def _deal_out(listing: Listing) -> DealOut:
    variant = listing.variant
    product = variant.product
    return DealOut(
        listing=ListingOut.model_validate(listing),
        variant_id=variant.id,
        variant_name=variant.name,
        images=variant.images,
        product_id=product.id,
        model_name=product.model_name,
        brand=BrandRef.model_validate(product.brand) if product.brand else None,
    )


def _store_listing_out(listing: Listing) -> StoreListingOut:
    variant = listing.variant
    return StoreListingOut(
        listing=ListingOut.model_validate(listing),
        variant_name=variant.name,
        model_name=variant.product.model_name,
        brand_name=variant.product.brand.name,
    )


# =============================================================================
# Ingestion
# =============================================================================


@router.post("/ingest", response_model=IngestResponse)
async def ingest_records(
    records: list[ScrapedRecord],
    session: AsyncSession = Depends(get_session),
    config: APIConfig = Depends(get_config),
) -> IngestResponse:
    """Ingest a batch of scraped records.

    Records are processed in the order received and each one commits on
    its own, so a failing record doesn't affect the others.

    Always returns HTTP 200 with success/failure counts in the body.
    This supports fail-open semantics - scrapers should not retry
    on partial failures.

    Args:
        records: Scraped store records
        session: Database session (injected)
        config: API configuration (injected)

    Returns:
        IngestResponse with processed/succeeded/failed counts, per-record
        results and deduplication statistics.
    """
    ingester = CatalogIngester(session, config)
    result = await ingester.ingest(records)

    return IngestResponse(
        processed=len(records),
        succeeded=result.succeeded,
        failed=result.failed,
        results=result.results,
        stats=result.stats,
    )


@router.post("/maintenance/refresh-stats", response_model=RefreshResponse)
async def refresh_stats(session: AsyncSession = Depends(get_session)) -> RefreshResponse:
    """Recompute product price ranges, variant counts and category counts."""
    products, categories = await refresh_catalog_stats(session)
    return RefreshResponse(products=products, categories=categories)


@router.post("/maintenance/deactivate-stale", response_model=DeactivateResponse)
async def deactivate_stale(
    days_old: int = Query(7, ge=1),
    session: AsyncSession = Depends(get_session),
) -> DeactivateResponse:
    """Deactivate listings no scraper has seen for `days_old` days."""
    count = await catalog.deactivate_stale_listings(session, days_old=days_old)
    return DeactivateResponse(deactivated=count)


# =============================================================================
# Brands and categories
# =============================================================================


@router.get("/brands", response_model=list[BrandOut])
async def get_brands(session: AsyncSession = Depends(get_session)):
    return await catalog.list_brands(session)


@router.get("/brands/counts", response_model=list[BrandWithCount])
async def get_brands_with_counts(session: AsyncSession = Depends(get_session)):
    return await catalog.brands_with_product_counts(session)


@router.get("/brands/search", response_model=list[BrandOut])
async def get_brand_search(
    q: str = Query(..., min_length=1),
    limit: int = Query(10, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
):
    return await catalog.search_brands(session, q, limit=limit)


@router.get("/categories", response_model=list[CategoryOut])
async def get_categories(session: AsyncSession = Depends(get_session)):
    return await catalog.list_categories(session)


@router.get("/categories/featured", response_model=list[CategoryOut])
async def get_featured_categories(
    limit: int = Query(8, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
):
    return await catalog.featured_categories(session, limit=limit)


@router.get("/categories/roots", response_model=list[CategoryOut])
async def get_root_categories(session: AsyncSession = Depends(get_session)):
    return await catalog.root_categories(session)


@router.get("/categories/tree")
async def get_category_tree(
    max_depth: int = Query(3, ge=1, le=10),
    session: AsyncSession = Depends(get_session),
) -> list[dict]:
    """Active categories as a nested tree."""
    return await catalog.category_tree(session, max_depth=max_depth)


@router.get("/categories/{category_id}/breadcrumb", response_model=list[BreadcrumbItem])
async def get_breadcrumb(category_id: UUID, session: AsyncSession = Depends(get_session)):
    trail = await catalog.breadcrumb(session, category_id)
    if not trail:
        raise HTTPException(status_code=404, detail=f"Category {category_id} not found")
    return trail


@router.get("/categories/{category_id}/descendants", response_model=list[CategoryOut])
async def get_descendants(category_id: UUID, session: AsyncSession = Depends(get_session)):
    return await catalog.descendants(session, category_id)


@router.get("/categories/{category_id}/ancestors", response_model=list[CategoryOut])
async def get_ancestors(category_id: UUID, session: AsyncSession = Depends(get_session)):
    return await catalog.ancestors(session, category_id)


@router.post("/categories/{category_id}/move", response_model=CategoryOut)
async def post_move_category(
    category_id: UUID,
    parent_id: UUID | None = None,
    session: AsyncSession = Depends(get_session),
):
    """Move a category under `parent_id`, or to the root when omitted."""
    try:
        return await catalog.move_category(session, category_id, parent_id)
    except ValueError as e:
        status = 404 if "not found" in str(e) else 400
        raise HTTPException(status_code=status, detail=str(e)) from e


# =============================================================================
# Products
# =============================================================================


@router.get("/products", response_model=list[ProductOut])
async def get_products(
    limit: int | None = Query(None, ge=1),
    session: AsyncSession = Depends(get_session),
):
    return await catalog.list_products(session, limit=limit)


@router.get("/products/featured", response_model=list[ProductOut])
async def get_featured_products(
    limit: int = Query(6, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
):
    return await catalog.featured_products(session, limit=limit)


@router.get("/products/search", response_model=list[ProductOut])
async def get_product_search(
    q: str | None = None,
    limit: int = Query(50, ge=1, le=200),
    session: AsyncSession = Depends(get_session),
):
    return await catalog.search_products(session, q, limit=limit)


@router.get("/categories/{slug}/products", response_model=list[ProductOut])
async def get_category_products(slug: str, session: AsyncSession = Depends(get_session)):
    return await catalog.products_by_category(session, slug)


@router.get("/products/{product_id}", response_model=ProductOut)
async def get_product(product_id: UUID, session: AsyncSession = Depends(get_session)):
    product = await catalog.get_product(session, product_id)
    if product is None:
        raise HTTPException(status_code=404, detail=f"Product {product_id} not found")
    return product


@router.get("/products/{product_id}/variants", response_model=list[VariantWithListings])
async def get_product_variants(product_id: UUID, session: AsyncSession = Depends(get_session)):
    return await catalog.product_variants(session, product_id)


# =============================================================================
# Variants and search
# =============================================================================


@router.get("/categories/{category_name}/variants", response_model=VariantPage)
async def get_category_variants(
    category_name: str,
    sort: SortOption = SortOption.newest,
    limit: int | None = Query(None, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
    config: APIConfig = Depends(get_config),
) -> VariantPage:
    """Compared variants (listed by two or more stores) of a category."""
    total = await catalog.category_variant_count(session, category_name)
    summaries = await catalog.category_variants(
        session, category_name, sort=sort, limit=limit or config.page_size, offset=offset
    )
    return VariantPage(total=total, items=[_summary_out(s) for s in summaries])


@router.get("/categories/{category_name}/variants/count", response_model=CountOut)
async def get_category_variant_count(
    category_name: str, session: AsyncSession = Depends(get_session)
) -> CountOut:
    return CountOut(count=await catalog.category_variant_count(session, category_name))


@router.get("/variants/trending", response_model=list[VariantSummaryOut])
async def get_trending_variants(
    limit: int = Query(10, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
) -> list[VariantSummaryOut]:
    return [_summary_out(s) for s in await catalog.trending_variants(session, limit=limit)]


@router.get("/variants/{variant_id}", response_model=VariantSummaryOut)
async def get_variant(
    variant_id: UUID, session: AsyncSession = Depends(get_session)
) -> VariantSummaryOut:
    summary = await catalog.variant_detail(session, variant_id)
    if summary is None:
        raise HTTPException(status_code=404, detail=f"Variant {variant_id} not found")
    return _summary_out(summary)


@router.get("/variants/{variant_id}/prices", response_model=list[ListingOut])
async def get_price_comparison(variant_id: UUID, session: AsyncSession = Depends(get_session)):
    return await catalog.price_comparison(session, variant_id)


@router.get("/variants/{variant_id}/best-offers", response_model=list[ListingOut])
async def get_best_offers(
    variant_id: UUID,
    limit: int = Query(5, ge=1, le=50),
    session: AsyncSession = Depends(get_session),
):
    return await catalog.best_offers(session, variant_id, limit=limit)


@router.get("/search", response_model=VariantPage)
async def get_search(
    q: str | None = None,
    min_price: float | None = None,
    max_price: float | None = None,
    brand: list[str] | None = Query(None),
    store: list[str] | None = Query(None),
    min_rating: float | None = None,
    in_stock: bool = False,
    sort: SearchSort = SearchSort.lowest,
    limit: int = Query(20, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
) -> VariantPage:
    """Search listed variants by text, price range, brand, store and rating."""
    filters = SearchFilters(
        query=q,
        min_price=min_price,
        max_price=max_price,
        brands=brand or [],
        stores=store or [],
        min_rating=min_rating,
        in_stock_only=in_stock,
        sort=sort,
        limit=limit,
        offset=offset,
    )
    total, page = await catalog.search_variants(session, filters)
    return VariantPage(total=total, items=[_summary_out(s) for s in page])


# =============================================================================
# Listings and stores
# =============================================================================


@router.get("/deals/top", response_model=list[DealOut])
async def get_top_deals(
    min_price: float | None = Query(None, ge=0),
    limit: int = Query(10, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
    config: APIConfig = Depends(get_config),
) -> list[DealOut]:
    floor = config.top_deal_min_price if min_price is None else min_price
    listings = await catalog.top_deals(session, min_price=floor, limit=limit)
    return [_deal_out(listing) for listing in listings]


@router.get("/listings/stale", response_model=list[StoreListingOut])
async def get_stale_listings(
    hours_old: int = Query(24, ge=1),
    session: AsyncSession = Depends(get_session),
) -> list[StoreListingOut]:
    listings = await catalog.stale_listings(session, hours_old=hours_old)
    return [_store_listing_out(listing) for listing in listings]


@router.get("/stores/top", response_model=list[StoreStats])
async def get_top_stores(
    limit: int = Query(10, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
):
    return await catalog.top_stores(session, limit=limit)


@router.get("/stores/{store_name}/listings", response_model=StoreListingPage)
async def get_store_listings(
    store_name: str,
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1, le=200),
    session: AsyncSession = Depends(get_session),
    config: APIConfig = Depends(get_config),
) -> StoreListingPage:
    page_size = limit or config.page_size
    total, listings = await catalog.listings_by_store(
        session, store_name, page=page, limit=page_size
    )
    return StoreListingPage(
        total=total,
        page=page,
        limit=page_size,
        items=[_store_listing_out(listing) for listing in listings],
    )
