"""Read-side catalog queries: browsing, filtering, sorting and price comparison.

Variant listings are summarized into `VariantSummary` objects that carry the
figures shoppers compare on (lowest and second-lowest price, number of
stores, average rating, total reviews). Sorting and filtering on those
computed figures happens in Python after loading; everything that can be
expressed on stored columns is pushed into SQL.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from shared.normalize import primary_image
from shared.types import ProductStatus, SearchSort, SortOption, StockStatus

from .models import Brand, Category, Listing, Product, ProductVariant, utcnow
from .schemas import SearchFilters

logger = logging.getLogger(__name__)

IN_STOCK_STATUSES = (StockStatus.in_stock, StockStatus.limited_stock)


# =============================================================================
# Brands
# =============================================================================


async def list_brands(session: AsyncSession) -> list[Brand]:
    result = await session.execute(
        select(Brand).where(Brand.is_active.is_(True)).order_by(Brand.name)
    )
    return list(result.scalars().all())


async def brands_with_product_counts(session: AsyncSession) -> list[dict[str, Any]]:
    """Active brands with the number of products each has, by name."""
    stmt = (
        select(Brand, func.count(Product.id).label("product_count"))
        .outerjoin(Product, Product.brand_id == Brand.id)
        .where(Brand.is_active.is_(True))
        .group_by(Brand.id)
        .order_by(Brand.name)
    )
    rows = (await session.execute(stmt)).all()
    return [
        {
            "id": brand.id,
            "name": brand.name,
            "slug": brand.slug,
            "logo_url": brand.logo_url,
            "description": brand.description,
            "product_count": count,
        }
        for brand, count in rows
    ]


async def search_brands(session: AsyncSession, query: str, limit: int = 10) -> list[Brand]:
    result = await session.execute(
        select(Brand)
        .where(Brand.name.ilike(f"%{query}%"), Brand.is_active.is_(True))
        .order_by(Brand.name)
        .limit(limit)
    )
    return list(result.scalars().all())


# =============================================================================
# Categories
# =============================================================================


async def list_categories(session: AsyncSession) -> list[Category]:
    result = await session.execute(
        select(Category)
        .where(Category.is_active.is_(True))
        .order_by(Category.sort_order, Category.name)
    )
    return list(result.scalars().all())


async def featured_categories(session: AsyncSession, limit: int = 8) -> list[Category]:
    result = await session.execute(
        select(Category)
        .where(Category.is_active.is_(True), Category.is_featured.is_(True))
        .order_by(Category.sort_order, Category.name)
        .limit(limit)
    )
    return list(result.scalars().all())


async def root_categories(session: AsyncSession) -> list[Category]:
    result = await session.execute(
        select(Category)
        .where(Category.parent_id.is_(None), Category.is_active.is_(True))
        .order_by(Category.sort_order, Category.name)
    )
    return list(result.scalars().all())


async def category_tree(session: AsyncSession, max_depth: int = 3) -> list[dict[str, Any]]:
    """Active categories as nested dicts, `max_depth` levels deep from the roots."""
    categories = await list_categories(session)
    by_parent: dict[uuid.UUID | None, list[Category]] = {}
    for category in categories:
        by_parent.setdefault(category.parent_id, []).append(category)

    def build(parent_id: uuid.UUID | None, depth: int) -> list[dict[str, Any]]:
        if depth >= max_depth:
            return []
        nodes = []
        for category in by_parent.get(parent_id, []):
            node = category.to_dict()
            node["children"] = build(category.id, depth + 1)
            nodes.append(node)
        return nodes

    return build(None, 0)


async def breadcrumb(session: AsyncSession, category_id: uuid.UUID) -> list[dict[str, Any]]:
    """Path from the root down to `category_id`; empty if it doesn't exist."""
    trail: list[dict[str, Any]] = []
    current = await session.get(Category, category_id)
    while current is not None:
        trail.insert(
            0,
            {
                "id": current.id,
                "name": current.name,
                "slug": current.slug,
                "path": current.path,
            },
        )
        if current.parent_id is None:
            break
        current = await session.get(Category, current.parent_id)
    return trail


async def ancestors(session: AsyncSession, category_id: uuid.UUID) -> list[Category]:
    """Ancestors of a category, root first."""
    result: list[Category] = []
    current = await session.get(Category, category_id)
    while current is not None and current.parent_id is not None:
        parent = await session.get(Category, current.parent_id)
        if parent is None:
            break
        result.insert(0, parent)
        current = parent
    return result


async def descendants(session: AsyncSession, category_id: uuid.UUID) -> list[Category]:
    """All categories below `category_id`, depth-first."""
    found: list[Category] = []

    async def collect(parent_id: uuid.UUID) -> None:
        result = await session.execute(
            select(Category)
            .where(Category.parent_id == parent_id)
            .order_by(Category.sort_order, Category.name)
        )
        for child in result.scalars().all():
            found.append(child)
            await collect(child.id)

    await collect(category_id)
    return found


async def move_category(
    session: AsyncSession,
    category_id: uuid.UUID,
    new_parent_id: uuid.UUID | None,
) -> Category:
    """Re-parent a category, rewriting level and path of its whole subtree.

    Raises:
        ValueError: If either category is missing, or the move would put a
            category under itself.
    """
    category = await session.get(Category, category_id)
    if category is None:
        raise ValueError(f"Category {category_id} not found")

    new_level = 0
    new_path = f"/{category.slug}"
    if new_parent_id is not None:
        parent = await session.get(Category, new_parent_id)
        if parent is None:
            raise ValueError(f"Category {new_parent_id} not found")
        if parent.id == category.id or (
            parent.path and category.path and parent.path.startswith(category.path + "/")
        ):
            raise ValueError("Cannot move a category under itself")
        new_level = parent.level + 1
        new_path = f"{parent.path}/{category.slug}"

    old_path = category.path or f"/{category.slug}"
    level_diff = new_level - category.level
    subtree = await descendants(session, category.id)

    category.parent_id = new_parent_id
    category.level = new_level
    category.path = new_path

    for child in subtree:
        child.level += level_diff
        if child.path and child.path.startswith(old_path):
            child.path = new_path + child.path[len(old_path):]

    await session.commit()
    return category


async def update_product_count(session: AsyncSession, category_id: uuid.UUID) -> int:
    category = await session.get(Category, category_id)
    if category is None:
        raise ValueError(f"Category {category_id} not found")

    count = await session.scalar(
        select(func.count(Product.id)).where(Product.category_id == category_id)
    )
    category.product_count = count or 0
    await session.commit()
    return category.product_count


# =============================================================================
# Products
# =============================================================================


def _with_brand_and_category():
    return (selectinload(Product.brand), selectinload(Product.category))


def _active_products():
    return (
        select(Product)
        .where(Product.status == ProductStatus.active)
        .options(*_with_brand_and_category())
    )


async def list_products(session: AsyncSession, limit: int | None = None) -> list[Product]:
    stmt = _active_products().order_by(Product.created_at.desc())
    if limit:
        stmt = stmt.limit(limit)
    return list((await session.execute(stmt)).scalars().all())


async def featured_products(session: AsyncSession, limit: int = 6) -> list[Product]:
    stmt = (
        _active_products()
        .where(Product.is_featured.is_(True))
        .order_by(Product.created_at.desc())
        .limit(limit)
    )
    return list((await session.execute(stmt)).scalars().all())


async def products_by_category(session: AsyncSession, slug: str) -> list[Product]:
    stmt = (
        _active_products()
        .join(Category, Product.category_id == Category.id)
        .where(Category.slug == slug)
        .order_by(Product.created_at.desc())
    )
    return list((await session.execute(stmt)).scalars().all())


async def get_product(session: AsyncSession, product_id: uuid.UUID) -> Product | None:
    stmt = _active_products().where(Product.id == product_id)
    return (await session.execute(stmt)).scalar_one_or_none()


async def search_products(session: AsyncSession, query: str | None, limit: int = 50) -> list[Product]:
    """Case-insensitive substring search over model name, number and description."""
    stmt = _active_products()
    if query:
        pattern = f"%{query}%"
        stmt = stmt.where(
            or_(
                Product.model_name.ilike(pattern),
                Product.model_number.ilike(pattern),
                Product.description.ilike(pattern),
            )
        )
    stmt = stmt.order_by(Product.created_at.desc()).limit(limit)
    return list((await session.execute(stmt)).scalars().all())


async def product_variants(session: AsyncSession, product_id: uuid.UUID) -> list[ProductVariant]:
    """Active variants of a product, each with its active listings loaded."""
    stmt = (
        select(ProductVariant)
        .where(ProductVariant.product_id == product_id, ProductVariant.is_active.is_(True))
        .options(selectinload(ProductVariant.listings.and_(Listing.is_active.is_(True))))
        .execution_options(populate_existing=True)
        .order_by(ProductVariant.created_at)
    )
    return list((await session.execute(stmt)).scalars().all())


# =============================================================================
# Variant summaries
# =============================================================================


@dataclass
class VariantSummary:
    """A variant with its active listings and the figures computed from them."""

    variant: ProductVariant
    product: Product
    brand: Brand
    category: Category
    listings: list[Listing] = field(default_factory=list)
    min_price: float = 0.0
    second_min_price: float | None = None
    store_count: int = 0
    primary_image: str | None = None
    avg_rating: float | None = None
    total_reviews: int = 0

    @property
    def max_price(self) -> float:
        return max((float(l.price) for l in self.listings), default=0.0)

    @property
    def in_stock(self) -> bool:
        return any(l.is_in_stock() for l in self.listings)

    @property
    def search_text(self) -> str:
        return f"{self.brand.name} {self.product.model_name} {self.variant.name}".lower()


def summarize_variant(variant: ProductVariant) -> VariantSummary:
    """Compute comparison figures over a loaded variant's active listings.

    The variant must have `listings` and `product` (with brand and category)
    loaded.
    """
    listings = sorted(
        (l for l in variant.listings if l.is_active), key=lambda l: float(l.price)
    )
    rated = [float(l.rating) for l in listings if l.rating and l.rating > 0]
    product = variant.product

    return VariantSummary(
        variant=variant,
        product=product,
        brand=product.brand,
        category=product.category,
        listings=listings,
        min_price=float(listings[0].price) if listings else 0.0,
        second_min_price=float(listings[1].price) if len(listings) > 1 else None,
        store_count=len(listings),
        primary_image=primary_image(variant.images),
        avg_rating=sum(rated) / len(rated) if rated else None,
        total_reviews=sum(l.review_count or 0 for l in listings),
    )


def sort_variants(summaries: list[VariantSummary], sort: SortOption | str) -> list[VariantSummary]:
    sort = SortOption(sort)
    if sort == SortOption.newest:
        return sorted(summaries, key=lambda s: s.variant.created_at, reverse=True)
    if sort == SortOption.oldest:
        return sorted(summaries, key=lambda s: s.variant.created_at)
    if sort == SortOption.price_low:
        return sorted(summaries, key=lambda s: s.min_price)
    if sort == SortOption.price_high:
        return sorted(summaries, key=lambda s: s.min_price, reverse=True)
    if sort == SortOption.rating:
        return sorted(summaries, key=lambda s: s.avg_rating or 0, reverse=True)
    if sort == SortOption.reviews:
        return sorted(summaries, key=lambda s: s.total_reviews, reverse=True)
    if sort == SortOption.stores:
        return sorted(summaries, key=lambda s: s.store_count, reverse=True)
    return list(summaries)


def _variant_load_options():
    return (
        selectinload(ProductVariant.product).selectinload(Product.brand),
        selectinload(ProductVariant.product).selectinload(Product.category),
        selectinload(ProductVariant.listings),
    )


def _listing_counts(min_listings: int):
    """Subquery of variant ids with at least `min_listings` active listings."""
    return (
        select(Listing.variant_id)
        .where(Listing.is_active.is_(True))
        .group_by(Listing.variant_id)
        .having(func.count(Listing.id) >= min_listings)
        .subquery()
    )


async def _category_variant_query(session: AsyncSession, category_name: str):
    """Statement for compared variants in a category and its subcategories."""
    category = (
        await session.execute(
            select(Category)
            .where(Category.name == category_name)
            .order_by(Category.level)
            .limit(1)
        )
    ).scalar_one_or_none()
    if category is None:
        return None

    compared = _listing_counts(2)
    return (
        select(ProductVariant)
        .join(compared, compared.c.variant_id == ProductVariant.id)
        .join(Product, ProductVariant.product_id == Product.id)
        .join(Category, Product.category_id == Category.id)
        .where(
            ProductVariant.is_active.is_(True),
            or_(Category.id == category.id, Category.path.startswith(f"{category.path}/")),
        )
    )


async def category_variants(
    session: AsyncSession,
    category_name: str,
    sort: SortOption | str = SortOption.newest,
    limit: int = 20,
    offset: int = 0,
) -> list[VariantSummary]:
    """Variants of a category listed by more than one store, sorted and paged."""
    stmt = await _category_variant_query(session, category_name)
    if stmt is None:
        return []

    stmt = stmt.options(*_variant_load_options()).execution_options(populate_existing=True)
    variants = (await session.execute(stmt)).scalars().all()
    summaries = sort_variants([summarize_variant(v) for v in variants], sort)
    return summaries[offset : offset + limit]


async def category_variant_count(session: AsyncSession, category_name: str) -> int:
    stmt = await _category_variant_query(session, category_name)
    if stmt is None:
        return 0
    return await session.scalar(select(func.count()).select_from(stmt.subquery())) or 0


async def variant_detail(session: AsyncSession, variant_id: uuid.UUID) -> VariantSummary | None:
    stmt = (
        select(ProductVariant)
        .where(ProductVariant.id == variant_id)
        .options(*_variant_load_options())
        .execution_options(populate_existing=True)
    )
    variant = (await session.execute(stmt)).scalar_one_or_none()
    if variant is None:
        return None
    return summarize_variant(variant)


async def trending_variants(session: AsyncSession, limit: int = 10) -> list[VariantSummary]:
    """Newest active variants that more than one store lists."""
    compared = _listing_counts(2)
    stmt = (
        select(ProductVariant)
        .join(compared, compared.c.variant_id == ProductVariant.id)
        .join(Product, ProductVariant.product_id == Product.id)
        .where(
            ProductVariant.is_active.is_(True),
            Product.status == ProductStatus.active,
        )
        .order_by(ProductVariant.created_at.desc())
        .limit(limit)
        .options(*_variant_load_options())
        .execution_options(populate_existing=True)
    )
    variants = (await session.execute(stmt)).scalars().all()
    return [summarize_variant(v) for v in variants]


def _matches(summary: VariantSummary, filters: SearchFilters) -> bool:
    if filters.query and filters.query.strip().lower() not in summary.search_text:
        return False

    low = filters.min_price
    high = filters.max_price
    if low is not None and summary.max_price < low:
        return False
    if high is not None and summary.min_price > high:
        return False

    if filters.brands:
        wanted = {b.lower() for b in filters.brands}
        if summary.brand.name.lower() not in wanted:
            return False

    if filters.stores:
        wanted = {s.lower() for s in filters.stores}
        if not any(l.store_name.lower() in wanted for l in summary.listings):
            return False

    if filters.min_rating is not None and (summary.avg_rating or 0) < filters.min_rating:
        return False

    if filters.in_stock_only and not summary.in_stock:
        return False

    return True


def _search_sort(summaries: list[VariantSummary], sort: SearchSort) -> list[VariantSummary]:
    if sort == SearchSort.lowest:
        return sorted(summaries, key=lambda s: s.min_price)
    if sort == SearchSort.highest:
        return sorted(summaries, key=lambda s: s.min_price, reverse=True)
    if sort == SearchSort.popular:
        return sorted(summaries, key=lambda s: s.total_reviews, reverse=True)
    return sorted(summaries, key=lambda s: s.variant.created_at, reverse=True)


async def search_variants(
    session: AsyncSession, filters: SearchFilters
) -> tuple[int, list[VariantSummary]]:
    """Filter and sort listed variants for the search page.

    Returns:
        (total matches, requested page)
    """
    listed = _listing_counts(1)
    stmt = (
        select(ProductVariant)
        .join(listed, listed.c.variant_id == ProductVariant.id)
        .join(Product, ProductVariant.product_id == Product.id)
        .where(
            ProductVariant.is_active.is_(True),
            Product.status == ProductStatus.active,
        )
        .options(*_variant_load_options())
        .execution_options(populate_existing=True)
    )
    if filters.brands:
        stmt = stmt.join(Brand, Product.brand_id == Brand.id).where(
            func.lower(Brand.name).in_([b.lower() for b in filters.brands])
        )

    variants = (await session.execute(stmt)).scalars().all()
    matched = [s for s in map(summarize_variant, variants) if _matches(s, filters)]
    ordered = _search_sort(matched, filters.sort)
    return len(ordered), ordered[filters.offset : filters.offset + filters.limit]


# =============================================================================
# Listings
# =============================================================================


def _listing_with_product():
    return joinedload(Listing.variant).joinedload(ProductVariant.product).joinedload(Product.brand)


async def top_deals(
    session: AsyncSession, min_price: float = 30000, limit: int = 10
) -> list[Listing]:
    """Listings above a price floor with the biggest discounts."""
    stmt = (
        select(Listing)
        .where(
            Listing.price > min_price,
            Listing.discount_percentage.is_not(None),
            Listing.is_active.is_(True),
        )
        .order_by(Listing.discount_percentage.desc())
        .limit(limit)
        .options(_listing_with_product())
    )
    return list((await session.execute(stmt)).scalars().all())


async def price_comparison(session: AsyncSession, variant_id: uuid.UUID) -> list[Listing]:
    """Every active store listing for a variant, cheapest first."""
    stmt = (
        select(Listing)
        .where(Listing.variant_id == variant_id, Listing.is_active.is_(True))
        .order_by(Listing.price)
    )
    return list((await session.execute(stmt)).scalars().all())


async def best_offers(
    session: AsyncSession, variant_id: uuid.UUID, limit: int = 5
) -> list[Listing]:
    stmt = (
        select(Listing)
        .where(
            Listing.variant_id == variant_id,
            Listing.is_active.is_(True),
            Listing.stock_status.in_(IN_STOCK_STATUSES),
        )
        .order_by(Listing.price)
        .limit(limit)
    )
    return list((await session.execute(stmt)).scalars().all())


async def listings_by_store(
    session: AsyncSession, store_name: str, page: int = 1, limit: int = 20
) -> tuple[int, list[Listing]]:
    """Active listings of one store, cheapest first, paginated from page 1."""
    conditions = (Listing.store_name == store_name, Listing.is_active.is_(True))
    total = await session.scalar(select(func.count(Listing.id)).where(*conditions)) or 0

    stmt = (
        select(Listing)
        .where(*conditions)
        .order_by(Listing.price)
        .limit(limit)
        .offset((max(page, 1) - 1) * limit)
        .options(_listing_with_product())
    )
    return total, list((await session.execute(stmt)).scalars().all())


async def stale_listings(
    session: AsyncSession, hours_old: int = 24, now: datetime | None = None
) -> list[Listing]:
    """Active listings not seen by a scraper for `hours_old` hours, oldest first."""
    cutoff = (now or utcnow()) - timedelta(hours=hours_old)
    stmt = (
        select(Listing)
        .where(Listing.last_seen_at < cutoff, Listing.is_active.is_(True))
        .order_by(Listing.last_seen_at)
        .options(_listing_with_product())
    )
    return list((await session.execute(stmt)).scalars().all())


async def deactivate_stale_listings(
    session: AsyncSession, days_old: int = 7, now: datetime | None = None
) -> int:
    """Mark listings not seen for `days_old` days inactive.

    Returns:
        Number of listings deactivated.
    """
    cutoff = (now or utcnow()) - timedelta(days=days_old)
    result = await session.execute(
        update(Listing)
        .where(Listing.last_seen_at < cutoff, Listing.is_active.is_(True))
        .values(is_active=False)
        .execution_options(synchronize_session="fetch")
    )
    await session.commit()
    logger.info("Deactivated %d stale listings", result.rowcount)
    return result.rowcount


async def top_stores(session: AsyncSession, limit: int = 10) -> list[dict[str, Any]]:
    """Stores ranked by active listing count, with their price spread."""
    listing_count = func.count(Listing.id).label("listing_count")
    stmt = (
        select(
            Listing.store_name,
            listing_count,
            func.avg(Listing.price),
            func.min(Listing.price),
            func.max(Listing.price),
        )
        .where(Listing.is_active.is_(True))
        .group_by(Listing.store_name)
        .order_by(listing_count.desc(), Listing.store_name)
        .limit(limit)
    )
    rows = (await session.execute(stmt)).all()
    return [
        {
            "store_name": store_name,
            "listing_count": count,
            "avg_price": round(float(avg), 2) if avg is not None else None,
            "min_price": float(low) if low is not None else None,
            "max_price": float(high) if high is not None else None,
        }
        for store_name, count, avg, low, high in rows
    ]
