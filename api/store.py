"""Find-or-create primitives over the catalog tables.

Every function takes an open AsyncSession and flushes so generated ids are
available, but never commits. Transaction boundaries belong to the caller
(the ingester commits once per record).
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.normalize import product_slug, slugify, variant_key, variant_name
from shared.types import ProductStatus, StockStatus

from .models import Brand, Category, Listing, Product, ProductVariant, utcnow

logger = logging.getLogger(__name__)

DEFAULT_PRICE_HISTORY_LIMIT = 30


# =============================================================================
# Brands
# =============================================================================


async def find_or_create_brand(session: AsyncSession, name: str) -> tuple[Brand, bool]:
    """Find a brand by slug, then by exact name, or create it.

    Returns:
        (brand, created)
    """
    name = name.strip()
    slug = slugify(name)

    result = await session.execute(select(Brand).where(Brand.slug == slug))
    brand = result.scalar_one_or_none()
    if brand is not None:
        return brand, False

    result = await session.execute(select(Brand).where(Brand.name == name))
    brand = result.scalar_one_or_none()
    if brand is not None:
        return brand, False

    brand = Brand(name=name, slug=slug, is_active=True)
    session.add(brand)
    await session.flush()
    logger.debug("Created brand %s", slug)
    return brand, True


# =============================================================================
# Categories
# =============================================================================


async def find_category_by_name(session: AsyncSession, name: str) -> Category | None:
    result = await session.execute(
        select(Category).where(Category.name == name).order_by(Category.level).limit(1)
    )
    return result.scalar_one_or_none()


async def find_or_create_category(
    session: AsyncSession,
    name: str,
    parent_id: uuid.UUID | None = None,
    **fields: Any,
) -> tuple[Category, bool]:
    """Find a category by name under a parent, or create it.

    New categories get their level and path from the parent. Extra keyword
    arguments (description, sort_order, is_featured, ...) only apply on create.

    Returns:
        (category, created)
    """
    name = name.strip()
    stmt = select(Category).where(Category.name == name)
    if parent_id is None:
        stmt = stmt.where(Category.parent_id.is_(None))
    else:
        stmt = stmt.where(Category.parent_id == parent_id)

    result = await session.execute(stmt)
    category = result.scalar_one_or_none()
    if category is not None:
        return category, False

    slug = fields.pop("slug", None) or slugify(name)
    level = 0
    path = f"/{slug}"
    if parent_id is not None:
        parent = await session.get(Category, parent_id)
        if parent is not None:
            level = parent.level + 1
            path = f"{parent.path}/{slug}"

    category = Category(
        name=name,
        slug=slug,
        parent_id=parent_id,
        level=level,
        path=path,
        is_active=True,
        **fields,
    )
    session.add(category)
    await session.flush()
    return category, True


# =============================================================================
# Products
# =============================================================================


async def find_or_create_product(
    session: AsyncSession,
    model_name: str,
    brand_id: uuid.UUID,
    category_id: uuid.UUID,
) -> tuple[Product, bool]:
    """Find a product by slug, then by (model_name, brand), or create it.

    `model_name` must already be normalized to lowercase. A product found by
    name whose slug is stale gets its slug rewritten. Slugs are global, so
    when another brand already owns the slug the new product's slug is
    suffixed with its brand slug. A brand that already owns that suffixed
    slug gets its product back; otherwise a number is appended until the
    slug is free.

    Returns:
        (product, created)
    """
    model_name = model_name.strip()
    slug = product_slug(model_name)

    slug_owner = await _product_by_slug(session, slug)
    if slug_owner is not None and slug_owner.brand_id == brand_id:
        return slug_owner, False

    result = await session.execute(
        select(Product)
        .where(Product.model_name == model_name, Product.brand_id == brand_id)
        .limit(1)
    )
    product = result.scalar_one_or_none()
    if product is not None:
        if product.slug != slug and slug_owner is None:
            product.slug = slug
            await session.flush()
        return product, False

    if slug_owner is not None:
        brand = await session.get(Brand, brand_id)
        slug = f"{slug}-{brand.slug}" if brand is not None else f"{slug}-{brand_id.hex[:8]}"
        suffixed = await _product_by_slug(session, slug)
        if suffixed is not None and suffixed.brand_id == brand_id:
            return suffixed, False
        if suffixed is not None:
            slug = await _free_product_slug(session, slug)

    product = Product(
        model_name=model_name,
        slug=slug,
        brand_id=brand_id,
        category_id=category_id,
        status=ProductStatus.active,
    )
    session.add(product)
    await session.flush()
    return product, True


async def _product_by_slug(session: AsyncSession, slug: str) -> Product | None:
    result = await session.execute(select(Product).where(Product.slug == slug))
    return result.scalar_one_or_none()


async def _free_product_slug(session: AsyncSession, base: str) -> str:
    """First of `base-2`, `base-3`, ... that no product uses."""
    n = 2
    while await _product_by_slug(session, f"{base}-{n}") is not None:
        n += 1
    return f"{base}-{n}"


async def find_product_by_model_number(
    session: AsyncSession, model_number: str, brand_id: uuid.UUID
) -> Product | None:
    result = await session.execute(
        select(Product)
        .where(Product.model_number == model_number, Product.brand_id == brand_id)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def find_products_by_names(
    session: AsyncSession, names: list[str], brand_id: uuid.UUID
) -> list[Product]:
    result = await session.execute(
        select(Product)
        .where(Product.model_name.in_(names), Product.brand_id == brand_id)
        .order_by(Product.created_at)
    )
    return list(result.scalars().all())


# =============================================================================
# Variants
# =============================================================================


async def find_or_create_variant(
    session: AsyncSession,
    product: Product,
    brand_name: str,
    attributes: dict[str, Any],
) -> tuple[ProductVariant, bool]:
    """Find a variant of `product` with the same identity, or create it.

    Identity is the variant key (RAM, storage, color; RAM ignored for
    Apple), compared in Python because JSON equality is not portable
    across databases.

    Returns:
        (variant, created)
    """
    wanted = variant_key(
        product.id,
        brand_name,
        attributes.get("ram_gb"),
        attributes.get("storage_gb"),
        attributes.get("color"),
    )

    result = await session.execute(
        select(ProductVariant)
        .where(ProductVariant.product_id == product.id)
        .order_by(ProductVariant.created_at)
    )
    for variant in result.scalars():
        attrs = variant.attributes or {}
        key = variant_key(
            product.id,
            brand_name,
            attrs.get("ram_gb"),
            attrs.get("storage_gb"),
            attrs.get("color"),
        )
        if key == wanted:
            return variant, False

    variant = ProductVariant(
        product_id=product.id,
        name=variant_name(brand_name, product.model_name, attributes),
        attributes=attributes,
        images=[],
        is_active=True,
    )
    session.add(variant)
    await session.flush()
    return variant, True


def merge_variant_images(variant: ProductVariant, images: list[dict[str, Any]]) -> bool:
    """Append images whose URL the variant doesn't have yet.

    Returns:
        True if the variant changed.
    """
    existing = list(variant.images or [])
    known = {img.get("url") for img in existing}
    new_images = [img for img in images if img.get("url") not in known]
    if not new_images:
        return False

    # Reassign so the JSON column is marked dirty
    variant.images = existing + new_images
    return True


# =============================================================================
# Listings
# =============================================================================


async def create_or_update_listing(
    session: AsyncSession,
    variant_id: uuid.UUID,
    data: dict[str, Any],
    history_limit: int = DEFAULT_PRICE_HISTORY_LIMIT,
) -> tuple[Listing, bool]:
    """Create a listing or refresh the one for the same store URL.

    A listing is identified by (variant_id, store_name, url). When an
    existing listing's price changes, the previous price and the time it was
    last updated are appended to price_history, keeping at most
    `history_limit` points.

    Returns:
        (listing, created)
    """
    result = await session.execute(
        select(Listing).where(
            Listing.variant_id == variant_id,
            Listing.store_name == data["store_name"],
            Listing.url == data["url"],
        )
    )
    listing = result.scalar_one_or_none()
    now = utcnow()

    values = dict(data)
    if "stock_status" in values and not isinstance(values["stock_status"], StockStatus):
        values["stock_status"] = StockStatus(values["stock_status"])

    if listing is None:
        values.setdefault("scraped_at", now)
        listing = Listing(
            variant_id=variant_id,
            last_seen_at=now,
            price_history=[],
            is_active=True,
            **values,
        )
        session.add(listing)
        await session.flush()
        return listing, True

    if float(listing.price) != float(values.get("price", listing.price)):
        history = list(listing.price_history or [])
        history.append(
            {
                "price": listing.price,
                "date": listing.updated_at.isoformat() if listing.updated_at else None,
            }
        )
        history = history[-history_limit:] if history_limit > 0 else []
        listing.price_history = history

    for key, value in values.items():
        setattr(listing, key, value)
    listing.scraped_at = now
    listing.last_seen_at = now
    listing.is_active = True
    await session.flush()
    return listing, False
