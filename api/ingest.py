"""Deduplicating bulk ingestion of scraped store records.

Each record resolves, in order, to a brand, a category, a product, a variant
of that product and finally a store listing. Products are matched in three
phases so that the same phone scraped from different stores lands on one
catalog row:

1. Model number: same brand and model number.
2. Model name: same brand and normalized name, where "x 5g" and "x" are the
   same product but "x 4g" is a different one.
3. Create: nothing matched, a new product is created.

Lookups are cached per ingester so a bulk load does not re-query rows it
has already resolved. Every record commits on its own; a failing record is
rolled back together with the cache entries it added, and ingestion carries
on with the next one.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.normalize import (
    is_apple,
    name_cache_key,
    normalize_color,
    search_variants,
    stock_status_from_availability,
    variant_key,
)
from shared.types import MatchType, ProductStatus

from . import store
from .config import APIConfig
from .models import Category, Listing, Product, ProductVariant, utcnow
from .schemas import IngestStats, RecordResult, ScrapedRecord

logger = logging.getLogger(__name__)

# Index of the leaf category name in a store breadcrumb
BREADCRUMB_CATEGORY_INDEX = 3

_MISSING = object()


class LookupCache:
    """Dict-backed cache that can undo the writes of the current record."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}
        self._journal: list[tuple[str, Any]] = []

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: str) -> Any:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._journal.append((key, self._data.get(key, _MISSING)))
        self._data[key] = value

    def commit(self) -> None:
        self._journal.clear()

    def rollback(self) -> None:
        for key, previous in reversed(self._journal):
            if previous is _MISSING:
                self._data.pop(key, None)
            else:
                self._data[key] = previous
        self._journal.clear()


@dataclass
class IngestCaches:
    brands: LookupCache = field(default_factory=LookupCache)
    categories: LookupCache = field(default_factory=LookupCache)
    model_numbers: LookupCache = field(default_factory=LookupCache)
    model_names: LookupCache = field(default_factory=LookupCache)
    variants: LookupCache = field(default_factory=LookupCache)

    def _all(self) -> tuple[LookupCache, ...]:
        return (
            self.brands,
            self.categories,
            self.model_numbers,
            self.model_names,
            self.variants,
        )

    def commit(self) -> None:
        for cache in self._all():
            cache.commit()

    def rollback(self) -> None:
        for cache in self._all():
            cache.rollback()


@dataclass
class ProductMatch:
    product_id: uuid.UUID
    match_type: MatchType


@dataclass
class IngestResult:
    stats: IngestStats
    results: list[RecordResult]

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return len(self.results) - self.succeeded


class RecordError(Exception):
    """A record could not be ingested at a given stage."""

    def __init__(self, stage: str, identifier: str, message: str) -> None:
        super().__init__(f"{stage}: {identifier} - {message}")
        self.stage = stage
        self.identifier = identifier


class CatalogIngester:
    """Resolves scraped records into catalog rows.

    One ingester is meant to live for one bulk load; its caches assume the
    catalog is not modified concurrently by anyone else during that time.
    """

    def __init__(self, session: AsyncSession, config: APIConfig | None = None) -> None:
        self._session = session
        self._config = config or APIConfig()
        self.caches = IngestCaches()
        self.stats = IngestStats()

    # -------------------------------------------------------------------------
    # Brand and category
    # -------------------------------------------------------------------------

    async def insert_brand(self, brand_name: str | None) -> uuid.UUID | None:
        if not brand_name or not brand_name.strip():
            return None

        name = brand_name.strip()
        if name in self.caches.brands:
            return self.caches.brands.get(name)

        brand, created = await store.find_or_create_brand(self._session, name)
        self.caches.brands.set(name, brand.id)
        if created:
            self.stats.brands.created += 1
        else:
            self.stats.brands.existing += 1
        return brand.id

    async def resolve_category(self, record: ScrapedRecord) -> uuid.UUID | None:
        """Pick the catalog category named by the record's breadcrumb.

        Unknown or missing names fall back to the configured default category.
        """
        breadcrumb = record.source_metadata.category_breadcrumb
        target = (
            breadcrumb[BREADCRUMB_CATEGORY_INDEX]
            if len(breadcrumb) > BREADCRUMB_CATEGORY_INDEX
            else None
        )
        if not target:
            target = self._config.default_category

        cache_key = f"category:{target}"
        if cache_key in self.caches.categories:
            return self.caches.categories.get(cache_key)

        category = await store.find_category_by_name(self._session, target)
        if category is None:
            logger.warning(
                "Category %r not found, using %r", target, self._config.default_category
            )
            category = await store.find_category_by_name(
                self._session, self._config.default_category
            )
            if category is None:
                return None

        self.caches.categories.set(cache_key, category.id)
        self.stats.categories.existing += 1
        return category.id

    # -------------------------------------------------------------------------
    # Product
    # -------------------------------------------------------------------------

    async def insert_product(
        self,
        record: ScrapedRecord,
        brand_id: uuid.UUID,
        category_id: uuid.UUID,
    ) -> ProductMatch | None:
        """Resolve the record to a product id using the three-phase match."""
        identifiers = record.product_identifiers
        if not identifiers.model_name or not identifiers.model_name.strip():
            return None

        model_number = identifiers.model_number or None
        name = identifiers.model_name.lower().strip()
        name_key = f"{brand_id}:{name_cache_key(name)}"
        dedup = self.stats.deduplication

        matched: Product | None = None
        match_type: MatchType | None = None

        # Phase 1: model number
        if model_number:
            number_key = f"{brand_id}:{model_number}"
            if number_key in self.caches.model_numbers:
                dedup.model_number_matches += 1
                self.stats.products.existing += 1
                return ProductMatch(
                    self.caches.model_numbers.get(number_key), MatchType.model_number
                )

            matched = await store.find_product_by_model_number(
                self._session, model_number, brand_id
            )
            if matched is not None:
                match_type = MatchType.model_number
                dedup.model_number_matches += 1
                self.caches.model_numbers.set(number_key, matched.id)

        # Phase 2: model name, tolerant of a redundant 5G suffix
        if matched is None:
            if name_key in self.caches.model_names:
                dedup.exact_name_matches += 1
                self.stats.products.existing += 1
                return ProductMatch(
                    self.caches.model_names.get(name_key), MatchType.exact_name
                )

            candidates = await store.find_products_by_names(
                self._session, search_variants(name), brand_id
            )
            if candidates:
                matched = next(
                    (p for p in candidates if p.model_name == name), candidates[0]
                )
                if matched.model_name == name:
                    match_type = MatchType.exact_name
                    dedup.exact_name_matches += 1
                else:
                    match_type = MatchType.variant_match
                    dedup.variant_matches += 1
                self.caches.model_names.set(name_key, matched.id)

        if matched is not None:
            self.stats.products.existing += 1
            if model_number and not matched.model_number:
                matched.model_number = model_number
                await self._session.flush()
                self.caches.model_numbers.set(f"{brand_id}:{model_number}", matched.id)
            return ProductMatch(matched.id, match_type)

        # Phase 3: create
        product, created = await store.find_or_create_product(
            self._session, name, brand_id, category_id
        )
        if model_number:
            product.model_number = model_number
        if record.key_specifications or created:
            product.specifications = record.key_specifications
        product.status = ProductStatus.active
        await self._session.flush()

        if created:
            self.stats.products.created += 1
            dedup.new_products += 1
        else:
            self.stats.products.existing += 1

        self.caches.model_names.set(name_key, product.id)
        if model_number:
            self.caches.model_numbers.set(f"{brand_id}:{model_number}", product.id)

        return ProductMatch(
            product.id, MatchType.created if created else MatchType.existing
        )

    # -------------------------------------------------------------------------
    # Variant and listing
    # -------------------------------------------------------------------------

    async def insert_variant(
        self,
        record: ScrapedRecord,
        product_id: uuid.UUID,
        brand_name: str,
    ) -> uuid.UUID:
        attrs = record.variant_attributes
        color = normalize_color(attrs.color)
        key = variant_key(product_id, brand_name, attrs.ram, attrs.storage, color)

        if key in self.caches.variants:
            return self.caches.variants.get(key)

        product = await self._session.get(Product, product_id)
        if product is None:
            raise ValueError(f"product {product_id} not found")

        attributes = {
            "ram_gb": attrs.ram or None,
            "storage_gb": attrs.storage or None,
            "color": color,
        }
        variant, created = await store.find_or_create_variant(
            self._session, product, brand_name, attributes
        )

        image_url = record.listing_info.image_url
        if image_url:
            scraped_at = record.source_details.scraped_at_utc or utcnow()
            changed = store.merge_variant_images(
                variant,
                [
                    {
                        "url": image_url,
                        "type": "main",
                        "source": record.source_details.source_name or "unknown",
                        "scraped_at": scraped_at.isoformat(),
                    }
                ],
            )
            if changed:
                await self._session.flush()

        self.caches.variants.set(key, variant.id)

        if created:
            self.stats.variants.created += 1
            if is_apple(brand_name) and attrs.ram is None:
                self.stats.deduplication.apple_variants += 1
        else:
            self.stats.variants.existing += 1

        return variant.id

    def build_listing_data(self, record: ScrapedRecord) -> dict[str, Any]:
        """Flatten a record into Listing column values."""
        info = record.listing_info
        source = record.source_details
        return {
            "store_name": source.source_name or "unknown",
            "title": record.product_identifiers.original_title or "Unknown Product",
            "url": source.url or "",
            "price": info.price.current or 0,
            "original_price": info.price.original or None,
            "discount_percentage": info.price.discount_percent or None,
            "currency": info.price.currency or "INR",
            "rating": info.rating.score or None,
            "review_count": info.rating.count or 0,
            "stock_status": stock_status_from_availability(info.availability),
            "scraped_at": source.scraped_at_utc or utcnow(),
        }

    async def insert_listing(
        self, record: ScrapedRecord, variant_id: uuid.UUID
    ) -> uuid.UUID:
        data = self.build_listing_data(record)
        listing, created = await store.create_or_update_listing(
            self._session,
            variant_id,
            data,
            history_limit=self._config.price_history_limit,
        )
        if created:
            self.stats.listings.created += 1
        else:
            self.stats.listings.existing += 1
            logger.debug(
                "Updated listing: %s - %s (%s)",
                data["store_name"],
                data["price"],
                data["stock_status"],
            )
        return listing.id

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    async def _ingest_one(self, index: int, record: ScrapedRecord) -> RecordResult:
        identifiers = record.product_identifiers
        brand_name = (identifiers.brand or "").strip()

        brand_id = await self.insert_brand(brand_name)
        if brand_id is None:
            raise RecordError("Brand", repr(identifiers.brand), "brand is required")

        category_id = await self.resolve_category(record)
        if category_id is None:
            raise RecordError(
                "Category",
                self._config.default_category,
                "no matching or default category",
            )

        match = await self.insert_product(record, brand_id, category_id)
        if match is None:
            raise RecordError("Product", repr(identifiers.model_name), "model name is required")

        variant_id = await self.insert_variant(record, match.product_id, brand_name)
        listing_id = await self.insert_listing(record, variant_id)

        return RecordResult(
            index=index,
            success=True,
            product_id=match.product_id,
            variant_id=variant_id,
            listing_id=listing_id,
            match_type=match.match_type.value,
        )

    async def ingest_record(self, record: ScrapedRecord, index: int = 0) -> RecordResult:
        """Ingest one record in its own transaction.

        Failures are logged and recorded in stats.errors; they never raise.
        Counters a failed record had bumped are restored along with the
        session and caches.
        """
        snapshot = self.stats.model_copy(deep=True)
        try:
            result = await self._ingest_one(index, record)
            await self._session.commit()
        except Exception as e:
            await self._session.rollback()
            self.caches.rollback()
            self.stats = snapshot
            if isinstance(e, RecordError):
                message = str(e)
            else:
                message = (
                    f"Record: {record.product_identifiers.model_name} - "
                    f"{type(e).__name__}: {e}"
                )
            logger.exception("Error ingesting record %d", index)
            self.stats.errors.append(message)
            return RecordResult(index=index, success=False, error=message)

        self.caches.commit()
        return result

    async def ingest(self, records: Iterable[ScrapedRecord | dict[str, Any]]) -> IngestResult:
        """Ingest records in order, isolating failures per record."""
        results: list[RecordResult] = []
        for index, record in enumerate(records):
            if not isinstance(record, ScrapedRecord):
                record = ScrapedRecord.model_validate(record)
            results.append(await self.ingest_record(record, index))

        logger.info(
            "Ingested %d records: %d products created, %d listings created, %d errors",
            len(results),
            self.stats.products.created,
            self.stats.listings.created,
            len(self.stats.errors),
        )
        return IngestResult(stats=self.stats, results=results)


# =============================================================================
# Denormalized aggregates
# =============================================================================


async def refresh_catalog_stats(session: AsyncSession) -> tuple[int, int]:
    """Recompute product price/variant aggregates and category product counts.

    Returns:
        (products updated, categories updated)
    """
    variant_counts = dict(
        (
            await session.execute(
                select(ProductVariant.product_id, func.count(ProductVariant.id))
                .where(ProductVariant.is_active.is_(True))
                .group_by(ProductVariant.product_id)
            )
        ).all()
    )

    price_rows = await session.execute(
        select(
            ProductVariant.product_id,
            func.min(Listing.price),
            func.max(Listing.price),
            func.avg(Listing.price),
        )
        .join(Listing, Listing.variant_id == ProductVariant.id)
        .where(Listing.is_active.is_(True), ProductVariant.is_active.is_(True))
        .group_by(ProductVariant.product_id)
    )
    prices = {row[0]: row[1:] for row in price_rows.all()}

    products = (await session.execute(select(Product))).scalars().all()
    for product in products:
        product.variant_count = variant_counts.get(product.id, 0)
        low, high, avg = prices.get(product.id, (None, None, None))
        product.min_price = float(low) if low is not None else None
        product.max_price = float(high) if high is not None else None
        product.avg_price = round(float(avg), 2) if avg is not None else None

    product_counts = dict(
        (
            await session.execute(
                select(Product.category_id, func.count(Product.id)).group_by(
                    Product.category_id
                )
            )
        ).all()
    )
    categories = (await session.execute(select(Category))).scalars().all()
    for category in categories:
        category.product_count = product_counts.get(category.id, 0)

    await session.commit()
    logger.info(
        "Refreshed stats for %d products and %d categories",
        len(products),
        len(categories),
    )
    return len(products), len(categories)
