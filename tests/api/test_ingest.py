"""Tests for the deduplicating catalog ingester."""

from sqlalchemy import func, select

from api.config import APIConfig
from api.ingest import CatalogIngester, LookupCache, refresh_catalog_stats
from api.models import Brand, Category, Listing, Product, ProductVariant
from shared.types import StockStatus

from .factories import make_record


async def _count(session, model) -> int:
    return await session.scalar(select(func.count()).select_from(model))


async def _products(session) -> list[Product]:
    result = await session.execute(select(Product).order_by(Product.created_at))
    return list(result.scalars().all())


class TestLookupCache:
    """Tests for the journaled lookup cache."""

    def test_rollback_undoes_uncommitted_writes(self) -> None:
        cache = LookupCache()
        cache.set("a", 1)
        cache.commit()

        cache.set("a", 2)
        cache.set("b", 3)
        cache.rollback()

        assert cache.get("a") == 1
        assert "b" not in cache
        assert len(cache) == 1

    def test_commit_keeps_writes(self) -> None:
        cache = LookupCache()
        cache.set("a", 1)
        cache.commit()
        cache.rollback()
        assert cache.get("a") == 1


class TestProductMatching:
    """Tests for the three-phase product match."""

    async def test_new_product_created(self, categories) -> None:
        ingester = CatalogIngester(categories)
        result = await ingester.ingest([make_record(model_name="Galaxy S24")])

        assert result.succeeded == 1
        assert result.results[0].match_type == "created"
        assert result.stats.products.created == 1
        assert result.stats.deduplication.new_products == 1
        assert result.stats.brands.created == 1

        products = await _products(categories)
        assert [p.model_name for p in products] == ["galaxy s24"]
        assert products[0].slug == "galaxy-s24"

    async def test_model_number_match(self, categories) -> None:
        """Same brand and model number is one product, whatever the name."""
        ingester = CatalogIngester(categories)
        result = await ingester.ingest(
            [
                make_record(model_name="Galaxy S24", model_number="SM-S921B"),
                make_record(
                    model_name="Samsung Galaxy S24 AI Phone",
                    model_number="SM-S921B",
                    store="Croma",
                ),
            ]
        )

        assert result.succeeded == 2
        assert result.results[1].match_type == "model_number"
        assert result.results[0].product_id == result.results[1].product_id
        assert result.stats.deduplication.model_number_matches == 1
        assert await _count(categories, Product) == 1

    async def test_model_number_match_from_database(self, categories) -> None:
        await CatalogIngester(categories).ingest(
            [make_record(model_name="Galaxy S24", model_number="SM-S921B")]
        )

        result = await CatalogIngester(categories).ingest(
            [make_record(model_name="Galaxy S24 Ultra", model_number="SM-S921B")]
        )

        assert result.results[0].match_type == "model_number"
        assert result.stats.products.existing == 1
        assert await _count(categories, Product) == 1

    async def test_5g_suffix_matches_base_name(self, categories) -> None:
        """"X 5G" and "X" are the same phone."""
        ingester = CatalogIngester(categories)
        result = await ingester.ingest(
            [
                make_record(model_name="Galaxy S24 5G"),
                make_record(model_name="Galaxy S24", store="Croma"),
            ]
        )

        assert result.succeeded == 2
        assert result.results[0].product_id == result.results[1].product_id
        assert await _count(categories, Product) == 1

    async def test_5g_variant_match_from_database(self, categories) -> None:
        await CatalogIngester(categories).ingest([make_record(model_name="Galaxy S24")])

        result = await CatalogIngester(categories).ingest(
            [make_record(model_name="Galaxy S24 5G", store="Croma")]
        )

        assert result.results[0].match_type == "variant_match"
        assert result.stats.deduplication.variant_matches == 1
        assert await _count(categories, Product) == 1

    async def test_exact_name_match_from_database(self, categories) -> None:
        await CatalogIngester(categories).ingest([make_record(model_name="Galaxy S24")])

        result = await CatalogIngester(categories).ingest(
            [make_record(model_name="GALAXY S24", store="Croma")]
        )

        assert result.results[0].match_type == "exact_name"
        assert result.stats.deduplication.exact_name_matches == 1

    async def test_4g_is_a_different_product(self, categories) -> None:
        """"X 4G" never merges with "X" or "X 5G"."""
        ingester = CatalogIngester(categories)
        result = await ingester.ingest(
            [
                make_record(brand="Xiaomi", model_name="Redmi Note 13"),
                make_record(brand="Xiaomi", model_name="Redmi Note 13 4G"),
                make_record(brand="Xiaomi", model_name="Redmi Note 13 5G"),
            ]
        )

        assert result.succeeded == 3
        ids = [r.product_id for r in result.results]
        assert ids[0] == ids[2]
        assert ids[1] != ids[0]
        names = sorted(p.model_name for p in await _products(categories))
        assert names == ["redmi note 13", "redmi note 13 4g"]

    async def test_same_name_different_brand(self, categories) -> None:
        result = await CatalogIngester(categories).ingest(
            [
                make_record(brand="Xiaomi", model_name="Note 13"),
                make_record(brand="Infinix", model_name="Note 13"),
            ]
        )

        assert result.results[0].product_id != result.results[1].product_id
        slugs = sorted(p.slug for p in await _products(categories))
        assert slugs == ["note-13", "note-13-infinix"]

    async def test_respelled_name_reuses_brand_suffixed_product(self, categories) -> None:
        result = await CatalogIngester(categories).ingest(
            [
                make_record(brand="Xiaomi", model_name="Note 13"),
                make_record(brand="Infinix", model_name="Note-13"),
                make_record(brand="Infinix", model_name="Note 13", store="Croma"),
            ]
        )

        assert result.failed == 0
        assert result.results[1].product_id == result.results[2].product_id
        assert await _count(categories, Product) == 2

    async def test_model_number_backfilled(self, categories) -> None:
        await CatalogIngester(categories).ingest([make_record(model_name="Galaxy S24")])
        await CatalogIngester(categories).ingest(
            [make_record(model_name="Galaxy S24", model_number="SM-S921B")]
        )

        products = await _products(categories)
        assert len(products) == 1
        assert products[0].model_number == "SM-S921B"


class TestVariantsAndListings:
    """Tests for variant resolution and listing upserts."""

    async def test_color_normalized_into_one_variant(self, categories) -> None:
        result = await CatalogIngester(categories).ingest(
            [
                make_record(color="Onyx Black"),
                make_record(color="onyx  black color", store="Croma"),
            ]
        )

        assert result.results[0].variant_id == result.results[1].variant_id
        assert result.stats.variants.created == 1
        assert result.stats.variants.existing == 0
        assert result.stats.listings.created == 2

    async def test_storage_splits_variants(self, categories) -> None:
        result = await CatalogIngester(categories).ingest(
            [make_record(storage=128), make_record(storage=256)]
        )

        assert result.results[0].product_id == result.results[1].product_id
        assert result.results[0].variant_id != result.results[1].variant_id

    async def test_apple_variants_ignore_ram(self, categories) -> None:
        result = await CatalogIngester(categories).ingest(
            [
                make_record(brand="Apple", model_name="iPhone 15", ram=None, storage=128),
                make_record(
                    brand="Apple", model_name="iPhone 15", ram=6, storage=128, store="Flipkart"
                ),
            ]
        )

        assert result.results[0].variant_id == result.results[1].variant_id
        assert result.stats.deduplication.apple_variants == 1
        assert await _count(categories, ProductVariant) == 1

    async def test_listing_fields(self, categories) -> None:
        await CatalogIngester(categories).ingest(
            [
                make_record(
                    price=69999,
                    original_price=79999,
                    discount=12.5,
                    rating=4.4,
                    review_count=120,
                    availability="Only a few left",
                    image_url="https://img.example/s24.jpg",
                )
            ]
        )

        listing = (await categories.execute(select(Listing))).scalar_one()
        assert listing.store_name == "Amazon"
        assert listing.title == "Samsung Galaxy S24"
        assert listing.price == 69999
        assert listing.original_price == 79999
        assert listing.discount_percentage == 12.5
        assert listing.rating == 4.4
        assert listing.review_count == 120
        assert listing.stock_status == StockStatus.limited_stock

        variant = (await categories.execute(select(ProductVariant))).scalar_one()
        assert variant.images[0]["url"] == "https://img.example/s24.jpg"
        assert variant.images[0]["source"] == "Amazon"

    async def test_rescrape_updates_price_history(self, categories) -> None:
        await CatalogIngester(categories).ingest([make_record(price=74999)])
        result = await CatalogIngester(categories).ingest([make_record(price=71999)])

        assert result.stats.listings.existing == 1
        listing = (await categories.execute(select(Listing))).scalar_one()
        assert listing.price == 71999
        assert [point["price"] for point in listing.price_history] == [74999]

    async def test_price_history_limit_from_config(self, categories) -> None:
        config = APIConfig(price_history_limit=2)
        for price in (100, 101, 102, 103):
            await CatalogIngester(categories, config).ingest([make_record(price=price)])

        listing = (await categories.execute(select(Listing))).scalar_one()
        assert [point["price"] for point in listing.price_history] == [101, 102]


class TestCategories:
    """Tests for breadcrumb category resolution."""

    async def test_breadcrumb_category_used(self, categories) -> None:
        breadcrumb = ["Home", "Electronics", "Mobiles & Accessories", "Basic Mobiles"]
        await CatalogIngester(categories).ingest(
            [make_record(brand="Nokia", model_name="105", breadcrumb=breadcrumb)]
        )

        product = (await _products(categories))[0]
        category = await categories.get(Category, product.category_id)
        assert category.name == "Basic Mobiles"

    async def test_unknown_category_falls_back_to_default(self, categories) -> None:
        breadcrumb = ["Home", "Electronics", "Mobiles & Accessories", "Foldables"]
        result = await CatalogIngester(categories).ingest([make_record(breadcrumb=breadcrumb)])

        assert result.succeeded == 1
        product = (await _products(categories))[0]
        category = await categories.get(Category, product.category_id)
        assert category.name == "Smartphones"

    async def test_short_breadcrumb_uses_default(self, categories) -> None:
        result = await CatalogIngester(categories).ingest([make_record(breadcrumb=["Home"])])
        assert result.succeeded == 1

    async def test_no_categories_fails_record(self, session) -> None:
        result = await CatalogIngester(session).ingest([make_record()])

        assert result.failed == 1
        assert result.results[0].error.startswith("Category: Smartphones")


class TestFailureIsolation:
    """Tests for per-record failure handling."""

    async def test_missing_brand_fails_only_that_record(self, categories) -> None:
        result = await CatalogIngester(categories).ingest(
            [
                make_record(brand=""),
                make_record(model_name="Galaxy S24"),
            ]
        )

        assert result.succeeded == 1
        assert result.failed == 1
        assert result.results[0].success is False
        assert result.results[0].error.startswith("Brand:")
        assert result.results[1].success is True
        assert len(result.stats.errors) == 1

    async def test_missing_model_name_rolls_back_record(self, categories) -> None:
        """A failed record leaves no rows and no cache entries behind."""
        ingester = CatalogIngester(categories)
        result = await ingester.ingest(
            [
                make_record(brand="Nothing", model_name=""),
                make_record(brand="Nothing", model_name="Phone (2a)"),
            ]
        )

        assert result.results[0].success is False
        assert result.results[0].error.startswith("Product:")
        assert result.results[1].success is True

        brands = (await categories.execute(select(Brand))).scalars().all()
        assert [b.name for b in brands] == ["Nothing"]
        assert result.stats.brands.created == 1
        assert result.stats.products.created == 1
        assert len(result.stats.errors) == 1

    async def test_accepts_dicts_and_models(self, categories) -> None:
        from api.schemas import ScrapedRecord

        result = await CatalogIngester(categories).ingest(
            [make_record(), ScrapedRecord.model_validate(make_record(store="Croma"))]
        )
        assert result.succeeded == 2


class TestRefreshCatalogStats:
    """Tests for denormalized aggregates."""

    async def test_product_and_category_aggregates(self, categories) -> None:
        await CatalogIngester(categories).ingest(
            [
                make_record(storage=128, price=60000),
                make_record(storage=256, price=70000),
                make_record(storage=256, price=68000, store="Croma"),
            ]
        )

        products, category_count = await refresh_catalog_stats(categories)

        assert products == 1
        assert category_count >= 1
        product = (await _products(categories))[0]
        assert product.variant_count == 2
        assert product.min_price == 60000
        assert product.max_price == 70000
        assert product.avg_price == 66000

        smartphones = (
            await categories.execute(select(Category).where(Category.name == "Smartphones"))
        ).scalar_one()
        assert smartphones.product_count == 1
