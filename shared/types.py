"""Shared type definitions for the ShopCompare API and feed SDK.

These enums inherit from both `str` and `Enum` to ensure JSON serializability.
This allows `json.dumps(StockStatus.in_stock)` to work directly without custom encoders.
"""

from enum import Enum


class ProductStatus(str, Enum):
    """Lifecycle status of a catalog product."""

    active = "active"
    discontinued = "discontinued"
    coming_soon = "coming_soon"


class StockStatus(str, Enum):
    """Availability of a listing at its store.

    Derived from the free-text availability a store shows:
    - in_stock: Purchasable now (also the fallback for unrecognized text)
    - out_of_stock: Not purchasable
    - limited_stock: Purchasable, few units left
    - pre_order: Announced, orders accepted before release
    - unknown: Never reported
    """

    in_stock = "in_stock"
    out_of_stock = "out_of_stock"
    limited_stock = "limited_stock"
    pre_order = "pre_order"
    unknown = "unknown"


class Currency(str, Enum):
    """Currencies a listing price may be quoted in."""

    INR = "INR"
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    JPY = "JPY"
    AUD = "AUD"
    CAD = "CAD"


class SortOption(str, Enum):
    """Orderings for variant browsing pages."""

    newest = "newest"
    oldest = "oldest"
    price_low = "price_low"
    price_high = "price_high"
    rating = "rating"
    reviews = "reviews"
    stores = "stores"


class SearchSort(str, Enum):
    """Orderings for search results."""

    lowest = "lowest"
    highest = "highest"
    popular = "popular"
    newest = "newest"


class MatchType(str, Enum):
    """How an ingested record was resolved to a catalog product.

    - model_number: Same brand and model number
    - exact_name: Same brand and normalized model name
    - variant_match: Same brand, name differs only by a network suffix
    - created: No match, a new product was created
    - existing: Found by slug or name while creating
    """

    model_number = "model_number"
    exact_name = "exact_name"
    variant_match = "variant_match"
    created = "created"
    existing = "existing"
