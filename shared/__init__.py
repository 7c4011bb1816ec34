"""Shared types and utilities for the ShopCompare API and feed SDK."""

from .types import (
    Currency,
    MatchType,
    ProductStatus,
    SearchSort,
    SortOption,
    StockStatus,
)

__all__ = [
    "ProductStatus",
    "StockStatus",
    "Currency",
    "SortOption",
    "SearchSort",
    "MatchType",
]
