"""Name normalization helpers shared by ingestion and browsing.

All helpers are pure. Model names passed to the network-suffix helpers are
expected to be lowercased and trimmed already.
"""

from __future__ import annotations

import re
from typing import Any

# Phone model names often differ only by a trailing network generation
NETWORK_SUFFIXES = (" 5g", " 4g")
DEFAULT_NETWORK = "5g"

CURRENCY_SYMBOLS = {
    "INR": "₹",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
}


def slugify(name: str) -> str:
    """Build a URL slug for brand and category names."""
    slug = name.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug, flags=re.ASCII)
    slug = re.sub(r"[\s_-]+", "-", slug)
    return slug.strip("-")


def product_slug(name: str) -> str:
    """Build a URL slug for product model names.

    Unlike `slugify`, a few symbols are spelled out and `+` is kept so that
    "Galaxy S24" and "Galaxy S24+" stay distinct.
    """
    slug = name.lower().strip()
    slug = slug.replace("&", "and").replace("@", "at").replace("%", "percent")
    slug = re.sub(r"['\"()\[\]{}]", "", slug)
    slug = re.sub(r"[\s\-_]+", "-", slug)
    slug = re.sub(r"[^a-z0-9\-+]", "", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def has_network_suffix(name: str) -> bool:
    return name.endswith(NETWORK_SUFFIXES)


def remove_network_suffix(name: str) -> str:
    if has_network_suffix(name):
        return name[:-3]
    return name


def network_type(name: str) -> str:
    """Return "4g" or "5g"; names without a suffix count as 5G."""
    if name.endswith(" 4g"):
        return "4g"
    return DEFAULT_NETWORK


def name_cache_key(name: str) -> str:
    """Cache key for a model name.

    4G models are distinct products, so they keep their full name. A 5G
    suffix is redundant with the base name and is dropped.
    """
    if network_type(name) == "4g":
        return name
    return remove_network_suffix(name)


def search_variants(name: str) -> list[str]:
    """Stored model names that may denote the same product as `name`."""
    if network_type(name) == "4g":
        return [name]
    base = remove_network_suffix(name)
    return [base, f"{base} 5g"]


def normalize_color(color: str | None) -> str | None:
    if not color:
        return None
    normalized = color.lower()
    normalized = re.sub(r"\s+color\s*$", "", normalized, flags=re.IGNORECASE)
    normalized = re.sub(r"\s+", " ", normalized)
    return normalized.strip() or None


def is_apple(brand_name: str | None) -> bool:
    return bool(brand_name) and brand_name.strip().lower() == "apple"


def variant_key(
    product_id: Any,
    brand_name: str | None,
    ram: Any,
    storage: Any,
    color: str | None,
) -> str:
    """Identity key of a variant within a product.

    Apple listings rarely state RAM, so RAM is left out of Apple keys to
    keep the same phone from splitting into several variants.
    """
    if is_apple(brand_name):
        return f"{product_id}:apple:{storage or 0}:{color or 'default'}"
    return f"{product_id}:{ram or 0}:{storage or 0}:{color or 'default'}"


def variant_name(brand_name: str, model_name: str, attributes: dict[str, Any]) -> str:
    name = f"{brand_name} {model_name}"
    if attributes.get("color"):
        name += f" - {attributes['color']}"
    if attributes.get("storage_gb"):
        name += f", {attributes['storage_gb']}GB"
    if attributes.get("ram_gb"):
        name += f", {attributes['ram_gb']}GB RAM"
    return name


def stock_status_from_availability(availability: str | None) -> str:
    """Map a store's availability text to a `StockStatus` value."""
    if not availability:
        return "in_stock"

    text = availability.lower()
    if "out of stock" in text or "unavailable" in text:
        return "out_of_stock"
    if "limited" in text or "few left" in text:
        return "limited_stock"
    if "pre-order" in text or "coming soon" in text:
        return "pre_order"
    return "in_stock"


def primary_image(images: Any) -> str | None:
    """Pick the first usable image URL from the shapes stores send."""
    if not images:
        return None

    if isinstance(images, str):
        return images

    if isinstance(images, list):
        first = images[0]
        if isinstance(first, str):
            return first
        if isinstance(first, dict) and "url" in first:
            return first["url"]
        return None

    if isinstance(images, dict):
        if "primary" in images:
            return images["primary"]
        if "url" in images:
            return images["url"]

    return None


def format_price(price: float | int | None, currency: str) -> str:
    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    if price is None:
        return f"{symbol}0.00"
    return f"{symbol}{float(price):.2f}"
