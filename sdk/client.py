"""Scraper-side client for feeding records into the ShopCompare catalog.

Usage:

    async with CatalogFeed(base_url="http://localhost:8000") as feed:
        for item in scrape():
            feed.submit(build_record(store_name="Amazon", ...))

or with a process-wide feed:

    await init_feed(base_url="http://localhost:8000")
    get_feed().submit(record)
    await shutdown_feed()
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .config import FeedConfig, load_config
from .transport import Transport

logger = logging.getLogger(__name__)

_feed: CatalogFeed | None = None


def build_record(
    *,
    store_name: str,
    url: str,
    title: str,
    brand: str,
    model_name: str,
    price: float,
    original_price: float | None = None,
    discount_percent: float | None = None,
    currency: str = "INR",
    model_number: str | None = None,
    ram_gb: int | None = None,
    storage_gb: int | None = None,
    color: str | None = None,
    rating: float | None = None,
    review_count: int | None = None,
    availability: str | None = None,
    image_url: str | None = None,
    specifications: dict[str, Any] | None = None,
    breadcrumb: list[str] | None = None,
    scraped_at: datetime | None = None,
) -> dict[str, Any]:
    """Assemble a record in the shape POST /ingest expects from flat fields."""
    scraped_at = scraped_at or datetime.now(timezone.utc)
    return {
        "product_identifiers": {
            "brand": brand,
            "model_name": model_name,
            "model_number": model_number,
            "original_title": title,
        },
        "key_specifications": dict(specifications or {}),
        "variant_attributes": {
            "ram": ram_gb,
            "storage": storage_gb,
            "color": color,
        },
        "listing_info": {
            "price": {
                "current": price,
                "original": original_price,
                "discount_percent": discount_percent,
                "currency": currency,
            },
            "rating": {"score": rating, "count": review_count},
            "availability": availability,
            "image_url": image_url,
        },
        "source_details": {
            "source_name": store_name,
            "url": url,
            "scraped_at_utc": scraped_at.isoformat(),
        },
        "source_metadata": {"category_breadcrumb": list(breadcrumb or [])},
    }


def _to_payload(record: Mapping[str, Any] | Any) -> dict[str, Any]:
    if hasattr(record, "model_dump"):
        return record.model_dump(mode="json")
    if not isinstance(record, Mapping):
        raise TypeError(f"Expected a mapping or pydantic model, got {type(record).__name__}")

    payload = dict(record)
    source = payload.get("source_details")
    if isinstance(source, Mapping) and isinstance(source.get("scraped_at_utc"), datetime):
        payload["source_details"] = {
            **source,
            "scraped_at_utc": source["scraped_at_utc"].isoformat(),
        }
    return payload


class CatalogFeed:
    """Buffers scraped records and ships them to the catalog in batches.

    Submitting never blocks and never raises on delivery problems; the
    transport logs and drops what it cannot send.
    """

    def __init__(
        self,
        config: FeedConfig | None = None,
        config_file: str | Path | None = None,
        **overrides: Any,
    ) -> None:
        self.config = config or load_config(config_file, **overrides)
        self._transport = Transport(self.config)

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def is_started(self) -> bool:
        return self._transport.is_started

    async def start(self) -> None:
        await self._transport.start()

    def submit(self, record: Mapping[str, Any] | Any) -> bool:
        """Queue one record for ingestion.

        Args:
            record: A dict in the ingest shape (see build_record) or a
                pydantic model with the same fields.

        Returns:
            True if queued, False if dropped.
        """
        payload = _to_payload(record)
        identifiers = payload.get("product_identifiers") or {}
        if not identifiers.get("brand") or not identifiers.get("model_name"):
            logger.warning(
                "Record without brand or model name will be rejected: %r",
                identifiers.get("original_title"),
            )
        return self._transport.send(payload)

    def submit_many(self, records: list[Mapping[str, Any] | Any]) -> int:
        """Queue several records. Returns how many were queued."""
        return sum(1 for record in records if self.submit(record))

    async def shutdown(self, timeout: float = 5.0) -> None:
        await self._transport.shutdown(timeout=timeout)

    async def __aenter__(self) -> CatalogFeed:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.shutdown()


async def init_feed(
    config_file: str | Path | None = None,
    **overrides: Any,
) -> CatalogFeed:
    """Create and start the process-wide feed, replacing any previous one."""
    global _feed

    if _feed is not None:
        await _feed.shutdown()

    _feed = CatalogFeed(config_file=config_file, **overrides)
    await _feed.start()
    return _feed


def get_feed() -> CatalogFeed | None:
    return _feed


async def shutdown_feed(timeout: float = 5.0) -> None:
    global _feed

    if _feed is not None:
        await _feed.shutdown(timeout=timeout)
        _feed = None
