#!/usr/bin/env python3
"""Example: feeding scraped store offers into the ShopCompare catalog.

Usage:
    # Start the API against a local SQLite database
    SHOPCOMPARE_DATABASE_URL=sqlite+aiosqlite:///./shopcompare.db python -m api.main

    # Seed the category tree once
    SHOPCOMPARE_DATABASE_URL=sqlite+aiosqlite:///./shopcompare.db python -m api.seed

    # Run this example from the repository root
    PYTHONPATH=. python examples/scraper-feed/main.py
"""

import asyncio
import logging
import sys

import httpx

from sdk import CatalogFeed, build_record

from data import BREADCRUMB, SCRAPED_OFFERS

BASE_URL = "http://localhost:8000"


async def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    async with CatalogFeed(base_url=BASE_URL, flush_interval=1.0) as feed:
        for offer in SCRAPED_OFFERS:
            feed.submit(build_record(breadcrumb=BREADCRUMB, **offer))
        print(f"Queued {feed.transport.queue_size} offers")

    stats = feed.transport.stats
    print(f"Sent {stats.sent}, rejected {stats.rejected}, dropped {stats.dropped}")

    # Both stores' iPhone 15 offers land on one variant; RAM is ignored for Apple
    async with httpx.AsyncClient(base_url=BASE_URL) as client:
        response = await client.get("/categories/Smartphones/variants")
        response.raise_for_status()
        page = response.json()

    print(f"\n{page['total']} variants compared across stores:")
    for item in page["items"]:
        stores = ", ".join(
            f"{l['store_name']} {l['price']:.0f}" for l in item["listings"]
        )
        print(f"  {item['variant']['name']}: {stores}")

    return 0 if stats.failed_batches == 0 else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
