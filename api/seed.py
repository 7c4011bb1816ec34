"""Seed the electronics category tree.

    python -m api.seed

Safe to run repeatedly: existing categories are found by name under their
parent and left as they are.
"""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from .config import load_config
from .database import close_db, get_session_factory, init_db
from .models import Category
from .store import find_or_create_category

logger = logging.getLogger(__name__)

SMARTPHONE_BRANDS = [
    "Apple",
    "Samsung",
    "OnePlus",
    "Xiaomi",
    "Realme",
    "OPPO",
    "Vivo",
    "POCO",
    "Motorola",
    "iQOO",
    "Nothing",
    "Google",
    "Infinix",
    "Tecno",
]

BASIC_PHONE_BRANDS = ["Nokia", "Jio", "Kechaoda", "Lava", "HMD", "Itel"]

ACCESSORY_CATEGORIES = [
    "Phone Cases & Covers",
    "Screen Protectors",
    "Chargers & Cables",
    "Power Banks",
    "Earphones & Headphones",
    "Phone Stands & Holders",
    "Car Accessories",
    "Gaming Accessories",
    "Protection & Safety",
]

FEATURED_SMARTPHONE_BRANDS = 8
FEATURED_ACCESSORY_CATEGORIES = 5


async def _category(
    session: AsyncSession,
    name: str,
    parent: Category | None,
    description: str,
    sort_order: int = 1,
    is_featured: bool = True,
) -> tuple[Category, bool]:
    return await find_or_create_category(
        session,
        name,
        parent_id=parent.id if parent is not None else None,
        description=description,
        sort_order=sort_order,
        is_featured=is_featured,
    )


async def seed_categories(session: AsyncSession) -> int:
    """Create any missing categories of the electronics tree.

    Returns:
        Number of categories created.
    """
    created = 0

    async def add(*args, **kwargs) -> Category:
        nonlocal created
        category, was_created = await _category(session, *args, **kwargs)
        created += was_created
        return category

    home = await add("Home", None, "Home and lifestyle products")
    electronics = await add(
        "Electronics", home, "Consumer electronics, gadgets, and technology products"
    )
    mobiles_accessories = await add(
        "Mobiles & Accessories", electronics, "Mobile phones and related accessories"
    )
    mobiles = await add("Mobiles", mobiles_accessories, "Mobile phones and smartphones")
    accessories = await add(
        "Accessories",
        mobiles_accessories,
        "Mobile phone accessories and add-ons",
        sort_order=2,
    )
    smartphones = await add("Smartphones", mobiles, "Advanced smartphones with smart features")
    basic_mobiles = await add(
        "Basic Mobiles",
        mobiles,
        "Basic mobile phones and feature mobiles",
        sort_order=2,
        is_featured=False,
    )

    for index, brand in enumerate(SMARTPHONE_BRANDS):
        await add(
            f"{brand} Smartphones",
            smartphones,
            f"{brand} smartphones and mobile devices",
            sort_order=index + 1,
            is_featured=index < FEATURED_SMARTPHONE_BRANDS,
        )

    for index, brand in enumerate(BASIC_PHONE_BRANDS):
        await add(
            f"{brand} Basic Phones",
            basic_mobiles,
            f"{brand} basic mobile phones and feature phones",
            sort_order=index + 1,
            is_featured=False,
        )

    for index, name in enumerate(ACCESSORY_CATEGORIES):
        await add(
            name,
            accessories,
            f"{name} for mobile phones",
            sort_order=index + 1,
            is_featured=index < FEATURED_ACCESSORY_CATEGORIES,
        )

    await session.commit()
    logger.info("Seeded categories: %d created", created)
    return created


async def main() -> None:
    config = load_config()
    await init_db(config.database_url, echo=config.debug)
    try:
        async with get_session_factory()() as session:
            await seed_categories(session)
    finally:
        await close_db()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    asyncio.run(main())
