"""API server configuration with support for environment variables and YAML files.

Configuration priority (highest to lowest):
1. Explicit kwargs passed to load_config()
2. Environment variables (SHOPCOMPARE_*)
3. YAML config file (given, or shopcompare.config.yaml found from the cwd up)
4. Default values
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from shared.config import find_config_file, load_section


@dataclass
class APIConfig:
    """API server configuration.

    Attributes:
        database_url: Database connection URL (default: PostgreSQL on localhost).
        host: Server bind address (default: 0.0.0.0).
        port: Server port (default: 8000).
        debug: Enable debug mode (default: False).
        default_category: Category used when a record's breadcrumb names none
            or names an unknown one (default: Smartphones).
        price_history_limit: Max price points kept per listing (default: 30).
        page_size: Default page size for browsing endpoints (default: 20).
        top_deal_min_price: Price floor for the top deals feed (default: 30000).
    """

    database_url: str = "postgresql+asyncpg://localhost:5432/shopcompare"
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    default_category: str = "Smartphones"
    price_history_limit: int = 30
    page_size: int = 20
    top_deal_min_price: float = 30000.0


def load_config(
    config_file: str | Path | None = None,
    **overrides: Any,
) -> APIConfig:
    """Load API configuration with priority: overrides > env vars > yaml > defaults.

    Args:
        config_file: Path to a YAML config file. Defaults to the nearest
            shopcompare.config.yaml from the working directory up.
        **overrides: Direct config overrides (highest priority).

    Returns:
        APIConfig instance.

    Example:
        # From environment variables
        config = load_config()

        # From YAML file
        config = load_config("shopcompare.config.yaml")

        # For local development with SQLite
        config = load_config(database_url="sqlite+aiosqlite:///./shopcompare.db")
    """
    config: dict[str, Any] = {}

    # 1. Load from YAML file (lowest priority after defaults)
    config_file = config_file or find_config_file()
    if config_file:
        config.update(load_section(config_file, "api"))

    # 2. Override with environment variables
    env_mapping = {
        "database_url": "SHOPCOMPARE_DATABASE_URL",
        "host": "SHOPCOMPARE_HOST",
        "port": "SHOPCOMPARE_PORT",
        "debug": "SHOPCOMPARE_DEBUG",
        "default_category": "SHOPCOMPARE_DEFAULT_CATEGORY",
        "price_history_limit": "SHOPCOMPARE_PRICE_HISTORY_LIMIT",
        "page_size": "SHOPCOMPARE_PAGE_SIZE",
        "top_deal_min_price": "SHOPCOMPARE_TOP_DEAL_MIN_PRICE",
    }

    for key, env_var in env_mapping.items():
        if env_val := os.getenv(env_var):
            config[key] = env_val

    # 3. Override with explicit kwargs (highest priority)
    config.update({k: v for k, v in overrides.items() if v is not None})

    # Type conversions
    for key in ("port", "price_history_limit", "page_size"):
        if key in config:
            config[key] = int(config[key])
    if "top_deal_min_price" in config:
        config["top_deal_min_price"] = float(config["top_deal_min_price"])
    if "debug" in config:
        config["debug"] = (
            config["debug"]
            if isinstance(config["debug"], bool)
            else str(config["debug"]).lower() in ("true", "1", "yes")
        )

    known = APIConfig.__dataclass_fields__
    return APIConfig(**{k: v for k, v in config.items() if k in known})
