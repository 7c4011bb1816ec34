"""Feed SDK configuration with support for environment variables and YAML files.

Configuration priority (highest to lowest):
1. Explicit kwargs passed to load_config()
2. Environment variables (SHOPCOMPARE_FEED_*)
3. YAML config file (given, or shopcompare.config.yaml found from the cwd up;
   the `sdk:` section or a flat mapping)
4. Default values
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from shared.config import find_config_file, load_section


@dataclass
class FeedConfig:
    """Configuration for a scraper's catalog feed.

    Attributes:
        base_url: ShopCompare API URL. Without it records are discarded.
        api_key: Optional API key sent as a bearer token.
        buffer_size: Max records buffered before new ones are dropped (default: 1000).
        flush_interval: Max seconds a partial batch waits before sending (default: 5.0).
        batch_size: Max records per POST /ingest request (default: 100).
        http_timeout: Seconds before an ingest request times out (default: 30.0).
    """

    base_url: str | None = None
    api_key: str | None = None
    buffer_size: int = 1000
    flush_interval: float = 5.0
    batch_size: int = 100
    http_timeout: float = 30.0


def load_config(
    config_file: str | Path | None = None,
    **overrides: Any,
) -> FeedConfig:
    """Load feed configuration with priority: overrides > env vars > yaml > defaults.

    Args:
        config_file: Path to a YAML config file. Defaults to the nearest
            shopcompare.config.yaml from the working directory up.
        **overrides: Direct config overrides (highest priority).

    Returns:
        FeedConfig instance.

    Example:
        # From environment variables
        config = load_config()

        # From YAML file with overrides
        config = load_config("shopcompare.config.yaml", api_key="override-key")

        # Explicit configuration
        config = load_config(base_url="http://localhost:8000", batch_size=50)
    """
    config: dict[str, Any] = {}

    config_file = config_file or find_config_file()
    if config_file:
        config.update(load_section(config_file, "sdk"))

    env_mapping = {
        "base_url": "SHOPCOMPARE_FEED_BASE_URL",
        "api_key": "SHOPCOMPARE_FEED_API_KEY",
        "buffer_size": "SHOPCOMPARE_FEED_BUFFER_SIZE",
        "flush_interval": "SHOPCOMPARE_FEED_FLUSH_INTERVAL",
        "batch_size": "SHOPCOMPARE_FEED_BATCH_SIZE",
        "http_timeout": "SHOPCOMPARE_FEED_HTTP_TIMEOUT",
    }

    for key, env_var in env_mapping.items():
        if env_val := os.getenv(env_var):
            config[key] = env_val

    config.update({k: v for k, v in overrides.items() if v is not None})

    for key in ("buffer_size", "batch_size"):
        if key in config:
            config[key] = int(config[key])
    for key in ("flush_interval", "http_timeout"):
        if key in config:
            config[key] = float(config[key])

    known = FeedConfig.__dataclass_fields__
    return FeedConfig(**{k: v for k, v in config.items() if k in known})
