"""ShopCompare feed SDK for sending scraped records to the catalog."""

from .client import (
    CatalogFeed,
    build_record,
    get_feed,
    init_feed,
    shutdown_feed,
)
from .config import FeedConfig, load_config
from .transport import Transport, TransportStats

__all__ = [
    # Client and lifecycle
    "CatalogFeed",
    "init_feed",
    "get_feed",
    "shutdown_feed",
    # Configuration
    "FeedConfig",
    "load_config",
    # Records
    "build_record",
    # Core classes
    "Transport",
    "TransportStats",
]
