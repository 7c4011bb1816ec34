"""Tests for the catalog feed client and its buffered transport."""

import asyncio
import json
from contextlib import contextmanager
from datetime import datetime, timezone
from unittest import mock

import httpx
import pytest

from sdk import CatalogFeed, FeedConfig, build_record, get_feed, init_feed, shutdown_feed

_RealAsyncClient = httpx.AsyncClient


def _record(**overrides):
    fields = {
        "store_name": "Amazon",
        "url": "https://www.amazon.in/dp/B0CHX1W1XY",
        "title": "Apple iPhone 15 (128 GB) - Black",
        "brand": "Apple",
        "model_name": "iPhone 15",
        "price": 69900,
    }
    fields.update(overrides)
    return build_record(**fields)


def _ok(request: httpx.Request) -> httpx.Response:
    records = json.loads(request.content)
    return httpx.Response(
        200,
        json={
            "processed": len(records),
            "succeeded": len(records),
            "failed": 0,
            "results": [{"index": i, "success": True} for i in range(len(records))],
        },
    )


@contextmanager
def mock_api(handler):
    """Route every AsyncClient the transport opens through `handler`."""

    def factory(**kwargs):
        return _RealAsyncClient(transport=httpx.MockTransport(handler), **kwargs)

    with mock.patch("sdk.transport.httpx.AsyncClient", side_effect=factory):
        yield


class TestBuildRecord:
    """Tests for build_record helper."""

    def test_nested_shape(self) -> None:
        """Flat fields land where /ingest expects them."""
        scraped_at = datetime(2025, 1, 30, 12, 0, tzinfo=timezone.utc)
        record = _record(
            model_number="MTP03HN/A",
            ram_gb=6,
            storage_gb=128,
            color="Black",
            original_price=79900,
            rating=4.5,
            review_count=10,
            availability="In stock",
            breadcrumb=["Home", "Electronics", "Mobiles & Accessories", "Smartphones"],
            scraped_at=scraped_at,
        )

        assert record["product_identifiers"] == {
            "brand": "Apple",
            "model_name": "iPhone 15",
            "model_number": "MTP03HN/A",
            "original_title": "Apple iPhone 15 (128 GB) - Black",
        }
        assert record["variant_attributes"] == {"ram": 6, "storage": 128, "color": "Black"}
        assert record["listing_info"]["price"]["current"] == 69900
        assert record["listing_info"]["price"]["original"] == 79900
        assert record["listing_info"]["price"]["currency"] == "INR"
        assert record["listing_info"]["rating"] == {"score": 4.5, "count": 10}
        assert record["source_details"]["source_name"] == "Amazon"
        assert record["source_details"]["scraped_at_utc"] == scraped_at.isoformat()
        assert record["source_metadata"]["category_breadcrumb"][3] == "Smartphones"

    def test_record_is_json_serializable(self) -> None:
        json.dumps(_record())


class TestSubmit:
    """Tests for CatalogFeed.submit."""

    def test_submit_before_start_drops(self) -> None:
        """Records submitted before start() are dropped, not raised."""
        feed = CatalogFeed(FeedConfig(base_url="http://test"))
        assert feed.submit(_record()) is False
        assert feed.transport.stats.dropped == 1

    def test_submit_rejects_non_mapping(self) -> None:
        feed = CatalogFeed(FeedConfig(base_url="http://test"))
        with pytest.raises(TypeError):
            feed.submit(["not", "a", "record"])

    async def test_full_buffer_drops(self) -> None:
        """A full buffer drops new records (fail-open)."""
        with mock_api(_ok):
            feed = CatalogFeed(FeedConfig(base_url="http://test", buffer_size=1))
            await feed.start()
            assert feed.submit(_record()) is True
            assert feed.submit(_record()) is False
            await feed.shutdown()

        assert feed.transport.stats.dropped == 1

    async def test_datetime_serialized(self) -> None:
        """A datetime scrape time in a hand-built record is sent as ISO text."""
        received = []

        def handler(request):
            received.extend(json.loads(request.content))
            return _ok(request)

        record = _record()
        scraped_at = datetime(2025, 1, 30, tzinfo=timezone.utc)
        record["source_details"]["scraped_at_utc"] = scraped_at

        with mock_api(handler):
            async with CatalogFeed(FeedConfig(base_url="http://test", flush_interval=0.1)) as feed:
                feed.submit(record)

        assert received[0]["source_details"]["scraped_at_utc"] == scraped_at.isoformat()


class TestTransport:
    """Tests for batching and delivery."""

    async def test_records_posted_to_ingest(self) -> None:
        """Queued records are posted to /ingest with the bearer token."""
        requests = []

        def handler(request):
            requests.append(request)
            return _ok(request)

        with mock_api(handler):
            config = FeedConfig(base_url="http://test", api_key="secret", flush_interval=0.1)
            async with CatalogFeed(config) as feed:
                assert feed.submit_many([_record(), _record(price=68000)]) == 2

        assert requests
        assert all(r.url.path == "/ingest" for r in requests)
        assert requests[0].headers["Authorization"] == "Bearer secret"
        assert sum(len(json.loads(r.content)) for r in requests) == 2
        assert feed.transport.stats.sent == 2

    async def test_batches_respect_batch_size(self) -> None:
        sizes = []

        def handler(request):
            sizes.append(len(json.loads(request.content)))
            return _ok(request)

        with mock_api(handler):
            config = FeedConfig(base_url="http://test", batch_size=2, flush_interval=0.1)
            async with CatalogFeed(config) as feed:
                feed.submit_many([_record(price=p) for p in range(5)])

        assert sum(sizes) == 5
        assert max(sizes) <= 2

    async def test_rejected_records_counted(self) -> None:
        """Per-record failures in the response are counted, not retried."""

        def handler(request):
            return httpx.Response(
                200,
                json={
                    "processed": 1,
                    "succeeded": 0,
                    "failed": 1,
                    "results": [
                        {"index": 0, "success": False, "error": "Brand: '' - brand is required"}
                    ],
                },
            )

        with mock_api(handler):
            async with CatalogFeed(FeedConfig(base_url="http://test", flush_interval=0.1)) as feed:
                feed.submit(_record(brand=""))

        assert feed.transport.stats.rejected == 1
        assert feed.transport.stats.sent == 0

    async def test_network_error_does_not_raise(self) -> None:
        """Network errors are logged and counted."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with mock_api(handler):
            async with CatalogFeed(FeedConfig(base_url="http://test", flush_interval=0.1)) as feed:
                feed.submit(_record())

        assert feed.transport.stats.failed_batches == 1
        assert feed.transport.stats.sent == 0

    async def test_http_error_does_not_raise(self) -> None:
        with mock_api(lambda request: httpx.Response(500)):
            async with CatalogFeed(FeedConfig(base_url="http://test", flush_interval=0.1)) as feed:
                feed.submit(_record())

        assert feed.transport.stats.failed_batches == 1

    async def test_shutdown_sends_batch_being_collected(self) -> None:
        """A record the worker already took off the queue is still delivered."""
        delivered = []

        def handler(request):
            delivered.extend(json.loads(request.content))
            return _ok(request)

        with mock_api(handler):
            feed = CatalogFeed(FeedConfig(base_url="http://test"))
            await feed.start()
            assert feed.submit(_record()) is True
            # Worker is now waiting out the 5s flush interval with one record
            await asyncio.sleep(0.2)
            assert feed.transport.queue_size == 0

            await feed.shutdown(timeout=1.0)

        assert len(delivered) == 1
        assert feed.transport.stats.sent == 1

    async def test_no_base_url_discards(self) -> None:
        """Without a base_url records are accepted and discarded."""
        async with CatalogFeed(FeedConfig(flush_interval=0.1)) as feed:
            assert feed.submit(_record()) is True

        assert feed.transport.stats.sent == 0
        assert not feed.is_started


class TestGlobalFeed:
    """Tests for the process-wide feed helpers."""

    async def test_init_and_shutdown(self) -> None:
        with mock_api(_ok):
            feed = await init_feed(base_url="http://test", flush_interval=0.1)
            assert get_feed() is feed
            assert feed.is_started

            await shutdown_feed()

        assert get_feed() is None
        assert not feed.is_started
