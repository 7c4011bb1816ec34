"""Async buffered transport that posts scraped records to POST /ingest."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from .config import FeedConfig

logger = logging.getLogger(__name__)


@dataclass
class TransportStats:
    """Running totals for one transport lifetime."""

    queued: int = 0
    dropped: int = 0
    sent: int = 0
    rejected: int = 0
    failed_batches: int = 0


class Transport:
    """Async buffered transport with fail-open semantics.

    Records are queued and posted in batches of up to `batch_size`. A full
    queue drops new records, and network or HTTP errors are logged, so a
    scraper never stalls or crashes because the API is unavailable.
    """

    def __init__(self, config: FeedConfig) -> None:
        self._config = config
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(
            maxsize=config.buffer_size
        )
        self._client: httpx.AsyncClient | None = None
        self._worker_task: asyncio.Task[None] | None = None
        self._shutdown = asyncio.Event()
        self._started = False
        # Records taken off the queue but not yet handed to _flush_batch
        self._pending: list[dict[str, Any]] = []
        self.stats = TransportStats()

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def queue_size(self) -> int:
        """Records waiting to be sent."""
        return self._queue.qsize()

    async def start(self) -> None:
        """Open the HTTP client and start the background worker."""
        if self._started:
            return

        if self._config.base_url:
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url,
                headers=self._get_headers(),
                timeout=self._config.http_timeout,
            )
        else:
            logger.warning("No base_url configured, records will be discarded")

        self._shutdown.clear()
        self._worker_task = asyncio.create_task(self._worker_loop())
        self._started = True
        logger.debug("Transport started")

    def send(self, record: dict[str, Any]) -> bool:
        """Queue a record. Non-blocking, fail-open.

        Returns:
            True if the record was queued, False if it was dropped.
        """
        if not self._started:
            logger.debug("Transport not started, dropping record")
            self.stats.dropped += 1
            return False

        try:
            self._queue.put_nowait(record)
        except asyncio.QueueFull:
            logger.warning("Record buffer full, dropping record")
            self.stats.dropped += 1
            return False

        self.stats.queued += 1
        return True

    async def _worker_loop(self) -> None:
        while not self._shutdown.is_set():
            try:
                await self._collect_batch()
                batch, self._pending = self._pending, []
                if batch:
                    await self._flush_batch(batch)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("Worker loop error: %s", e)
                await asyncio.sleep(1.0)

    async def _collect_batch(self) -> None:
        """Fill `_pending` until a full batch, flush_interval, or shutdown."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._config.flush_interval

        while len(self._pending) < self._config.batch_size and not self._shutdown.is_set():
            remaining = deadline - loop.time()
            if remaining <= 0:
                break

            if not await self._take_record(max(0.1, remaining)):
                break

    async def _take_record(self, timeout: float) -> bool:
        """Move the next queued record into `_pending`.

        Returns False on timeout or shutdown. A record already taken off the
        queue lands in `_pending` even if the worker is cancelled meanwhile.
        """
        get_task = asyncio.ensure_future(self._queue.get())
        stop_task = asyncio.ensure_future(self._shutdown.wait())
        try:
            await asyncio.wait(
                {get_task, stop_task}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            stop_task.cancel()
            if get_task.done() and not get_task.cancelled():
                self._pending.append(get_task.result())
                taken = True
            else:
                get_task.cancel()
                taken = False
        return taken

    async def _flush_batch(self, records: list[dict[str, Any]]) -> None:
        """POST one batch. Records the API rejected are logged, not retried."""
        if not self._client or not self._config.base_url:
            logger.debug("No API configured, discarding %d records", len(records))
            return

        try:
            response = await self._client.post("/ingest", json=records)
            response.raise_for_status()
        except httpx.RequestError as e:
            self.stats.failed_batches += 1
            logger.warning("Network error sending %d records: %s", len(records), e)
            return
        except httpx.HTTPStatusError as e:
            self.stats.failed_batches += 1
            logger.warning(
                "HTTP %d error sending %d records: %s",
                e.response.status_code,
                len(records),
                e,
            )
            return

        body = response.json()
        failed = body.get("failed", 0)
        self.stats.sent += body.get("succeeded", len(records) - failed)
        self.stats.rejected += failed
        if failed:
            for result in body.get("results", []):
                if not result.get("success"):
                    logger.warning(
                        "Record %s rejected: %s", result.get("index"), result.get("error")
                    )
        logger.debug("Flushed %d records (%d rejected)", len(records), failed)

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Stop the worker and send whatever is still queued.

        Args:
            timeout: Max seconds to wait for the worker to finish its batch.
        """
        if not self._started:
            return

        logger.debug("Shutting down transport")
        self._shutdown.set()

        if self._worker_task:
            try:
                await asyncio.wait_for(self._worker_task, timeout=timeout)
            except asyncio.TimeoutError:
                self._worker_task.cancel()
                try:
                    await self._worker_task
                except asyncio.CancelledError:
                    pass

        # Stop accepting records before the final drain
        self._started = False

        remaining, self._pending = self._pending, []
        while not self._queue.empty():
            try:
                remaining.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                break

        for start in range(0, len(remaining), self._config.batch_size):
            batch = remaining[start : start + self._config.batch_size]
            try:
                await self._flush_batch(batch)
            except Exception as e:
                logger.warning("Error flushing remaining records during shutdown: %s", e)

        if self._client:
            await self._client.aclose()
            self._client = None

        logger.debug("Transport shutdown complete: %s", self.stats)

    def _get_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._config.api_key:
            headers["Authorization"] = f"Bearer {self._config.api_key}"
        return headers
