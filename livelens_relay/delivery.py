"""
Batched HTTP delivery of per-frame detection payloads.

Producers call `enqueue()` synchronously; a periodic asyncio task takes up to
`batch_size` items from the front and POSTs them as one JSON request. A failed
batch goes back to the front of the queue (item by item, so it lands reversed)
with each item's retry count bumped, so retries can overtake newer frames.
Items that exceed `max_retries` are dropped and reported.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

DROP_RETRIES_EXHAUSTED = "retries_exhausted"
DROP_QUEUE_FULL = "queue_full"


@dataclass(frozen=True)
class DeliveryConfig:
    flush_interval_ms: int = 200
    batch_size: int = 4
    max_retries: int = 3
    request_timeout_s: float = 5.0
    # None keeps the queue unbounded; otherwise the oldest item is evicted on overflow.
    max_queue_len: Optional[int] = 1000


@dataclass
class QueueItem:
    payload: Dict[str, Any]
    retries: int = 0

    @property
    def item_id(self) -> str:
        return str(self.payload.get("frame_id", "(no id)"))


@dataclass
class DeliveryStats:
    sent: int = 0
    failed_attempts: int = 0
    dropped: int = 0
    evicted: int = 0


DropCallback = Callable[[QueueItem, str], None]


def build_request_body(batch: List[QueueItem]) -> Dict[str, Any]:
    """A single payload goes out as-is; several are wrapped as {"batch": [...]}."""
    if len(batch) == 1:
        return batch[0].payload
    return {"batch": [item.payload for item in batch]}


class DeliveryQueue:
    """
    FIFO of detection payloads with a periodic flush to an HTTP endpoint.

    Runs on a single event loop: `enqueue` and the queue bookkeeping inside
    `flush_once` never await, so the only suspension point is the POST itself.
    The in-flight batch is already off the queue while the request is pending.
    """

    def __init__(
        self,
        cfg: DeliveryConfig = DeliveryConfig(),
        *,
        client: Optional[httpx.AsyncClient] = None,
        on_drop: Optional[DropCallback] = None,
    ):
        self.cfg = cfg
        self.stats = DeliveryStats()
        self._items: Deque[QueueItem] = deque()
        self._url: Optional[str] = None
        self._task: Optional[asyncio.Task] = None
        self._client = client
        self._owns_client = client is None
        self._on_drop = on_drop

    def __len__(self) -> int:
        return len(self._items)

    @property
    def destination(self) -> Optional[str]:
        return self._url

    @property
    def forwarding(self) -> bool:
        return self._task is not None and not self._task.done()

    def pending(self) -> List[QueueItem]:
        return list(self._items)

    def enqueue(self, payload: Dict[str, Any]) -> None:
        limit = self.cfg.max_queue_len
        if limit is not None and len(self._items) >= limit:
            evicted = self._items.popleft()
            self.stats.evicted += 1
            self._report_drop(evicted, DROP_QUEUE_FULL)
        self._items.append(QueueItem(payload=payload))

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    def set_destination(self, url: Optional[str]) -> None:
        """Point `flush_once` at `url` without starting the periodic flush."""
        self._url = url

    def enable(self, url: str) -> None:
        """
        Set the destination and start the periodic flush. Must be called from
        inside a running event loop.
        """

        self.set_destination(url)
        if not self.forwarding:
            loop = asyncio.get_running_loop()
            self._task = loop.create_task(self._flush_loop(), name="livelens-delivery-flush")
        logger.info("Forwarding detections to %s every %d ms", url, self.cfg.flush_interval_ms)

    async def disable(self) -> None:
        """
        Stop the periodic flush and clear the destination. Queued items stay,
        including a batch whose request was interrupted.
        """

        self._url = None
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Forwarding disabled (%d items pending)", len(self._items))

    async def drain(self) -> None:
        """
        Flush until the queue is empty, then stop forwarding. Ends because every
        failed attempt consumes retries.
        """

        url = self._url
        if url is None:
            return
        await self.disable()
        self.set_destination(url)
        interval = self.cfg.flush_interval_ms / 1000.0
        try:
            while self._items:
                if not await self.flush_once():
                    await asyncio.sleep(interval)
        finally:
            self.set_destination(None)

    async def aclose(self) -> None:
        await self.disable()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Flushing
    # ------------------------------------------------------------------ #
    async def flush_once(self) -> bool:
        """
        Send one batch from the front of the queue.

        Returns True if a batch was delivered, False if there was nothing to
        send, no destination, or the send failed.
        """

        url = self._url
        if url is None or not self._items:
            return False

        count = min(self.cfg.batch_size, len(self._items))
        batch = [self._items.popleft() for _ in range(count)]
        body = build_request_body(batch)

        try:
            ok = await self._post(url, body)
        except asyncio.CancelledError:
            self._items.extendleft(reversed(batch))
            raise
        except Exception:
            logger.exception("Unexpected error sending detection batch")
            ok = False

        if ok:
            self.stats.sent += len(batch)
            return True

        self._requeue(batch)
        return False

    async def _post(self, url: str, body: Dict[str, Any]) -> bool:
        client = self._get_client()
        try:
            resp = await client.post(url, json=body, timeout=self.cfg.request_timeout_s)
        except httpx.HTTPError as exc:
            logger.warning("Failed to send detection batch to %s: %r", url, exc)
            return False

        if not resp.is_success:
            logger.warning("Failed to send detection batch to %s: status %d", url, resp.status_code)
            return False
        return True

    def _requeue(self, batch: List[QueueItem]) -> None:
        self.stats.failed_attempts += 1
        retry: List[QueueItem] = []
        for item in batch:
            item.retries += 1
            if item.retries <= self.cfg.max_retries:
                retry.append(item)
            else:
                self.stats.dropped += 1
                self._report_drop(item, DROP_RETRIES_EXHAUSTED)
        # each retried item is pushed onto the front in batch order, so the
        # batch ends up reversed ahead of newer items
        for item in retry:
            self._items.appendleft(item)

    def _report_drop(self, item: QueueItem, reason: str) -> None:
        if reason == DROP_RETRIES_EXHAUSTED:
            logger.error("Dropping payload after %d retries: %s", self.cfg.max_retries, item.item_id)
        else:
            logger.error("Delivery queue full (%s items), evicting oldest payload: %s", self.cfg.max_queue_len, item.item_id)
        if self._on_drop is None:
            return
        try:
            self._on_drop(item, reason)
        except Exception:
            logger.exception("on_drop callback failed for payload %s", item.item_id)

    async def _flush_loop(self) -> None:
        interval = self.cfg.flush_interval_ms / 1000.0
        while True:
            await asyncio.sleep(interval)
            try:
                await self.flush_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Delivery flush failed; retrying next interval")

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.cfg.request_timeout_s,
                headers={"Content-Type": "application/json"},
            )
            self._owns_client = True
        return self._client
