"""
Batch Queue.

Holds sanitized events until they are sent: when the queue reaches the
batch size, when the flush timer fires, or when `flush()` is called.
Requests never carry more than `Limits.MAX_EVENTS_PER_REQUEST` events;
larger drains are split into consecutive sub-batches in submission order.
"""

import asyncio
from typing import Iterable, List, Optional

from aizu.config import Limits
from aizu.delivery import DeliveryEngine
from aizu.logger import get_logger
from aizu.models import DeliveryResult, Event, chunk_events


logger = get_logger(__name__)


class BatchQueue:
    """Ordered buffer of pending events with a periodic flush task."""

    def __init__(
        self,
        engine: DeliveryEngine,
        batch_size: int = 20,
        flush_interval: int = 1000,
        enable_batching: bool = True,
        max_request_size: int = Limits.MAX_EVENTS_PER_REQUEST,
    ):
        """
        Args:
            engine: Delivery engine receiving each batch
            batch_size: Queue length that triggers an immediate send
            flush_interval: Timer period in milliseconds
            enable_batching: Send every event on its own when False
            max_request_size: Upper bound of events per request
        """
        self._engine = engine
        self.batch_size = batch_size
        self.flush_interval = flush_interval
        self.enable_batching = enable_batching
        self.max_request_size = max_request_size

        self._events: List[Event] = []
        self._timer_task: Optional[asyncio.Task] = None
        self._timer_flushing = False
        self._closed = False

    def size(self) -> int:
        """Number of events waiting to be sent."""
        return len(self._events)

    def __len__(self) -> int:
        return len(self._events)

    async def enqueue(self, event: Event) -> Optional[DeliveryResult]:
        """
        Append an event, sending a batch if the threshold is reached.

        Returns:
            The delivery result when a send happened, otherwise None.
        """
        if not self.enable_batching:
            return await self._engine.send([event], single=True)

        self._events.append(event)
        self.start_timer()

        if len(self._events) < self.batch_size:
            return None

        batch = self._events[:self.batch_size]
        del self._events[:self.batch_size]
        logger.debug("batch_threshold_reached", events=len(batch), remaining=len(self._events))
        results = await self._send_batches(batch)
        return results[-1]

    async def enqueue_many(self, events: Iterable[Event]) -> List[DeliveryResult]:
        """Append pre-built events and drain the whole queue."""
        self._events.extend(events)
        return await self.flush()

    async def flush(self) -> List[DeliveryResult]:
        """
        Send everything that is queued.

        The queue is empty when this returns, whatever the delivery outcome.
        Returns once every sub-batch reached a terminal outcome.
        """
        if not self._events:
            return []

        pending, self._events = self._events, []
        logger.debug("queue_flushed", events=len(pending))
        return await self._send_batches(pending)

    async def _send_batches(self, events: List[Event]) -> List[DeliveryResult]:
        results = []
        for batch in chunk_events(events, self.max_request_size):
            results.append(await self._engine.send(batch))
        return results

    # Flush timer

    @property
    def timer_running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    def start_timer(self) -> None:
        """Start the periodic flush if batching is on and a loop is running."""
        if not self.enable_batching or self._closed or self._timer_task is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._timer_task = loop.create_task(self._flush_loop())
        logger.debug("flush_timer_started", interval_ms=self.flush_interval)

    async def _flush_loop(self) -> None:
        """Background task flushing the queue every interval."""
        interval = self.flush_interval / 1000.0
        while not self._closed:
            await asyncio.sleep(interval)
            if self._closed or not self._events:
                continue
            self._timer_flushing = True
            try:
                await self.flush()
            except Exception as e:
                logger.error("scheduled_flush_failed", error=str(e))
            finally:
                self._timer_flushing = False

    async def stop_timer(self) -> None:
        """
        Stop the periodic flush.

        A flush already in progress is allowed to finish; a sleeping timer
        is cancelled.
        """
        self._closed = True
        task, self._timer_task = self._timer_task, None
        if task is None:
            return

        if self._timer_flushing:
            await task
        else:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.debug("flush_timer_stopped")
