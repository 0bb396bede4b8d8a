"""
Hit Telemetry

Decouples the latency-sensitive lookup path from persisting hit statistics.

Architecture:
- Lookups publish a HitEvent onto a bounded in-process TelemetryQueue
- Exactly one TelemetryAggregator task drains the queue and applies each
  event (hits + 1, last_hit = event time) through a handler
- Recording is best-effort: failures are logged and dropped, they never
  fail the lookup that produced the event

Design Decisions:
- Bounded queue: when it is full, producers wait (backpressure) instead of
  dropping events; the wait is an ordinary await, so cancelling the lookup
  cancels it
- Single consumer: the handler does read-increment-write on a row, which is
  only safe while one aggregator applies events in FIFO order
- Idle polling uses a timed sleep, never a busy loop
"""

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel, Field

from urlshortener.core.result import Result

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_CAPACITY = 1000
DEFAULT_IDLE_DELAY_SECONDS = 0.5


class HitEvent(BaseModel):
    """One successful resolution of a short url, waiting to be counted."""

    row_id: int = Field(..., description="Row that was resolved")
    date_hit: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the lookup happened"
    )


class TelemetryQueue:
    """
    Bounded FIFO channel of hit events.

    Producers are the concurrent lookups; the consumer is the single
    TelemetryAggregator.
    """

    def __init__(self, capacity: int = DEFAULT_QUEUE_CAPACITY):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive. Was: {capacity}")
        self.capacity = capacity
        self._queue: asyncio.Queue[HitEvent] = asyncio.Queue(maxsize=capacity)

    async def put(self, event: HitEvent) -> None:
        """
        Enqueue an event, waiting for room when the queue is full.

        Raises:
            asyncio.CancelledError: If the caller is cancelled while waiting
        """
        if self._queue.full():
            logger.warning(
                f"Telemetry queue is full ({self.capacity} events); "
                f"waiting to record hit for row {event.row_id}"
            )
        await self._queue.put(event)

    def try_get(self) -> Optional[HitEvent]:
        """Dequeue the oldest event, or return None if the queue is empty."""
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def task_done(self) -> None:
        self._queue.task_done()

    def qsize(self) -> int:
        return self._queue.qsize()

    def empty(self) -> bool:
        return self._queue.empty()


class AggregatorState(Enum):
    IDLE = "idle"
    PROCESSING = "processing"


HitHandler = Callable[[HitEvent], Awaitable[Result[None]]]


class TelemetryAggregator:
    """
    Single background consumer of the telemetry queue.

    Args:
        queue: Queue to drain
        handler: Applies one event to the store and reports the outcome
            (normally UrlService.record_hit on a fresh session)
        idle_delay: Seconds to wait before polling an empty queue again
    """

    def __init__(
        self,
        queue: TelemetryQueue,
        handler: HitHandler,
        idle_delay: float = DEFAULT_IDLE_DELAY_SECONDS
    ):
        self.queue = queue
        self.handler = handler
        self.idle_delay = idle_delay
        self.processed = 0
        self.failed = 0
        self._state = AggregatorState.IDLE
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> AggregatorState:
        return self._state

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the consumer task on the running event loop."""
        if self.running:
            logger.warning("Telemetry aggregator already running")
            return
        self._task = asyncio.create_task(self.run(), name="telemetry-aggregator")

    async def stop(self) -> None:
        """
        Cancel the consumer task and wait for it to finish.

        An in-flight update is abandoned (the store rolls it back); events
        still queued are not drained.
        """
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        if not self.queue.empty():
            logger.info(f"Telemetry aggregator stopped with {self.queue.qsize()} unrecorded hits")

    async def run(self) -> None:
        """Consume events until cancelled."""
        logger.info(f"Telemetry aggregator started (idle delay: {self.idle_delay}s)")
        try:
            while True:
                event = self.queue.try_get()
                if event is None:
                    self._state = AggregatorState.IDLE
                    await asyncio.sleep(self.idle_delay)
                    continue

                self._state = AggregatorState.PROCESSING
                try:
                    await self.process(event)
                finally:
                    self.queue.task_done()
        finally:
            self._state = AggregatorState.IDLE
            logger.info(
                f"Telemetry aggregator stopped: processed={self.processed}, failed={self.failed}"
            )

    async def process(self, event: HitEvent) -> bool:
        """
        Apply one event. Never raises for ordinary failures.

        Returns:
            True if the hit was recorded
        """
        try:
            result = await self.handler(event)
        except Exception:
            self.failed += 1
            logger.error(f"Unexpected failure while recording hit for url {event.row_id}", exc_info=True)
            return False

        if not result.success:
            self.failed += 1
            err = result.error
            logger.error(
                f"Encountered failure while recording hit for url {event.row_id}: "
                f"{err.message} --> {err.format_called_from()}",
                exc_info=err.exception
            )
            return False

        self.processed += 1
        logger.debug(f"Successfully recorded hit for url {event.row_id}")
        return True
