"""
Tests for the hit telemetry pipeline: TelemetryQueue, TelemetryAggregator
and the TelemetryRuntime wired to a real database.
"""

import asyncio
from datetime import datetime, timezone

import pytest

from urlshortener.core.result import Err, ErrorCategory, Result
from urlshortener.core.telemetry_manager import TelemetryRuntime
from urlshortener.db.repository import SQLModelRowStore
from urlshortener.services.telemetry import AggregatorState, HitEvent, TelemetryAggregator, TelemetryQueue
from urlshortener.services.url_service import UrlService
from tests.conftest import as_utc, wait_for


class RecordingHandler:
    """Handler double that remembers what it was asked to record."""

    def __init__(self, fail_rows=(), raise_rows=()):
        self.seen: list[int] = []
        self.fail_rows = set(fail_rows)
        self.raise_rows = set(raise_rows)

    async def __call__(self, event: HitEvent) -> Result[None]:
        self.seen.append(event.row_id)
        if event.row_id in self.raise_rows:
            raise RuntimeError(f"handler exploded on row {event.row_id}")
        if event.row_id in self.fail_rows:
            return Result.fail(Err(
                f"Row with row id {event.row_id} was not found.",
                ErrorCategory.NOT_FOUND,
                "RecordingHandler"
            ))
        return Result.ok()


class TestTelemetryQueue:
    """Test the bounded event queue."""

    @pytest.mark.asyncio
    async def test_fifo(self):
        queue = TelemetryQueue(capacity=5)
        for row_id in (1, 2, 3):
            await queue.put(HitEvent(row_id=row_id))

        assert queue.qsize() == 3
        assert [queue.try_get().row_id for _ in range(3)] == [1, 2, 3]
        assert queue.try_get() is None
        assert queue.empty()

    @pytest.mark.asyncio
    async def test_put_waits_when_full(self):
        queue = TelemetryQueue(capacity=1)
        await queue.put(HitEvent(row_id=1))

        pending = asyncio.create_task(queue.put(HitEvent(row_id=2)))
        await asyncio.sleep(0.05)
        assert not pending.done()

        assert queue.try_get().row_id == 1
        await asyncio.wait_for(pending, timeout=1)
        assert queue.try_get().row_id == 2

    @pytest.mark.asyncio
    async def test_put_is_cancellable(self):
        queue = TelemetryQueue(capacity=1)
        await queue.put(HitEvent(row_id=1))

        pending = asyncio.create_task(queue.put(HitEvent(row_id=2)))
        await asyncio.sleep(0.05)
        pending.cancel()

        with pytest.raises(asyncio.CancelledError):
            await pending
        assert queue.qsize() == 1

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            TelemetryQueue(capacity=0)

    def test_event_defaults_to_now(self):
        before = datetime.now(timezone.utc)
        event = HitEvent(row_id=7)
        assert event.date_hit >= before


class TestTelemetryAggregator:
    """Test the single background consumer."""

    @pytest.mark.asyncio
    async def test_processes_events_in_order(self, queue):
        handler = RecordingHandler()
        aggregator = TelemetryAggregator(queue, handler, idle_delay=0.01)
        for row_id in (1, 2, 3):
            await queue.put(HitEvent(row_id=row_id))

        aggregator.start()
        try:
            assert await wait_for(lambda: aggregator.processed == 3)
        finally:
            await aggregator.stop()

        assert handler.seen == [1, 2, 3]
        assert aggregator.failed == 0
        assert queue.empty()

    @pytest.mark.asyncio
    async def test_failures_are_dropped(self, queue):
        """A failing or raising handler does not stop the aggregator."""
        handler = RecordingHandler(fail_rows={1}, raise_rows={2})
        aggregator = TelemetryAggregator(queue, handler, idle_delay=0.01)
        for row_id in (1, 2, 3):
            await queue.put(HitEvent(row_id=row_id))

        aggregator.start()
        try:
            assert await wait_for(lambda: aggregator.processed + aggregator.failed == 3)
            assert aggregator.running
        finally:
            await aggregator.stop()

        assert handler.seen == [1, 2, 3]
        assert aggregator.failed == 2
        assert aggregator.processed == 1

    @pytest.mark.asyncio
    async def test_picks_up_events_after_idling(self, queue):
        handler = RecordingHandler()
        aggregator = TelemetryAggregator(queue, handler, idle_delay=0.01)

        aggregator.start()
        try:
            await asyncio.sleep(0.05)
            assert aggregator.state is AggregatorState.IDLE
            assert aggregator.running

            await queue.put(HitEvent(row_id=9))
            assert await wait_for(lambda: aggregator.processed == 1)
        finally:
            await aggregator.stop()

        assert handler.seen == [9]

    @pytest.mark.asyncio
    async def test_stop_does_not_drain(self, queue):
        handler = RecordingHandler()
        aggregator = TelemetryAggregator(queue, handler, idle_delay=0.01)

        aggregator.start()
        await aggregator.stop()
        await queue.put(HitEvent(row_id=1))
        await asyncio.sleep(0.05)

        assert not aggregator.running
        assert aggregator.state is AggregatorState.IDLE
        assert handler.seen == []
        assert queue.qsize() == 1

    @pytest.mark.asyncio
    async def test_stop_without_start(self, queue):
        aggregator = TelemetryAggregator(queue, RecordingHandler())
        await aggregator.stop()
        assert not aggregator.running

    @pytest.mark.asyncio
    async def test_process_reports_outcome(self, queue):
        aggregator = TelemetryAggregator(queue, RecordingHandler(fail_rows={2}))

        assert await aggregator.process(HitEvent(row_id=1)) is True
        assert await aggregator.process(HitEvent(row_id=2)) is False
        assert (aggregator.processed, aggregator.failed) == (1, 1)


class TestTelemetryRuntime:
    """End to end: lookup -> queue -> aggregator -> database."""

    @pytest.mark.asyncio
    async def test_hits_are_eventually_recorded(self, session_maker, row_store):
        runtime = TelemetryRuntime(session_maker, capacity=10, idle_delay=0.01)
        service = UrlService(row_store, runtime.queue)
        row = (await service.create("https://example.org/a")).value

        before_lookup = datetime.now(timezone.utc)
        assert (await service.lookup(row.url_safe_alias)).success
        assert (await service.lookup(row.url_safe_alias)).success

        await runtime.start()
        try:
            assert await wait_for(lambda: runtime.aggregator.processed == 2)
        finally:
            await runtime.shutdown()

        async with session_maker() as session:
            stored = await SQLModelRowStore(session).get_by_id(row.row_id)

        assert stored.hits == 2
        assert as_utc(stored.last_hit) >= before_lookup

    @pytest.mark.asyncio
    async def test_missing_row_is_logged_and_dropped(self, session_maker):
        runtime = TelemetryRuntime(session_maker, capacity=10, idle_delay=0.01)
        await runtime.queue.put(HitEvent(row_id=12345))

        await runtime.start()
        try:
            assert await wait_for(lambda: runtime.aggregator.failed == 1)
            assert runtime.aggregator.running
        finally:
            await runtime.shutdown()

    @pytest.mark.asyncio
    async def test_stats(self, session_maker):
        runtime = TelemetryRuntime(session_maker, capacity=10, idle_delay=0.01)
        await runtime.queue.put(HitEvent(row_id=1))

        stats = runtime.get_stats()

        assert stats["queue_depth"] == 1
        assert stats["queue_capacity"] == 10
        assert stats["aggregator_state"] == "idle"
        assert stats["aggregator_running"] is False
