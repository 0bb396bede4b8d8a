"""
Telemetry Runtime Manager

This module owns the lifecycle of the hit telemetry pipeline for one
application instance.

Design:
- One TelemetryRuntime per process, created by the app factory and kept on
  app.state (request handlers reach it through get_telemetry)
- start() on application startup, shutdown() on application shutdown
- The aggregator opens a fresh database session for every event, so a
  failed update never poisons the session used for the next one
"""

import logging
from typing import Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import async_sessionmaker

from urlshortener.core.result import Result
from urlshortener.core.setting import settings
from urlshortener.db.repository import SQLModelRowStore
from urlshortener.services.telemetry import HitEvent, HitHandler, TelemetryAggregator, TelemetryQueue
from urlshortener.services.url_service import UrlService

logger = logging.getLogger(__name__)


def session_scoped_recorder(session_maker: async_sessionmaker) -> HitHandler:
    """Build the aggregator's handler: record one hit inside its own session."""
    async def record(event: HitEvent) -> Result[None]:
        async with session_maker() as session:
            service = UrlService(SQLModelRowStore(session))
            return await service.record_hit(event)

    return record


class TelemetryRuntime:
    """
    Process-wide handle on the telemetry queue and its aggregator.

    Args:
        session_maker: Session factory used by the aggregator
        capacity: Queue capacity (defaults to TELEMETRY_QUEUE_CAPACITY)
        idle_delay: Aggregator idle delay (defaults to TELEMETRY_IDLE_DELAY_SECONDS)
    """

    def __init__(
        self,
        session_maker: async_sessionmaker,
        capacity: Optional[int] = None,
        idle_delay: Optional[float] = None
    ):
        self.queue = TelemetryQueue(capacity or settings.TELEMETRY_QUEUE_CAPACITY)
        self.aggregator = TelemetryAggregator(
            self.queue,
            session_scoped_recorder(session_maker),
            idle_delay=idle_delay or settings.TELEMETRY_IDLE_DELAY_SECONDS
        )

    async def start(self) -> None:
        """Start the aggregator. Must be called from the running event loop."""
        self.aggregator.start()
        logger.info(f"Telemetry pipeline started (queue capacity: {self.queue.capacity})")

    async def shutdown(self) -> None:
        """Stop the aggregator; pending events are abandoned."""
        logger.info("Shutting down telemetry pipeline")
        await self.aggregator.stop()

    def get_stats(self) -> dict:
        """Pipeline metrics for monitoring."""
        return {
            "queue_depth": self.queue.qsize(),
            "queue_capacity": self.queue.capacity,
            "aggregator_state": self.aggregator.state.value,
            "aggregator_running": self.aggregator.running,
            "hits_recorded": self.aggregator.processed,
            "hits_failed": self.aggregator.failed,
        }


def get_telemetry(request: Request) -> TelemetryRuntime:
    """FastAPI dependency returning the application's telemetry runtime."""
    return request.app.state.telemetry
