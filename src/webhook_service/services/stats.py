"""Aggregate counters for the stats endpoint."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable

from pydantic import BaseModel

from webhook_service.domain.models import utc_now
from webhook_service.repositories.protocols import DeliveryQueueStore, EventLogStore
from webhook_service.services.registry import SubscriptionRegistry

RECENT_WINDOW = timedelta(hours=1)


class WebhookStats(BaseModel):
    total_webhooks: int
    active_webhooks: int
    queue_length: int
    recent_events: int


class StatsService:
    def __init__(
        self,
        registry: SubscriptionRegistry,
        event_log: EventLogStore,
        queue: DeliveryQueueStore,
        *,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._registry = registry
        self._event_log = event_log
        self._queue = queue
        self._clock = clock

    async def collect(self) -> WebhookStats:
        total, active = await self._registry.counts()
        return WebhookStats(
            total_webhooks=total,
            active_webhooks=active,
            queue_length=await self._queue.count(),
            recent_events=await self._event_log.count_since(self._clock() - RECENT_WINDOW),
        )
