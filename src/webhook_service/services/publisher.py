"""Event publishing: log the event and enqueue one attempt per matching subscription."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

import structlog

from webhook_service.core.exceptions import ValidationError
from webhook_service.domain.enums import EventType
from webhook_service.domain.models import DeliveryAttempt, DomainEvent, utc_now
from webhook_service.repositories.protocols import DeliveryQueueStore, EventLogStore
from webhook_service.services.registry import SubscriptionRegistry
from webhook_service.services.retry import MAX_ATTEMPTS

logger = structlog.get_logger(__name__)


def coerce_event_type(event_type: EventType | str) -> EventType:
    try:
        return EventType(event_type)
    except ValueError as exc:
        raise ValidationError(
            f"Unknown event type: {event_type}",
            available_events=[e.value for e in EventType],
        ) from exc


class EventPublisher:
    def __init__(
        self,
        registry: SubscriptionRegistry,
        event_log: EventLogStore,
        queue: DeliveryQueueStore,
        *,
        max_attempts: int = MAX_ATTEMPTS,
        notify: Callable[[], None] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._registry = registry
        self._event_log = event_log
        self._queue = queue
        self._max_attempts = max_attempts
        self._notify = notify
        self._clock = clock

    def set_notifier(self, notify: Callable[[], None] | None) -> None:
        self._notify = notify

    async def publish(
        self, event_type: EventType | str, data: Any, scope: str | None = None
    ) -> DomainEvent:
        """Record ``event_type`` and queue its deliveries; never waits for them."""
        kind = coerce_event_type(event_type)
        now = self._clock()
        event = DomainEvent(event_type=kind, timestamp=now, data=data, scope=scope)

        subscriptions = await self._registry.list_matching(kind, scope)
        await self._event_log.append(event)

        envelope = event.envelope()
        attempts = [
            DeliveryAttempt(
                subscription_id=sub.id,
                event_type=kind.value,
                payload=envelope,
                url=sub.url,
                attempt_number=1,
                max_attempts=self._max_attempts,
                scheduled_at=now,
            )
            for sub in subscriptions
        ]
        if attempts:
            await self._queue.enqueue_many(attempts)
            if self._notify is not None:
                self._notify()

        logger.info(
            "event_published",
            event_id=str(event.id),
            event_type=kind.value,
            scope=scope,
            deliveries=len(attempts),
        )
        return event
