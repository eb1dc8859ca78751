"""In-process stores for development and tests (``storage_backend=memory``).

Each store serializes access with its own ``asyncio.Lock`` and hands out
copies, so callers never mutate stored records behind the store's back.
"""
from __future__ import annotations

import asyncio
from collections import deque
from datetime import datetime
from typing import Any, Sequence
from uuid import UUID

from webhook_service.domain.enums import EventType
from webhook_service.domain.models import DeliveryAttempt, DomainEvent, Subscription


class InMemorySubscriptionStore:
    def __init__(self) -> None:
        self._items: dict[UUID, Subscription] = {}
        self._lock = asyncio.Lock()

    async def insert(self, subscription: Subscription) -> Subscription:
        async with self._lock:
            self._items[subscription.id] = subscription.model_copy(deep=True)
        return subscription.model_copy(deep=True)

    async def get(self, subscription_id: UUID) -> Subscription | None:
        item = self._items.get(subscription_id)
        return item.model_copy(deep=True) if item is not None else None

    async def list(
        self, *, scope: str | None = None, active: bool | None = None
    ) -> list[Subscription]:
        items = sorted(self._items.values(), key=lambda s: s.created_at)
        return [
            s.model_copy(deep=True)
            for s in items
            if (scope is None or s.scope == scope) and (active is None or s.active == active)
        ]

    async def list_matching(
        self, event_type: EventType, scope: str | None = None
    ) -> list[Subscription]:
        items = sorted(self._items.values(), key=lambda s: s.created_at)
        return [s.model_copy(deep=True) for s in items if s.matches(event_type, scope)]

    async def update(
        self, subscription_id: UUID, changes: dict[str, Any], updated_at: datetime
    ) -> Subscription | None:
        async with self._lock:
            current = self._items.get(subscription_id)
            if current is None:
                return None
            updated = current.model_copy(update={**changes, "updated_at": updated_at}, deep=True)
            self._items[subscription_id] = updated
        return updated.model_copy(deep=True)

    async def delete(self, subscription_id: UUID) -> bool:
        async with self._lock:
            return self._items.pop(subscription_id, None) is not None

    async def record_success(self, subscription_id: UUID, status_code: int, at: datetime) -> None:
        async with self._lock:
            current = self._items.get(subscription_id)
            if current is None:
                return
            current.last_status = status_code
            current.last_attempt_at = at
            current.last_success_at = at
            current.failure_count = 0
            current.updated_at = at

    async def record_failure(
        self, subscription_id: UUID, status_code: int | None, at: datetime
    ) -> None:
        async with self._lock:
            current = self._items.get(subscription_id)
            if current is None:
                return
            current.last_status = status_code
            current.last_attempt_at = at
            current.failure_count += 1
            current.updated_at = at

    async def count(self) -> tuple[int, int]:
        items = list(self._items.values())
        return len(items), sum(1 for s in items if s.active)


class InMemoryEventLog:
    def __init__(self, capacity: int = 1000) -> None:
        self.capacity = capacity
        self._events: deque[DomainEvent] = deque(maxlen=capacity)
        self._lock = asyncio.Lock()

    async def append(self, event: DomainEvent) -> None:
        async with self._lock:
            self._events.append(event.model_copy(deep=True))

    async def list_recent(self, limit: int = 50) -> list[DomainEvent]:
        newest_first = reversed(self._events)
        return [e.model_copy(deep=True) for _, e in zip(range(limit), newest_first)]

    async def list_all(self) -> list[DomainEvent]:
        """Oldest first."""
        return [e.model_copy(deep=True) for e in self._events]

    async def count(self) -> int:
        return len(self._events)

    async def count_since(self, since: datetime) -> int:
        return sum(1 for e in self._events if e.timestamp > since)


class InMemoryDeliveryQueue:
    def __init__(self) -> None:
        self._items: dict[UUID, DeliveryAttempt] = {}
        self._lock = asyncio.Lock()

    async def enqueue_many(self, attempts: Sequence[DeliveryAttempt]) -> None:
        async with self._lock:
            for attempt in attempts:
                self._items[attempt.id] = attempt.model_copy(deep=True)

    async def claim_due(
        self, now: datetime, lease_cutoff: datetime, limit: int
    ) -> list[DeliveryAttempt]:
        async with self._lock:
            ready = [
                a
                for a in sorted(self._items.values(), key=lambda a: a.scheduled_at)
                if a.is_ready(now) and (a.locked_at is None or a.locked_at < lease_cutoff)
            ][:limit]
            for attempt in ready:
                attempt.locked_at = now
            return [a.model_copy(deep=True) for a in ready]

    async def reschedule(self, attempt: DeliveryAttempt) -> None:
        async with self._lock:
            if attempt.id not in self._items:
                return
            stored = attempt.model_copy(deep=True)
            stored.locked_at = None
            self._items[attempt.id] = stored

    async def remove(self, attempt_id: UUID) -> bool:
        async with self._lock:
            return self._items.pop(attempt_id, None) is not None

    async def get(self, attempt_id: UUID) -> DeliveryAttempt | None:
        item = self._items.get(attempt_id)
        return item.model_copy(deep=True) if item is not None else None

    async def list_pending(self, limit: int = 50) -> list[DeliveryAttempt]:
        items = sorted(
            self._items.values(), key=lambda a: a.next_retry_at or a.scheduled_at
        )
        return [a.model_copy(deep=True) for a in items[:limit]]

    async def count(self) -> int:
        return len(self._items)
