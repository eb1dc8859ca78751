"""Storage contracts shared by the Postgres and in-memory backends."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, Sequence
from uuid import UUID

from webhook_service.domain.enums import EventType
from webhook_service.domain.models import DeliveryAttempt, DomainEvent, Subscription


class SubscriptionStore(Protocol):
    async def insert(self, subscription: Subscription) -> Subscription: ...

    async def get(self, subscription_id: UUID) -> Subscription | None: ...

    async def list(
        self, *, scope: str | None = None, active: bool | None = None
    ) -> list[Subscription]: ...

    async def list_matching(
        self, event_type: EventType, scope: str | None = None
    ) -> list[Subscription]: ...

    async def update(
        self, subscription_id: UUID, changes: dict[str, Any], updated_at: datetime
    ) -> Subscription | None: ...

    async def delete(self, subscription_id: UUID) -> bool: ...

    async def record_success(
        self, subscription_id: UUID, status_code: int, at: datetime
    ) -> None: ...

    async def record_failure(
        self, subscription_id: UUID, status_code: int | None, at: datetime
    ) -> None: ...

    async def count(self) -> tuple[int, int]:
        """Return ``(total, active)``."""
        ...


class EventLogStore(Protocol):
    capacity: int

    async def append(self, event: DomainEvent) -> None: ...

    async def list_recent(self, limit: int = 50) -> list[DomainEvent]: ...

    async def count(self) -> int: ...

    async def count_since(self, since: datetime) -> int: ...


class DeliveryQueueStore(Protocol):
    async def enqueue_many(self, attempts: Sequence[DeliveryAttempt]) -> None: ...

    async def claim_due(
        self, now: datetime, lease_cutoff: datetime, limit: int
    ) -> list[DeliveryAttempt]:
        """Atomically lease ready attempts whose lock is free or older than ``lease_cutoff``."""
        ...

    async def reschedule(self, attempt: DeliveryAttempt) -> None:
        """Write the attempt back as pending and release its lease."""
        ...

    async def remove(self, attempt_id: UUID) -> bool: ...

    async def get(self, attempt_id: UUID) -> DeliveryAttempt | None: ...

    async def list_pending(self, limit: int = 50) -> list[DeliveryAttempt]: ...

    async def count(self) -> int: ...
