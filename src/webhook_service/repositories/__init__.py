"""Repository package exports."""

from webhook_service.repositories.deliveries import DeliveryQueueRepository
from webhook_service.repositories.events import EventLogRepository
from webhook_service.repositories.memory import (
    InMemoryDeliveryQueue,
    InMemoryEventLog,
    InMemorySubscriptionStore,
)
from webhook_service.repositories.protocols import (
    DeliveryQueueStore,
    EventLogStore,
    SubscriptionStore,
)
from webhook_service.repositories.subscriptions import SubscriptionRepository

__all__ = [
    "SubscriptionRepository",
    "EventLogRepository",
    "DeliveryQueueRepository",
    "InMemorySubscriptionStore",
    "InMemoryEventLog",
    "InMemoryDeliveryQueue",
    "SubscriptionStore",
    "EventLogStore",
    "DeliveryQueueStore",
]
