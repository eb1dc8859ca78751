"""Service layer exports."""

from webhook_service.services.delivery import DeliveryWorker
from webhook_service.services.publisher import EventPublisher
from webhook_service.services.registry import SubscriptionRegistry
from webhook_service.services.retry import RetryPolicy
from webhook_service.services.sender import WebhookSender
from webhook_service.services.stats import StatsService

__all__ = [
    "DeliveryWorker",
    "EventPublisher",
    "RetryPolicy",
    "StatsService",
    "SubscriptionRegistry",
    "WebhookSender",
]
