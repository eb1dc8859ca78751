"""Wiring of stores, services and the scheduler, plus aiohttp accessors."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from aiohttp import web

from webhook_service.db.pool import get_pool
from webhook_service.domain.models import utc_now
from webhook_service.repositories import (
    DeliveryQueueRepository,
    DeliveryQueueStore,
    EventLogRepository,
    EventLogStore,
    InMemoryDeliveryQueue,
    InMemoryEventLog,
    InMemorySubscriptionStore,
    SubscriptionRepository,
    SubscriptionStore,
)
from webhook_service.scheduler import DeliveryScheduler
from webhook_service.services.delivery import DeliveryWorker
from webhook_service.services.publisher import EventPublisher
from webhook_service.services.registry import SubscriptionRegistry
from webhook_service.services.retry import DEFAULT_BACKOFF_SECONDS, RetryPolicy
from webhook_service.services.sender import WebhookSender
from webhook_service.services.stats import StatsService
from webhook_service.settings import Settings


@dataclass
class WebhookComponents:
    subscriptions: SubscriptionStore
    event_log: EventLogStore
    queue: DeliveryQueueStore
    sender: WebhookSender
    registry: SubscriptionRegistry
    publisher: EventPublisher
    worker: DeliveryWorker
    scheduler: DeliveryScheduler
    stats: StatsService


COMPONENTS_KEY = web.AppKey("webhook_components", WebhookComponents)


def build_stores(settings: Settings) -> tuple[SubscriptionStore, EventLogStore, DeliveryQueueStore]:
    if settings.storage_backend == "memory":
        return (
            InMemorySubscriptionStore(),
            InMemoryEventLog(capacity=settings.event_log_capacity),
            InMemoryDeliveryQueue(),
        )
    pool = get_pool()
    return (
        SubscriptionRepository(pool),
        EventLogRepository(pool, capacity=settings.event_log_capacity),
        DeliveryQueueRepository(pool),
    )


def build_components(
    settings: Settings,
    *,
    stores: tuple[SubscriptionStore, EventLogStore, DeliveryQueueStore] | None = None,
    sender: WebhookSender | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> WebhookComponents:
    subscriptions, event_log, queue = stores or build_stores(settings)
    sender = sender or WebhookSender.from_settings(settings)
    registry = SubscriptionRegistry(
        subscriptions, sender, require_https=settings.https_required, clock=clock
    )
    worker = DeliveryWorker(
        registry,
        queue,
        sender,
        RetryPolicy(DEFAULT_BACKOFF_SECONDS, settings.webhook_max_attempts),
        clock=clock,
    )
    scheduler = DeliveryScheduler(
        queue,
        worker,
        interval_seconds=settings.webhook_dispatch_interval_seconds,
        batch_size=settings.webhook_dispatch_batch_size,
        max_concurrency=settings.webhook_dispatch_max_concurrency,
        lease_seconds=settings.webhook_lease_seconds,
        clock=clock,
    )
    publisher = EventPublisher(
        registry,
        event_log,
        queue,
        max_attempts=settings.webhook_max_attempts,
        notify=scheduler.kick,
        clock=clock,
    )
    return WebhookComponents(
        subscriptions=subscriptions,
        event_log=event_log,
        queue=queue,
        sender=sender,
        registry=registry,
        publisher=publisher,
        worker=worker,
        scheduler=scheduler,
        stats=StatsService(registry, event_log, queue, clock=clock),
    )


def get_components(request: web.Request) -> WebhookComponents:
    return request.app[COMPONENTS_KEY]


def get_registry(request: web.Request) -> SubscriptionRegistry:
    return get_components(request).registry
