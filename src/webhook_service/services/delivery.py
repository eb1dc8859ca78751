"""Processes a single queued delivery attempt."""
from __future__ import annotations

from datetime import datetime
from typing import Callable

import structlog

from webhook_service.core.exceptions import DeliveryError
from webhook_service.domain.enums import DeliveryOutcome
from webhook_service.domain.models import DeliveryAttempt, utc_now
from webhook_service.repositories.protocols import DeliveryQueueStore
from webhook_service.services.registry import SubscriptionRegistry
from webhook_service.services.retry import RetryPolicy
from webhook_service.services.sender import WebhookSender

logger = structlog.get_logger(__name__)


class DeliveryWorker:
    def __init__(
        self,
        registry: SubscriptionRegistry,
        queue: DeliveryQueueStore,
        sender: WebhookSender,
        policy: RetryPolicy | None = None,
        *,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._registry = registry
        self._queue = queue
        self._sender = sender
        self._policy = policy or RetryPolicy()
        self._clock = clock

    async def process(self, attempt: DeliveryAttempt) -> DeliveryOutcome:
        log = logger.bind(
            attempt_id=str(attempt.id),
            subscription_id=str(attempt.subscription_id),
            event_type=attempt.event_type,
            attempt_number=attempt.attempt_number,
        )
        subscription = await self._registry.get(attempt.subscription_id)
        if subscription is None or not subscription.active:
            await self._queue.remove(attempt.id)
            log.info(
                "delivery_discarded",
                reason="deleted" if subscription is None else "inactive",
            )
            return DeliveryOutcome.DISCARDED

        # Always the current URL and secret, so edits apply to pending retries.
        attempt.url = subscription.url
        try:
            result = await self._sender.send(subscription.url, attempt.payload, subscription.secret)
        except DeliveryError as exc:
            at = self._clock()
            attempt.record_response(
                attempted_at=at,
                status_code=exc.status_code,
                response_body=exc.response_body,
                error=str(exc),
            )
            await self._registry.record_failure(subscription.id, exc.status_code, at)
            if self._policy.should_retry(attempt):
                self._policy.schedule_retry(attempt)
                await self._queue.reschedule(attempt)
                log.info(
                    "delivery_retry_scheduled",
                    status_code=exc.status_code,
                    error=str(exc),
                    next_retry_at=str(attempt.next_retry_at),
                )
                return DeliveryOutcome.RETRY_SCHEDULED
            await self._queue.remove(attempt.id)
            log.warning(
                "delivery_failed",
                status_code=exc.status_code,
                error=str(exc),
                max_attempts=attempt.max_attempts,
            )
            return DeliveryOutcome.FAILED

        at = self._clock()
        attempt.record_response(
            attempted_at=at,
            status_code=result.status_code,
            response_body=result.body,
            error=None,
        )
        await self._queue.remove(attempt.id)
        await self._registry.record_success(subscription.id, result.status_code, at)
        log.info("delivery_succeeded", status_code=result.status_code, elapsed_ms=result.elapsed_ms)
        return DeliveryOutcome.DELIVERED
