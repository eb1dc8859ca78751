"""Subscription registry: validated CRUD, health bookkeeping and test deliveries."""
from __future__ import annotations

import json
import time
from datetime import datetime
from typing import Any, Callable, Iterable, List
from urllib.parse import urlsplit
from uuid import UUID, uuid4

import structlog
from pydantic import ValidationError as PydanticValidationError

from webhook_service.core.exceptions import DeliveryError, NotFoundError, ValidationError
from webhook_service.domain.dto import SubscriptionUpdateDTO
from webhook_service.domain.enums import TEST_EVENT_TYPE, EventType
from webhook_service.domain.models import Subscription, TestDeliveryResult, utc_now
from webhook_service.repositories.protocols import SubscriptionStore
from webhook_service.services.sender import WebhookSender
from webhook_service.signing import generate_secret

logger = structlog.get_logger(__name__)


def validate_url(url: str | None, *, require_https: bool) -> str:
    if not url or not isinstance(url, str) or not url.strip():
        raise ValidationError("URL is required")
    url = url.strip()
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise ValidationError("Invalid URL format")
    if require_https and parts.scheme != "https":
        raise ValidationError("HTTPS URLs are required in production")
    if parts.scheme not in ("http", "https"):
        raise ValidationError("Only HTTP and HTTPS URLs are supported")
    return url


def parse_event_types(events: Iterable[Any] | None) -> list[EventType]:
    """Validate against the closed event catalogue; duplicates collapse in order."""
    if events is None or isinstance(events, (str, bytes)):
        raise ValidationError("At least one event is required")
    raw = [e.strip() if isinstance(e, str) else e for e in events]
    if not raw:
        raise ValidationError("At least one event is required")
    known = {e.value for e in EventType}
    invalid = [e for e in raw if (e.value if isinstance(e, EventType) else e) not in known]
    if invalid:
        raise ValidationError(
            "Invalid events",
            invalid_events=[str(e) for e in invalid],
            available_events=sorted(known),
        )
    return list(dict.fromkeys(EventType(e) for e in raw))


class SubscriptionRegistry:
    """High-level operations for webhook subscriptions."""

    def __init__(
        self,
        store: SubscriptionStore,
        sender: WebhookSender,
        *,
        require_https: bool = False,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._sender = sender
        self._require_https = require_https
        self._clock = clock

    async def create(
        self,
        url: str,
        events: Iterable[Any],
        secret: str | None = None,
        name: str | None = None,
        description: str | None = None,
        scope: str | None = None,
    ) -> Subscription:
        now = self._clock()
        subscription = Subscription(
            url=validate_url(url, require_https=self._require_https),
            events=parse_event_types(events),
            secret=secret or generate_secret(),
            name=name,
            description=description,
            scope=scope,
            created_at=now,
            updated_at=now,
        )
        created = await self._store.insert(subscription)
        logger.info(
            "subscription_created",
            subscription_id=str(created.id),
            url=created.url,
            events=[e.value for e in created.events],
        )
        return created

    async def update(
        self, subscription_id: UUID, patch: SubscriptionUpdateDTO | dict[str, Any]
    ) -> Subscription:
        if isinstance(patch, dict):
            try:
                patch = SubscriptionUpdateDTO.model_validate(patch)
            except PydanticValidationError as exc:
                raise ValidationError(
                    "Invalid update", errors=json.loads(exc.json(include_url=False))
                ) from exc
        changes = patch.changes()
        if "url" in changes:
            changes["url"] = validate_url(changes["url"], require_https=self._require_https)
        if "events" in changes:
            changes["events"] = parse_event_types(changes["events"])
        if "active" in changes and changes["active"] is None:
            raise ValidationError("active must be a boolean")
        if not changes:
            raise ValidationError("No valid fields to update")
        updated = await self._store.update(subscription_id, changes, self._clock())
        if updated is None:
            raise NotFoundError("Webhook not found")
        logger.info(
            "subscription_updated",
            subscription_id=str(subscription_id),
            fields=sorted(changes),
        )
        return updated

    async def delete(self, subscription_id: UUID) -> bool:
        deleted = await self._store.delete(subscription_id)
        if deleted:
            logger.info("subscription_deleted", subscription_id=str(subscription_id))
        return deleted

    async def get(self, subscription_id: UUID) -> Subscription | None:
        return await self._store.get(subscription_id)

    async def list(
        self, scope: str | None = None, active: bool | None = None
    ) -> List[Subscription]:
        return await self._store.list(scope=scope, active=active)

    async def list_matching(
        self, event_type: EventType, scope: str | None = None
    ) -> List[Subscription]:
        return await self._store.list_matching(event_type, scope)

    async def record_success(self, subscription_id: UUID, status_code: int, at: datetime) -> None:
        await self._store.record_success(subscription_id, status_code, at)

    async def record_failure(
        self, subscription_id: UUID, status_code: int | None, at: datetime
    ) -> None:
        await self._store.record_failure(subscription_id, status_code, at)

    async def counts(self) -> tuple[int, int]:
        return await self._store.count()

    async def test(self, subscription_id: UUID) -> TestDeliveryResult:
        """Send one synthetic event outside the queue and report how it went."""
        subscription = await self._store.get(subscription_id)
        if subscription is None:
            raise NotFoundError("Webhook not found")
        envelope = {
            "id": str(uuid4()),
            "event": TEST_EVENT_TYPE,
            "timestamp": self._clock().isoformat(),
            "data": {
                "message": "This is a test webhook delivery",
                "webhook_id": str(subscription.id),
            },
        }
        started = time.monotonic()
        try:
            result = await self._sender.send(subscription.url, envelope, subscription.secret)
        except DeliveryError as exc:
            elapsed_ms = int((time.monotonic() - started) * 1000)
            logger.info(
                "subscription_test_failed",
                subscription_id=str(subscription.id),
                status_code=exc.status_code,
                error=str(exc),
            )
            return TestDeliveryResult(
                success=False,
                status_code=exc.status_code,
                error=str(exc),
                response_time_ms=elapsed_ms,
            )
        return TestDeliveryResult(
            success=True,
            status_code=result.status_code,
            response_time_ms=int((time.monotonic() - started) * 1000),
        )
