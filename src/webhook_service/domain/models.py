"""Pydantic models representing webhook domain entities."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from webhook_service.domain.enums import EventType

RESPONSE_BODY_LIMIT = 1000


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Subscription(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    url: str
    secret: str
    events: list[EventType]
    active: bool = True
    name: str | None = None
    description: str | None = None
    scope: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    # Health, written only by delivery outcomes
    last_status: int | None = None
    last_attempt_at: datetime | None = None
    last_success_at: datetime | None = None
    failure_count: int = 0

    def matches(self, event_type: EventType, scope: str | None = None) -> bool:
        if not self.active or event_type not in self.events:
            return False
        return scope is None or self.scope == scope

    def public_dump(self) -> dict[str, Any]:
        """JSON-ready view without the signing secret."""
        payload = self.model_dump(mode="json", exclude={"secret"})
        payload["has_secret"] = bool(self.secret)
        return payload


class DomainEvent(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    event_type: EventType
    timestamp: datetime = Field(default_factory=utc_now)
    data: Any = None
    scope: str | None = None

    def envelope(self) -> dict[str, Any]:
        """Wire body sent to subscribers."""
        return {
            "id": str(self.id),
            "event": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        }


class DeliveryAttempt(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    subscription_id: UUID
    event_type: str
    payload: dict[str, Any]
    url: str
    attempt_number: int = 1
    max_attempts: int = 5
    scheduled_at: datetime = Field(default_factory=utc_now)
    attempted_at: datetime | None = None
    status_code: int | None = None
    response_body: str | None = None
    error: str | None = None
    next_retry_at: datetime | None = None
    locked_at: datetime | None = None

    def is_ready(self, now: datetime) -> bool:
        if self.attempted_at is None:
            return True
        return self.next_retry_at is not None and self.next_retry_at <= now

    def record_response(
        self,
        *,
        attempted_at: datetime,
        status_code: int | None,
        response_body: str | None,
        error: str | None,
    ) -> None:
        self.attempted_at = attempted_at
        self.status_code = status_code
        self.response_body = response_body[:RESPONSE_BODY_LIMIT] if response_body else None
        self.error = error


class TestDeliveryResult(BaseModel):
    __test__ = False  # not a pytest class

    success: bool
    status_code: int | None = None
    error: str | None = None
    response_time_ms: int
