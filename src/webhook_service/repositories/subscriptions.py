"""Postgres-backed subscription registry storage."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, List
from uuid import UUID

from asyncpg import Pool, Record  # type: ignore[import-untyped]

from webhook_service.core.exceptions import PersistenceError
from webhook_service.domain.enums import EventType
from webhook_service.domain.models import Subscription
from webhook_service.repositories.base import BaseRepository

_UPDATABLE_COLUMNS = ("url", "events", "active", "name", "description")


class SubscriptionRepository(BaseRepository):
    def __init__(self, pool: Pool):
        super().__init__(pool)

    @staticmethod
    def _to_model(record: Record) -> Subscription:
        return Subscription.model_validate(dict(record))

    @staticmethod
    def _column_value(value: Any) -> Any:
        if isinstance(value, list):
            return [v.value if isinstance(v, Enum) else v for v in value]
        return value

    async def insert(self, subscription: Subscription) -> Subscription:
        record = await self._fetchrow(
            """
            INSERT INTO webhook_subscriptions (
                id, url, secret, events, active, name, description, scope,
                created_at, updated_at, failure_count
            )
            VALUES ($1, $2, $3, $4::text[], $5, $6, $7, $8, $9, $10, $11)
            RETURNING *
            """,
            subscription.id,
            subscription.url,
            subscription.secret,
            [e.value for e in subscription.events],
            subscription.active,
            subscription.name,
            subscription.description,
            subscription.scope,
            subscription.created_at,
            subscription.updated_at,
            subscription.failure_count,
        )
        if record is None:
            raise PersistenceError("Subscription insert returned no row")
        return self._to_model(record)

    async def get(self, subscription_id: UUID) -> Subscription | None:
        record = await self._fetchrow(
            "SELECT * FROM webhook_subscriptions WHERE id = $1", subscription_id
        )
        return self._to_model(record) if record is not None else None

    async def list(
        self, *, scope: str | None = None, active: bool | None = None
    ) -> List[Subscription]:
        where: list[str] = []
        values: list[Any] = []
        if scope is not None:
            values.append(scope)
            where.append(f"scope = ${len(values)}")
        if active is not None:
            values.append(active)
            where.append(f"active = ${len(values)}")
        where_sql = f"WHERE {' AND '.join(where)}" if where else ""
        records = await self._fetch(
            f"SELECT * FROM webhook_subscriptions {where_sql} ORDER BY created_at ASC",
            *values,
        )
        return [self._to_model(r) for r in records]

    async def list_matching(
        self, event_type: EventType, scope: str | None = None
    ) -> List[Subscription]:
        records = await self._fetch(
            """
            SELECT *
            FROM webhook_subscriptions
            WHERE active = true
              AND $1 = ANY(events)
              AND ($2::text IS NULL OR scope = $2)
            ORDER BY created_at ASC
            """,
            event_type.value,
            scope,
        )
        return [self._to_model(r) for r in records]

    async def update(
        self, subscription_id: UUID, changes: dict[str, Any], updated_at: datetime
    ) -> Subscription | None:
        assignments: list[str] = []
        values: list[Any] = [subscription_id]
        for column in _UPDATABLE_COLUMNS:
            if column not in changes:
                continue
            values.append(self._column_value(changes[column]))
            assignments.append(f"{column} = ${len(values)}")
        values.append(updated_at)
        assignments.append(f"updated_at = ${len(values)}")
        record = await self._fetchrow(
            f"""
            UPDATE webhook_subscriptions
            SET {', '.join(assignments)}
            WHERE id = $1
            RETURNING *
            """,
            *values,
        )
        return self._to_model(record) if record is not None else None

    async def delete(self, subscription_id: UUID) -> bool:
        status = await self._execute(
            "DELETE FROM webhook_subscriptions WHERE id = $1", subscription_id
        )
        return self._affected(status) > 0

    async def record_success(self, subscription_id: UUID, status_code: int, at: datetime) -> None:
        await self._execute(
            """
            UPDATE webhook_subscriptions
            SET last_status = $2,
                last_attempt_at = $3,
                last_success_at = $3,
                failure_count = 0,
                updated_at = $3
            WHERE id = $1
            """,
            subscription_id,
            status_code,
            at,
        )

    async def record_failure(
        self, subscription_id: UUID, status_code: int | None, at: datetime
    ) -> None:
        await self._execute(
            """
            UPDATE webhook_subscriptions
            SET last_status = $2,
                last_attempt_at = $3,
                failure_count = failure_count + 1,
                updated_at = $3
            WHERE id = $1
            """,
            subscription_id,
            status_code,
            at,
        )

    async def count(self) -> tuple[int, int]:
        record = await self._fetchrow(
            """
            SELECT COUNT(*) AS total,
                   COUNT(*) FILTER (WHERE active) AS active
            FROM webhook_subscriptions
            """
        )
        if record is None:
            return 0, 0
        return int(record["total"]), int(record["active"])
