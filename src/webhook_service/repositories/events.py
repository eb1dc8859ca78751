"""Postgres-backed bounded event log."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, List

from asyncpg import Pool, Record  # type: ignore[import-untyped]

from webhook_service.domain.models import DomainEvent
from webhook_service.repositories.base import BaseRepository


class EventLogRepository(BaseRepository):
    def __init__(self, pool: Pool, *, capacity: int = 1000):
        super().__init__(pool)
        self.capacity = capacity

    @staticmethod
    def _to_model(record: Record) -> DomainEvent:
        payload: dict[str, Any] = dict(record)
        payload.pop("seq", None)
        if isinstance(payload.get("data"), str):
            payload["data"] = json.loads(payload["data"])
        return DomainEvent.model_validate(payload)

    async def append(self, event: DomainEvent) -> None:
        async with self._transaction() as conn:
            await conn.execute(
                """
                INSERT INTO webhook_events (id, event_type, "timestamp", data, scope)
                VALUES ($1, $2, $3, $4::jsonb, $5)
                """,
                event.id,
                event.event_type.value,
                event.timestamp,
                json.dumps(event.data, default=str),
                event.scope,
            )
            await conn.execute(
                """
                DELETE FROM webhook_events
                WHERE seq < (
                    SELECT MIN(seq) FROM (
                        SELECT seq FROM webhook_events ORDER BY seq DESC LIMIT $1
                    ) AS newest
                )
                """,
                self.capacity,
            )

    async def list_recent(self, limit: int = 50) -> List[DomainEvent]:
        records = await self._fetch(
            "SELECT * FROM webhook_events ORDER BY seq DESC LIMIT $1", limit
        )
        return [self._to_model(r) for r in records]

    async def count(self) -> int:
        record = await self._fetchrow("SELECT COUNT(*) AS total FROM webhook_events")
        return int(record["total"]) if record else 0

    async def count_since(self, since: datetime) -> int:
        record = await self._fetchrow(
            'SELECT COUNT(*) AS total FROM webhook_events WHERE "timestamp" > $1', since
        )
        return int(record["total"]) if record else 0
