"""Postgres-backed delivery queue."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, List, Sequence
from uuid import UUID

from asyncpg import Pool, Record  # type: ignore[import-untyped]

from webhook_service.domain.models import DeliveryAttempt
from webhook_service.repositories.base import BaseRepository


class DeliveryQueueRepository(BaseRepository):
    def __init__(self, pool: Pool):
        super().__init__(pool)

    @staticmethod
    def _to_model(record: Record) -> DeliveryAttempt:
        payload: dict[str, Any] = dict(record)
        if isinstance(payload.get("payload"), str):
            payload["payload"] = json.loads(payload["payload"])
        return DeliveryAttempt.model_validate(payload)

    async def enqueue_many(self, attempts: Sequence[DeliveryAttempt]) -> None:
        if not attempts:
            return
        async with self._transaction() as conn:
            await conn.executemany(
                """
                INSERT INTO webhook_delivery_queue (
                    id, subscription_id, event_type, payload, url,
                    attempt_number, max_attempts, scheduled_at
                )
                VALUES ($1, $2, $3, $4::jsonb, $5, $6, $7, $8)
                """,
                [
                    (
                        a.id,
                        a.subscription_id,
                        a.event_type,
                        json.dumps(a.payload, default=str),
                        a.url,
                        a.attempt_number,
                        a.max_attempts,
                        a.scheduled_at,
                    )
                    for a in attempts
                ],
            )

    async def claim_due(
        self, now: datetime, lease_cutoff: datetime, limit: int
    ) -> List[DeliveryAttempt]:
        """
        Atomically claim ready attempts for processing.

        Row locks are taken with ``FOR UPDATE SKIP LOCKED`` and the lease is
        stamped in the same statement, so two passes never hold the same
        attempt. A lease older than ``lease_cutoff`` belongs to a pass that
        died and may be taken over.
        """
        async with self._transaction() as conn:
            records = await conn.fetch(
                """
                WITH cte AS (
                    SELECT id
                    FROM webhook_delivery_queue
                    WHERE (attempted_at IS NULL OR next_retry_at <= $1)
                      AND (locked_at IS NULL OR locked_at < $2)
                    ORDER BY scheduled_at ASC
                    LIMIT $3
                    FOR UPDATE SKIP LOCKED
                )
                UPDATE webhook_delivery_queue q
                SET locked_at = $1
                FROM cte
                WHERE q.id = cte.id
                RETURNING q.*
                """,
                now,
                lease_cutoff,
                limit,
            )
        return [self._to_model(r) for r in records]

    async def reschedule(self, attempt: DeliveryAttempt) -> None:
        await self._execute(
            """
            UPDATE webhook_delivery_queue
            SET attempt_number = $2,
                attempted_at = $3,
                status_code = $4,
                response_body = $5,
                error = $6,
                next_retry_at = $7,
                url = $8,
                locked_at = NULL
            WHERE id = $1
            """,
            attempt.id,
            attempt.attempt_number,
            attempt.attempted_at,
            attempt.status_code,
            attempt.response_body,
            attempt.error,
            attempt.next_retry_at,
            attempt.url,
        )

    async def remove(self, attempt_id: UUID) -> bool:
        status = await self._execute(
            "DELETE FROM webhook_delivery_queue WHERE id = $1", attempt_id
        )
        return self._affected(status) > 0

    async def get(self, attempt_id: UUID) -> DeliveryAttempt | None:
        record = await self._fetchrow(
            "SELECT * FROM webhook_delivery_queue WHERE id = $1", attempt_id
        )
        return self._to_model(record) if record is not None else None

    async def list_pending(self, limit: int = 50) -> List[DeliveryAttempt]:
        records = await self._fetch(
            """
            SELECT * FROM webhook_delivery_queue
            ORDER BY COALESCE(next_retry_at, scheduled_at) ASC
            LIMIT $1
            """,
            limit,
        )
        return [self._to_model(r) for r in records]

    async def count(self) -> int:
        record = await self._fetchrow("SELECT COUNT(*) AS total FROM webhook_delivery_queue")
        return int(record["total"]) if record else 0
