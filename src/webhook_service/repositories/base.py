"""Shared asyncpg helpers for repositories."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable

import asyncpg  # type: ignore[import-untyped]

from webhook_service.core.exceptions import PersistenceError

_DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


class BaseRepository:
    """Thin wrapper over asyncpg pool operations.

    Driver and connection errors surface as :class:`PersistenceError`.
    """

    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def _fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        try:
            async with self._pool.acquire() as conn:
                return await conn.fetchrow(query, *args)
        except _DB_ERRORS as exc:
            raise PersistenceError(str(exc)) from exc

    async def _fetch(self, query: str, *args: Any) -> Iterable[asyncpg.Record]:
        try:
            async with self._pool.acquire() as conn:
                return await conn.fetch(query, *args)
        except _DB_ERRORS as exc:
            raise PersistenceError(str(exc)) from exc

    async def _execute(self, query: str, *args: Any) -> str:
        try:
            async with self._pool.acquire() as conn:
                return await conn.execute(query, *args)
        except _DB_ERRORS as exc:
            raise PersistenceError(str(exc)) from exc

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[asyncpg.Connection]:
        try:
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    yield conn
        except _DB_ERRORS as exc:
            raise PersistenceError(str(exc)) from exc

    @staticmethod
    def _affected(status: str) -> int:
        """Row count from a command tag such as ``DELETE 3``."""
        return int(status.split()[-1])
