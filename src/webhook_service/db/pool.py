"""Asyncpg connection pool helpers."""
from __future__ import annotations

from typing import Any, Awaitable, Callable

import asyncpg  # type: ignore[import-untyped]

pool: asyncpg.Pool | None = None


async def init_pool(database_url: str, pool_size: int) -> asyncpg.Pool:
    """Initialize global asyncpg pool."""
    global pool
    if pool is None:
        pool = await asyncpg.create_pool(dsn=database_url, max_size=pool_size)
    return pool


async def close_pool(_app: Any = None) -> None:
    """Close pool on shutdown."""
    global pool
    if pool is not None:
        await pool.close()
        pool = None


def get_pool() -> asyncpg.Pool:
    """Return the initialized asyncpg pool."""
    if pool is None:
        raise RuntimeError("Database pool not initialized. Call init_pool() first.")
    return pool


def create_pool_hooks(
    database_url: str, pool_size: int
) -> tuple[Callable[[Any], Awaitable[None]], Callable[[Any], Awaitable[None]]]:
    """Return (startup, cleanup) hooks for an aiohttp app."""

    async def init_pool_hook(_app: Any = None) -> None:
        await init_pool(database_url, pool_size)

    return init_pool_hook, close_pool
