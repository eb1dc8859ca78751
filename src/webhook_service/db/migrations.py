"""Checksum-tracked SQL migrations applied on startup."""
from __future__ import annotations

import asyncio
import hashlib
from pathlib import Path
from typing import Any, Awaitable, Callable

import asyncpg  # type: ignore[import-untyped]
import structlog

logger = structlog.get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "sql"


def load_migrations(migrations_dir: Path = MIGRATIONS_DIR) -> dict[str, Path]:
    migrations: dict[str, Path] = {}
    for path in sorted(migrations_dir.glob("*.sql")):
        version = path.stem
        if version in migrations:
            raise ValueError(f"Duplicate migration version detected: {version}")
        migrations[version] = path
    return migrations


async def apply_migrations(conn: asyncpg.Connection, migrations_dir: Path = MIGRATIONS_DIR) -> list[str]:
    """Apply pending migrations on an open connection. Returns applied versions."""
    await conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version text PRIMARY KEY,
            checksum text NOT NULL,
            applied_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )
    rows = await conn.fetch("SELECT version, checksum FROM schema_migrations")
    applied = {row["version"]: row["checksum"] for row in rows}

    done: list[str] = []
    for version, path in load_migrations(migrations_dir).items():
        sql = path.read_text(encoding="utf-8")
        checksum = hashlib.sha256(sql.encode("utf-8")).hexdigest()
        if version in applied:
            if applied[version] != checksum:
                raise RuntimeError(
                    f"Checksum mismatch for {version}: "
                    f"{applied[version]} (db) != {checksum} (file)"
                )
            continue
        logger.info("migration_applying", version=version)
        async with conn.transaction():
            await conn.execute(sql)
            await conn.execute(
                "INSERT INTO schema_migrations (version, checksum) VALUES ($1, $2)",
                version,
                checksum,
            )
        done.append(version)
    return done


def create_migration_runner(
    database_url: str,
    *,
    max_retries: int = 5,
    retry_delay: float = 2.0,
) -> Callable[[Any], Awaitable[None]]:
    """Create an aiohttp startup hook that waits for the database and migrates it."""

    async def apply_migrations_on_startup(_app: Any) -> None:
        conn = None
        for attempt in range(1, max_retries + 1):
            try:
                conn = await asyncpg.connect(database_url)
                break
            except (OSError, asyncpg.PostgresError) as exc:
                logger.warning(
                    "migration_connect_failed",
                    attempt=attempt,
                    max_retries=max_retries,
                    error=str(exc),
                )
                if attempt == max_retries:
                    raise
                await asyncio.sleep(retry_delay)
        if conn is None:
            raise RuntimeError("Could not connect to the database for migrations")
        try:
            applied = await apply_migrations(conn)
        finally:
            await conn.close()
        logger.info("migrations_done", applied=applied)

    return apply_migrations_on_startup
