"""Background delivery scheduler (claims due attempts and hands them to the worker)."""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Any, Callable

import structlog

from webhook_service.core.exceptions import PersistenceError
from webhook_service.domain.models import DeliveryAttempt, utc_now
from webhook_service.repositories.protocols import DeliveryQueueStore
from webhook_service.services.delivery import DeliveryWorker

logger = structlog.get_logger(__name__)


class DeliveryScheduler:
    """Runs processing passes on an interval or as soon as it is kicked.

    Passes inside one process are serialized. Across processes the queue's
    atomic claim keeps two passes from holding the same attempt, and a claim
    is never larger than what can be sent at once.
    """

    def __init__(
        self,
        queue: DeliveryQueueStore,
        worker: DeliveryWorker,
        *,
        interval_seconds: float = 60.0,
        batch_size: int = 100,
        max_concurrency: int = 10,
        lease_seconds: float = 300,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._queue = queue
        self._worker = worker
        self._interval = interval_seconds
        self._batch_size = batch_size
        self._max_concurrency = max_concurrency
        self._lease = timedelta(seconds=lease_seconds)
        self._clock = clock
        self._wake = asyncio.Event()
        self._lock = asyncio.Lock()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def kick(self) -> None:
        """Request a pass without waiting for it."""
        self._wake.set()

    async def run_pass(self, now: datetime | None = None) -> int:
        """Process attempts due at ``now``, at most ``batch_size``. Returns how many were claimed.

        Attempts are claimed in rounds of ``max_concurrency`` and each round is
        sent before the next claim, so a lease only has to outlive one request.
        """
        async with self._lock:
            total = 0
            while total < self._batch_size:
                limit = min(self._max_concurrency, self._batch_size - total)
                claimed_now = now or self._clock()
                try:
                    claimed = await self._queue.claim_due(
                        claimed_now, claimed_now - self._lease, limit
                    )
                except PersistenceError:
                    logger.exception("delivery_claim_failed")
                    break
                if not claimed:
                    break
                total += len(claimed)
                await self._run_round(claimed)
                if len(claimed) < limit:
                    break
            if total:
                logger.debug("delivery_pass_done", claimed=total)
            if total >= self._batch_size:
                self.kick()
            return total

    async def _run_round(self, claimed: list[DeliveryAttempt]) -> None:
        results = await asyncio.gather(
            *(self._worker.process(attempt) for attempt in claimed), return_exceptions=True
        )
        for attempt, result in zip(claimed, results):
            # Left leased; the attempt becomes claimable again once the lease expires.
            if isinstance(result, Exception):
                logger.error(
                    "delivery_crashed",
                    attempt_id=str(attempt.id),
                    error=str(result),
                    exc_info=result,
                )

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_pass()
            except Exception:
                logger.exception("delivery_pass_failed")
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
            self._wake.clear()

    async def start(self, _app: Any = None) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info("delivery_scheduler_started", interval_seconds=self._interval)

    async def stop(self, _app: Any = None) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("delivery_scheduler_stopped")
