"""Retry schedule for failed deliveries."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from webhook_service.domain.models import DeliveryAttempt

# 1m, 5m, 15m, 1h, 6h
DEFAULT_BACKOFF_SECONDS: tuple[int, ...] = (60, 300, 900, 3600, 21600)
MAX_ATTEMPTS = 5


@dataclass(frozen=True)
class RetryPolicy:
    backoff_seconds: tuple[int, ...] = DEFAULT_BACKOFF_SECONDS
    max_attempts: int = MAX_ATTEMPTS

    def delay_for(self, attempt_number: int) -> timedelta:
        """Delay after the failure of ``attempt_number`` (1-based, clamped to the table)."""
        index = min(max(attempt_number, 1) - 1, len(self.backoff_seconds) - 1)
        return timedelta(seconds=self.backoff_seconds[index])

    @staticmethod
    def should_retry(attempt: DeliveryAttempt) -> bool:
        return attempt.attempt_number < attempt.max_attempts

    def schedule_retry(self, attempt: DeliveryAttempt) -> DeliveryAttempt:
        """Advance a failed attempt to its next try, in place."""
        if attempt.attempted_at is None:
            raise ValueError("cannot schedule a retry for an attempt that never ran")
        attempt.next_retry_at = attempt.attempted_at + self.delay_for(attempt.attempt_number)
        attempt.attempt_number += 1
        return attempt
