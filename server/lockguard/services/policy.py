from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from lockguard.core.config import Settings


@dataclass(frozen=True)
class LockoutPolicy:
    """Lockout thresholds.

    Defaults:
    - 5 consecutive failures: 5 minute lockout
    - failures older than 15 minutes are forgiven
    """

    max_failed_attempts: int = 5
    lockout_duration: timedelta = timedelta(minutes=5)
    attempt_reset_timeout: timedelta = timedelta(minutes=15)

    @classmethod
    def from_settings(cls, settings: Settings) -> LockoutPolicy:
        return cls(
            max_failed_attempts=settings.lockout_max_failed_attempts,
            lockout_duration=timedelta(seconds=settings.lockout_duration_seconds),
            attempt_reset_timeout=timedelta(seconds=settings.lockout_attempt_reset_seconds),
        )
