"""Best-effort invalidation of the credential verifier's lockout cache.

Run whenever the engine returns an identity to a clean state through lockout
expiry, inactivity reset or an admin clear. The verifier's real invalidation
contract is unknown, so the procedure is:

1. ``invalidate_lockout_cache(identity)``, retried with linear backoff
2. ``reset_connection()``
3. a short bounded wait
4. ``reset_connection()`` again

It never raises and is safe to run more than once for the same identity.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from lockguard.core.config import Settings
from lockguard.core.errors import VerifierSyncError
from lockguard.services.credential_verifier import CredentialVerifier, sanitize_verifier_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncOutcome:
    """Result of one invalidation run for an identity."""

    identity: str
    invalidated: bool
    attempts: int
    resets: int
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class CredentialStateSync:
    def __init__(
        self,
        verifier: CredentialVerifier,
        max_attempts: int = 3,
        retry_backoff: float = 0.2,
        reset_delay: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._verifier = verifier
        self._max_attempts = max(1, max_attempts)
        self._retry_backoff = max(0.0, retry_backoff)
        self._reset_delay = max(0.0, reset_delay)
        self._sleep = sleep

    @classmethod
    def from_settings(cls, verifier: CredentialVerifier, settings: Settings) -> CredentialStateSync:
        return cls(
            verifier,
            max_attempts=settings.sync_max_attempts,
            retry_backoff=settings.sync_retry_backoff_seconds,
            reset_delay=settings.sync_reset_delay_seconds,
        )

    def sync(self, identity: str) -> SyncOutcome:
        invalidated = False
        attempts = 0
        error: str | None = None

        while attempts < self._max_attempts:
            attempts += 1
            try:
                invalidated = self._verifier.invalidate_lockout_cache(identity)
                error = None
                break
            except Exception as e:
                # Adapters other than the HTTP one may raise anything
                error = str(e) if isinstance(e, VerifierSyncError) else sanitize_verifier_error(e)
                logger.warning(
                    "Verifier invalidation failed for %s (%d/%d): %s",
                    identity,
                    attempts,
                    self._max_attempts,
                    error,
                )
                if attempts < self._max_attempts:
                    self._sleep(self._retry_backoff * attempts)

        # A single reset has been observed to leave stale auth state behind
        resets = 0
        for i in range(2):
            if i:
                self._sleep(self._reset_delay)
            try:
                self._verifier.reset_connection()
                resets += 1
            except Exception as e:
                logger.warning("Verifier connection reset failed: %s", type(e).__name__)
                error = error or "Verifier connection reset failed"

        if error:
            logger.error("Verifier cache for %s may be stale: %s", identity, error)
        else:
            logger.info("Verifier state refreshed for %s", identity)

        return SyncOutcome(
            identity=identity,
            invalidated=invalidated,
            attempts=attempts,
            resets=resets,
            error=error,
        )
