"""Batch cleanup of expired lockouts and timed-out attempt counters.

Runs outside request traffic (admin trigger, CLI or scheduled loop). Records
are read in keyset-paginated batches and every delete is conditional, so a
record that live traffic deleted or re-locked after the batch was read is
simply skipped.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from threading import Event

from lockguard.core.errors import StoreUnavailableError
from lockguard.core.time import utcnow
from lockguard.services.attempt_store import AttemptRecordStore, LoginAttemptRecord
from lockguard.services.credential_sync import CredentialStateSync
from lockguard.services.policy import LockoutPolicy

logger = logging.getLogger(__name__)


@dataclass
class CleanupResult:
    lockouts_cleared: int = 0
    attempts_reset: int = 0
    batches: int = 0
    errors: int = 0
    sync_failures: int = 0
    stopped_early: bool = False
    # Cursor to pass back as start_after when stopped_early (None = from the start)
    resume_after: str | None = None

    @property
    def complete(self) -> bool:
        return not self.stopped_early


class CleanupSweeper:
    def __init__(
        self,
        store: AttemptRecordStore,
        sync: CredentialStateSync,
        policy: LockoutPolicy,
        clock: Callable[[], datetime] = utcnow,
        batch_size: int = 100,
    ) -> None:
        self._store = store
        self._sync = sync
        self._policy = policy
        self._clock = clock
        self._batch_size = max(1, batch_size)

    def sweep(
        self,
        stop_event: Event | None = None,
        start_after: str | None = None,
        max_batches: int | None = None,
    ) -> CleanupResult:
        """Sweep the whole store, one batch at a time.

        Stops at the next batch boundary when ``stop_event`` is set or
        ``max_batches`` is reached; pass ``result.resume_after`` back as
        ``start_after`` to continue. Raises StoreUnavailableError if a batch
        cannot be read.
        """
        result = CleanupResult()
        cursor = start_after

        while True:
            if (stop_event is not None and stop_event.is_set()) or (
                max_batches is not None and result.batches >= max_batches
            ):
                result.stopped_early = True
                result.resume_after = cursor
                logger.info("Cleanup stopped early, resume after %r", cursor)
                break

            page = self._store.list_page(cursor, self._batch_size)
            if page:
                self._sweep_batch(page, result)
                result.batches += 1
                cursor = page[-1].identity
            if len(page) < self._batch_size:
                result.resume_after = None
                break

        if result.lockouts_cleared > 0 or result.attempts_reset > 0:
            logger.info(
                "Cleanup complete: %d lockouts cleared, %d attempts reset",
                result.lockouts_cleared,
                result.attempts_reset,
            )
        return result

    def _sweep_batch(self, page: list[LoginAttemptRecord], result: CleanupResult) -> None:
        now = self._clock()
        cutoff = now - self._policy.attempt_reset_timeout

        for record in page:
            identity = record.identity
            try:
                if record.lockout_until is not None:
                    if record.lockout_until <= now and self._store.delete_expired_lockout(
                        identity, now
                    ):
                        result.lockouts_cleared += 1
                        logger.info("Cleared expired lockout for %s", identity)
                        if not self._sync.sync(identity).ok:
                            result.sync_failures += 1
                elif record.last_attempt_at < cutoff and self._store.delete_stale_attempts(
                    identity, cutoff
                ):
                    result.attempts_reset += 1
                    logger.info("Reset timed-out attempts for %s", identity)
            except StoreUnavailableError:
                result.errors += 1
                logger.warning("Failed to clean up record for %s", identity)

    def run_forever(self, interval: float, stop_event: Event) -> None:
        """Sweep every ``interval`` seconds until ``stop_event`` is set."""
        logger.info("Cleanup sweeper started (interval %ss)", interval)
        cursor: str | None = None
        while not stop_event.is_set():
            try:
                result = self.sweep(stop_event=stop_event, start_after=cursor)
                cursor = result.resume_after
            except StoreUnavailableError:
                logger.warning("Attempt store unavailable, skipping this sweep")
            stop_event.wait(interval)
        logger.info("Cleanup sweeper stopped")
