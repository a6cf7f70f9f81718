"""Login attempt tracking and account lockout policy.

State per identity:

    CLEAN --(failure 1..MAX-1)--> ACCUMULATING --(failure MAX)--> LOCKED
    ACCUMULATING --(success | inactivity reset)--> CLEAN
    LOCKED --(success | lockout elapsed | admin clear)--> CLEAN

CLEAN means "no record". Expiry and inactivity resets are applied when a
status check observes them, so ``check_status`` may write.

NOTE: ``check_status`` fails open. If the attempt store is unreachable every
identity is reported as unlocked with full attempts. This keeps logins working
during a storage outage at the cost of not enforcing lockouts during it.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from lockguard.core.config import Settings
from lockguard.core.errors import StoreUnavailableError
from lockguard.core.time import utcnow
from lockguard.core.validation import (
    MAX_IP_LENGTH,
    MAX_USER_AGENT_LENGTH,
    clip_metadata,
    normalize_identity,
)
from lockguard.services.attempt_store import (
    AttemptMetadata,
    AttemptRecordStore,
    InMemoryAttemptStore,
    LoginAttemptRecord,
    SqlAlchemyAttemptStore,
)
from lockguard.services.cleanup import CleanupResult, CleanupSweeper
from lockguard.services.credential_sync import CredentialStateSync, SyncOutcome
from lockguard.services.credential_verifier import build_credential_verifier
from lockguard.services.policy import LockoutPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LockoutStatus:
    is_locked: bool
    remaining_attempts: int
    lockout_until: datetime | None = None
    time_remaining: timedelta | None = None

    @property
    def retry_after_seconds(self) -> int:
        if not self.time_remaining:
            return 0
        return max(0, math.ceil(self.time_remaining.total_seconds()))

    @property
    def minutes_remaining(self) -> int:
        return math.ceil(self.retry_after_seconds / 60)


@dataclass(frozen=True)
class LockoutInfo:
    """Human-readable lockout summary for admin tooling."""

    is_locked: bool
    time_remaining: str | None = None
    attempts_remaining: int | None = None


def format_minutes(minutes: int) -> str:
    return f"{minutes} minute{'' if minutes == 1 else 's'}"


def lockout_message(status: LockoutStatus) -> str:
    """The only text a locked-out caller should ever see."""
    return f"Too many failed attempts. Try again in {format_minutes(status.minutes_remaining)}."


def lockout_info(status: LockoutStatus) -> LockoutInfo:
    if status.is_locked and status.time_remaining:
        return LockoutInfo(is_locked=True, time_remaining=format_minutes(status.minutes_remaining))
    return LockoutInfo(is_locked=False, attempts_remaining=status.remaining_attempts)


class LockoutPolicyEngine:
    """Track failed login attempts per identity and manage lockouts."""

    def __init__(
        self,
        store: AttemptRecordStore,
        sync: CredentialStateSync,
        policy: LockoutPolicy | None = None,
        clock: Callable[[], datetime] = utcnow,
        sweep_batch_size: int = 100,
    ) -> None:
        self._store = store
        self._sync = sync
        self._policy = policy or LockoutPolicy()
        self._clock = clock
        self._sweep_batch_size = sweep_batch_size

    @property
    def policy(self) -> LockoutPolicy:
        return self._policy

    def _clean_status(self) -> LockoutStatus:
        return LockoutStatus(is_locked=False, remaining_attempts=self._policy.max_failed_attempts)

    def check_status(self, identity: str, ip_address: str | None = None) -> LockoutStatus:
        """Return the lockout status, clearing elapsed lockouts and stale counters."""
        key = normalize_identity(identity)
        try:
            return self._evaluate(key, ip_address)
        except StoreUnavailableError:
            logger.warning("Attempt store unavailable, failing open for %s", key)
            return self._clean_status()

    def _status_for(self, record: LoginAttemptRecord, now: datetime) -> LockoutStatus:
        if record.lockout_until is not None and record.lockout_until > now:
            return LockoutStatus(
                is_locked=True,
                remaining_attempts=0,
                lockout_until=record.lockout_until,
                time_remaining=record.lockout_until - now,
            )
        return LockoutStatus(
            is_locked=False,
            remaining_attempts=max(0, self._policy.max_failed_attempts - record.failed_attempts),
        )

    def _evaluate(self, key: str, ip_address: str | None) -> LockoutStatus:
        record = self._store.find_by_identity(key)
        if record is None:
            return self._clean_status()

        now = self._clock()

        if record.lockout_until is not None:
            if record.lockout_until > now:
                logger.info(
                    "Account still locked for %s from %s - %d minutes remaining",
                    key,
                    ip_address,
                    math.ceil((record.lockout_until - now).total_seconds() / 60),
                )
                return self._status_for(record, now)

            logger.info("Lockout expired for %s from %s, clearing", key, ip_address)
            deleted = self._store.delete_expired_lockout(key, now)
            return self._return_to_clean(key, record, deleted, now)

        if now - record.last_attempt_at > self._policy.attempt_reset_timeout:
            logger.info(
                "Failed attempts timeout reached for %s - resetting counter (%d failures)",
                key,
                record.failed_attempts,
            )
            deleted = self._store.delete_stale_attempts(
                key, now - self._policy.attempt_reset_timeout
            )
            return self._return_to_clean(key, record, deleted, now)

        return self._status_for(record, now)

    def _return_to_clean(
        self, key: str, observed: LoginAttemptRecord, deleted: bool, now: datetime
    ) -> LockoutStatus:
        if not deleted:
            # Already deleted by a concurrent check, or a new failure replaced the record
            current = self._store.find_by_identity(key)
            if current is not None and current != observed:
                return self._status_for(current, now)

        self._sync.sync(key)
        return self._clean_status()

    def record_attempt(
        self,
        identity: str,
        ip_address: str | None,
        user_agent: str | None,
        success: bool,
    ) -> None:
        """Record the outcome of a credential check.

        A success removes the record. A failure increments the counter
        atomically and locks the identity once the threshold is reached.
        Store outages are logged and the attempt is dropped.
        """
        key = normalize_identity(identity)
        metadata = AttemptMetadata(
            ip_address=clip_metadata(ip_address, MAX_IP_LENGTH),
            user_agent=clip_metadata(user_agent, MAX_USER_AGENT_LENGTH),
        )

        try:
            if success:
                if self._store.delete(key):
                    logger.info("Successful login for %s - removed from failed attempts", key)
                return

            now = self._clock()
            record = self._store.atomic_increment_or_create(
                key,
                metadata,
                now=now,
                reset_before=now - self._policy.attempt_reset_timeout,
            )

            threshold = self._policy.max_failed_attempts
            if record.failed_attempts >= threshold and record.lockout_until is None:
                lockout_until = record.last_attempt_at + self._policy.lockout_duration
                if self._store.update_lockout(key, lockout_until, threshold=threshold):
                    logger.warning(
                        "Account locked for %s from %s until %s",
                        key,
                        metadata.ip_address,
                        lockout_until.isoformat(),
                    )

            logger.info(
                "Failed login recorded: %s from %s - failed attempts: %d",
                key,
                metadata.ip_address,
                record.failed_attempts,
            )
        except StoreUnavailableError:
            logger.error("Attempt store unavailable, dropping login attempt for %s", key)

    def clear_lockout(self, identity: str, ip_address: str | None = None) -> SyncOutcome:
        """Admin override: delete the record and refresh the verifier.

        The verifier is refreshed even when no record existed, since its cache
        can be stale without one. Store errors propagate to the caller.
        """
        key = normalize_identity(identity)
        if self._store.delete(key):
            logger.info("Lockout cleared for %s from %s", key, ip_address)
        else:
            logger.info("No lockout record for %s, refreshing verifier anyway", key)
        return self._sync.sync(key)

    def get_lockout_info(self, identity: str, ip_address: str | None = None) -> LockoutInfo:
        return lockout_info(self.check_status(identity, ip_address))

    def get_record(self, identity: str) -> LoginAttemptRecord | None:
        """Raw record lookup for admin inspection (no expiry side effects)."""
        return self._store.find_by_identity(normalize_identity(identity))

    def list_records(self, after: str | None = None, limit: int = 50) -> list[LoginAttemptRecord]:
        return self._store.list_page(after, limit)

    def cleanup_expired_records(self) -> CleanupResult:
        return self.build_sweeper().sweep()

    def build_sweeper(self) -> CleanupSweeper:
        return CleanupSweeper(
            self._store,
            self._sync,
            self._policy,
            clock=self._clock,
            batch_size=self._sweep_batch_size,
        )


def build_lockout_engine(
    settings: Settings,
    session_factory: Callable[[], Session] | None = None,
) -> LockoutPolicyEngine:
    """Wire an engine from settings."""
    if settings.lockout_store == "memory":
        store: AttemptRecordStore = InMemoryAttemptStore()
    else:
        if session_factory is None:
            from lockguard.db.session import SessionLocal

            session_factory = SessionLocal
        store = SqlAlchemyAttemptStore(session_factory, max_retries=settings.store_max_retries)

    sync = CredentialStateSync.from_settings(build_credential_verifier(settings), settings)
    return LockoutPolicyEngine(
        store,
        sync,
        policy=LockoutPolicy.from_settings(settings),
        sweep_batch_size=settings.sweep_batch_size,
    )
