"""Persistent storage for login attempt records.

The store is the single source of truth for lockout state and the only shared
mutable resource. Every write that depends on the current row is expressed as
one SQL statement (atomic increment, conditional update, conditional delete),
so concurrent requests never lose an update and no in-process lock is held
across calls.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime
from threading import Lock

from sqlalchemy import and_, case, delete, null, or_, select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from lockguard.core.errors import ConcurrentUpdateError, StoreUnavailableError
from lockguard.core.time import coerce_utc
from lockguard.models.login_attempt import LoginAttempt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttemptMetadata:
    """Diagnostic metadata captured from the most recent failed attempt."""

    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True)
class LoginAttemptRecord:
    """Failed-attempt state for one identity, with normalized timestamps."""

    identity: str
    failed_attempts: int
    last_attempt_at: datetime
    ip_address: str | None = None
    user_agent: str | None = None
    lockout_until: datetime | None = None


class AttemptRecordStore(ABC):
    """Storage contract used by the lockout engine and the cleanup sweeper."""

    @abstractmethod
    def find_by_identity(self, identity: str) -> LoginAttemptRecord | None:
        """Return the record for an identity, or None."""

    @abstractmethod
    def create_record(self, record: LoginAttemptRecord) -> LoginAttemptRecord:
        """Insert a new record. Raises ConcurrentUpdateError if the identity already has one."""

    @abstractmethod
    def atomic_increment_or_create(
        self,
        identity: str,
        metadata: AttemptMetadata,
        *,
        now: datetime,
        reset_before: datetime,
    ) -> LoginAttemptRecord:
        """Record one failure atomically and return the resulting record.

        The counter restarts at 1 when the stored lockout has already elapsed
        or when an unlocked record's last failure is older than
        ``reset_before``.
        """

    @abstractmethod
    def update_lockout(self, identity: str, lockout_until: datetime, *, threshold: int) -> bool:
        """Set ``lockout_until`` if unset and the count reached ``threshold``.

        Returns True only for the writer that actually set it.
        """

    @abstractmethod
    def delete(self, identity: str) -> bool:
        """Delete the record. Idempotent; returns whether a row was removed."""

    @abstractmethod
    def delete_expired_lockout(self, identity: str, now: datetime) -> bool:
        """Delete the record only if its lockout is set and has elapsed."""

    @abstractmethod
    def delete_stale_attempts(self, identity: str, cutoff: datetime) -> bool:
        """Delete the record only if unlocked and last failed before ``cutoff``."""

    @abstractmethod
    def list_page(self, after: str | None, limit: int) -> list[LoginAttemptRecord]:
        """Return up to ``limit`` records ordered by identity, starting after ``after``."""


def _to_record(row: LoginAttempt) -> LoginAttemptRecord:
    """Convert an ORM row into a record, normalizing loosely-typed timestamps."""
    return LoginAttemptRecord(
        identity=row.identity,
        failed_attempts=row.failed_attempts or 0,
        last_attempt_at=coerce_utc(row.last_attempt_at),
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        lockout_until=coerce_utc(row.lockout_until),
    )


class SqlAlchemyAttemptStore(AttemptRecordStore):
    """Database-backed store. Each call runs in its own short transaction."""

    def __init__(self, session_factory: Callable[[], Session], max_retries: int = 3) -> None:
        self._session_factory = session_factory
        self._max_retries = max(1, max_retries)

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        try:
            with self._session_factory() as session, session.begin():
                yield session
        except (OperationalError, InterfaceError, PoolTimeoutError) as e:
            logger.warning("Attempt store unavailable: %s", type(e).__name__)
            raise StoreUnavailableError("Attempt store unavailable") from e

    def find_by_identity(self, identity: str) -> LoginAttemptRecord | None:
        with self._transaction() as session:
            row = session.scalars(
                select(LoginAttempt).where(LoginAttempt.identity == identity)
            ).first()
            return _to_record(row) if row else None

    def create_record(self, record: LoginAttemptRecord) -> LoginAttemptRecord:
        try:
            with self._transaction() as session:
                row = LoginAttempt(
                    identity=record.identity,
                    ip_address=record.ip_address,
                    user_agent=record.user_agent,
                    failed_attempts=record.failed_attempts,
                    last_attempt_at=coerce_utc(record.last_attempt_at),
                    lockout_until=coerce_utc(record.lockout_until),
                )
                session.add(row)
                session.flush()
                return _to_record(row)
        except IntegrityError as e:
            raise ConcurrentUpdateError(f"Record already exists for {record.identity}") from e

    def atomic_increment_or_create(
        self,
        identity: str,
        metadata: AttemptMetadata,
        *,
        now: datetime,
        reset_before: datetime,
    ) -> LoginAttemptRecord:
        # Evaluated against the row's pre-update values
        restart = or_(
            and_(LoginAttempt.lockout_until.is_not(None), LoginAttempt.lockout_until <= now),
            and_(LoginAttempt.lockout_until.is_(None), LoginAttempt.last_attempt_at < reset_before),
        )

        for attempt in range(1, self._max_retries + 1):
            try:
                with self._transaction() as session:
                    result = session.execute(
                        update(LoginAttempt)
                        .where(LoginAttempt.identity == identity)
                        .values(
                            failed_attempts=case(
                                (restart, 1), else_=LoginAttempt.failed_attempts + 1
                            ),
                            lockout_until=case((restart, null()), else_=LoginAttempt.lockout_until),
                            last_attempt_at=now,
                            ip_address=metadata.ip_address,
                            user_agent=metadata.user_agent,
                        )
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount == 0:
                        session.add(
                            LoginAttempt(
                                identity=identity,
                                ip_address=metadata.ip_address,
                                user_agent=metadata.user_agent,
                                failed_attempts=1,
                                last_attempt_at=now,
                            )
                        )
                        session.flush()

                    row = session.scalars(
                        select(LoginAttempt).where(LoginAttempt.identity == identity)
                    ).one()
                    return _to_record(row)
            except IntegrityError:
                # Another request created the row between our UPDATE and INSERT
                logger.info(
                    "Concurrent first failure for %s, retrying increment (%d/%d)",
                    identity,
                    attempt,
                    self._max_retries,
                )

        raise ConcurrentUpdateError(
            f"Could not record failed attempt after {self._max_retries} conflicting writes"
        )

    def update_lockout(self, identity: str, lockout_until: datetime, *, threshold: int) -> bool:
        with self._transaction() as session:
            result = session.execute(
                update(LoginAttempt)
                .where(
                    LoginAttempt.identity == identity,
                    LoginAttempt.lockout_until.is_(None),
                    LoginAttempt.failed_attempts >= threshold,
                )
                .values(lockout_until=lockout_until)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    def delete(self, identity: str) -> bool:
        return self._delete_where(LoginAttempt.identity == identity)

    def delete_expired_lockout(self, identity: str, now: datetime) -> bool:
        return self._delete_where(
            LoginAttempt.identity == identity,
            LoginAttempt.lockout_until.is_not(None),
            LoginAttempt.lockout_until <= now,
        )

    def delete_stale_attempts(self, identity: str, cutoff: datetime) -> bool:
        return self._delete_where(
            LoginAttempt.identity == identity,
            LoginAttempt.lockout_until.is_(None),
            LoginAttempt.last_attempt_at < cutoff,
        )

    def _delete_where(self, *criteria) -> bool:
        with self._transaction() as session:
            result = session.execute(
                delete(LoginAttempt)
                .where(*criteria)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    def list_page(self, after: str | None, limit: int) -> list[LoginAttemptRecord]:
        with self._transaction() as session:
            query = select(LoginAttempt).order_by(LoginAttempt.identity).limit(limit)
            if after is not None:
                query = query.where(LoginAttempt.identity > after)
            return [_to_record(row) for row in session.scalars(query)]


class InMemoryAttemptStore(AttemptRecordStore):
    """Process-local store backed by a dict protected by threading.Lock.

    NOTE: in a multi-worker deployment (e.g. gunicorn with multiple workers)
    each process holds its own independent state, so an attacker can spread
    attempts across workers. Use the database store for shared enforcement.
    """

    def __init__(self) -> None:
        self._records: dict[str, LoginAttemptRecord] = {}
        self._lock = Lock()

    def find_by_identity(self, identity: str) -> LoginAttemptRecord | None:
        with self._lock:
            return self._records.get(identity)

    def create_record(self, record: LoginAttemptRecord) -> LoginAttemptRecord:
        record = replace(
            record,
            last_attempt_at=coerce_utc(record.last_attempt_at),
            lockout_until=coerce_utc(record.lockout_until),
        )
        with self._lock:
            if record.identity in self._records:
                raise ConcurrentUpdateError(f"Record already exists for {record.identity}")
            self._records[record.identity] = record
            return record

    def atomic_increment_or_create(
        self,
        identity: str,
        metadata: AttemptMetadata,
        *,
        now: datetime,
        reset_before: datetime,
    ) -> LoginAttemptRecord:
        with self._lock:
            existing = self._records.get(identity)
            if existing is None:
                count = 1
                lockout_until = None
            else:
                lockout_until = existing.lockout_until
                if lockout_until is not None and lockout_until <= now:
                    # Reset if lockout has expired
                    count = 1
                    lockout_until = None
                elif lockout_until is None and existing.last_attempt_at < reset_before:
                    count = 1
                else:
                    count = existing.failed_attempts + 1

            record = LoginAttemptRecord(
                identity=identity,
                failed_attempts=count,
                last_attempt_at=now,
                ip_address=metadata.ip_address,
                user_agent=metadata.user_agent,
                lockout_until=lockout_until,
            )
            self._records[identity] = record
            return record

    def update_lockout(self, identity: str, lockout_until: datetime, *, threshold: int) -> bool:
        with self._lock:
            existing = self._records.get(identity)
            if (
                existing is None
                or existing.lockout_until is not None
                or existing.failed_attempts < threshold
            ):
                return False
            self._records[identity] = replace(existing, lockout_until=lockout_until)
            return True

    def delete(self, identity: str) -> bool:
        with self._lock:
            return self._records.pop(identity, None) is not None

    def delete_expired_lockout(self, identity: str, now: datetime) -> bool:
        return self._delete_if(
            identity, lambda r: r.lockout_until is not None and r.lockout_until <= now
        )

    def delete_stale_attempts(self, identity: str, cutoff: datetime) -> bool:
        return self._delete_if(
            identity, lambda r: r.lockout_until is None and r.last_attempt_at < cutoff
        )

    def _delete_if(self, identity: str, predicate: Callable[[LoginAttemptRecord], bool]) -> bool:
        with self._lock:
            existing = self._records.get(identity)
            if existing is None or not predicate(existing):
                return False
            del self._records[identity]
            return True

    def list_page(self, after: str | None, limit: int) -> list[LoginAttemptRecord]:
        with self._lock:
            keys = sorted(k for k in self._records if after is None or k > after)
            return [self._records[k] for k in keys[:limit]]
