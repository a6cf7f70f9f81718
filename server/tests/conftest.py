"""Pytest configuration and fixtures for lockguard tests."""

import os

# Set before any lockguard import so the cached settings pick them up
os.environ.setdefault("LOCKOUT_API_KEY", "test-lockout-key")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from collections.abc import Generator  # noqa: E402
from datetime import datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from lockguard.api.deps import get_lockout_engine  # noqa: E402
from lockguard.core.errors import VerifierSyncError  # noqa: E402
from lockguard.main import app  # noqa: E402
from lockguard.models.base import Base  # noqa: E402
from lockguard.services.attempt_store import SqlAlchemyAttemptStore  # noqa: E402
from lockguard.services.credential_sync import CredentialStateSync  # noqa: E402
from lockguard.services.credential_verifier import CredentialVerifier  # noqa: E402
from lockguard.services.lockout import LockoutPolicyEngine  # noqa: E402
from lockguard.services.policy import LockoutPolicy  # noqa: E402

# Use SQLite in-memory for tests (fast, isolated)
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

API_KEY = os.environ["LOCKOUT_API_KEY"]


class FakeClock:
    """Controllable clock returning naive UTC datetimes."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 6, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeVerifier(CredentialVerifier):
    """Records invalidations and resets; can be told to fail."""

    def __init__(self, failures: int = 0) -> None:
        self.invalidate_calls: list[str] = []
        self.reset_calls = 0
        self.failures_remaining = failures

    def invalidate_lockout_cache(self, identity: str) -> bool:
        self.invalidate_calls.append(identity)
        if self.failures_remaining > 0:
            self.failures_remaining -= 1
            raise VerifierSyncError("Verifier timeout")
        return True

    def reset_connection(self) -> None:
        self.reset_calls += 1


@pytest.fixture(scope="function")
def session_factory() -> Generator[sessionmaker, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    try:
        yield TestingSessionLocal
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(session_factory: sessionmaker) -> SqlAlchemyAttemptStore:
    return SqlAlchemyAttemptStore(session_factory)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def verifier() -> FakeVerifier:
    return FakeVerifier()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def sync(verifier: FakeVerifier, sleeps: list[float]) -> CredentialStateSync:
    return CredentialStateSync(
        verifier, max_attempts=3, retry_backoff=0.2, reset_delay=0.5, sleep=sleeps.append
    )


@pytest.fixture
def policy() -> LockoutPolicy:
    return LockoutPolicy()


@pytest.fixture
def lockout_engine(
    store: SqlAlchemyAttemptStore,
    sync: CredentialStateSync,
    policy: LockoutPolicy,
    clock: FakeClock,
) -> LockoutPolicyEngine:
    return LockoutPolicyEngine(store, sync, policy, clock=clock)


@pytest.fixture
def client(lockout_engine: LockoutPolicyEngine) -> Generator[TestClient, None, None]:
    """Create a test client with the engine dependency overridden."""
    app.dependency_overrides[get_lockout_engine] = lambda: lockout_engine
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def api_headers() -> dict[str, str]:
    return {"X-Lockout-Api-Key": API_KEY}
