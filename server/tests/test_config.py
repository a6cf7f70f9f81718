"""Tests for settings validation and engine wiring."""

from datetime import timedelta
from unittest.mock import patch

import pytest

from lockguard.core.config import Settings, validate_settings
from lockguard.db.session import build_engine
from lockguard.services.attempt_store import InMemoryAttemptStore, SqlAlchemyAttemptStore
from lockguard.services.lockout import build_lockout_engine
from lockguard.services.policy import LockoutPolicy


class TestValidateSettings:
    def test_defaults_are_valid(self):
        validate_settings(Settings(lockout_api_key="k", verifier_base_url="https://v"))

    @pytest.mark.parametrize(
        "field,value",
        [
            ("lockout_max_failed_attempts", 0),
            ("lockout_duration_seconds", 0),
            ("lockout_attempt_reset_seconds", -1),
            ("sweep_batch_size", 0),
        ],
    )
    def test_invalid_policy_exits(self, field, value):
        with pytest.raises(SystemExit):
            validate_settings(Settings(lockout_api_key="k", **{field: value}))

    def test_production_requires_api_key(self):
        with pytest.raises(SystemExit):
            validate_settings(Settings(env="production", lockout_api_key=""))

    def test_production_rejects_memory_store(self):
        with pytest.raises(SystemExit):
            validate_settings(
                Settings(env="production", lockout_api_key="k", lockout_store="memory")
            )

    def test_missing_verifier_only_warns(self, caplog):
        validate_settings(Settings(lockout_api_key="k", verifier_base_url=""))
        assert "VERIFIER_BASE_URL not set" in caplog.text


class TestDatabaseUrl:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("postgres://u:p@h/db", "postgresql+psycopg://u:p@h/db"),
            ("postgresql://u:p@h/db", "postgresql+psycopg://u:p@h/db"),
            ("postgresql+psycopg://u:p@h/db", "postgresql+psycopg://u:p@h/db"),
            ("sqlite:///./x.db", "sqlite:///./x.db"),
        ],
    )
    def test_sync_url(self, url, expected):
        assert Settings(database_url=url).database_url_sync == expected


class TestWiring:
    def test_policy_from_settings(self):
        policy = LockoutPolicy.from_settings(
            Settings(
                lockout_max_failed_attempts=3,
                lockout_duration_seconds=60,
                lockout_attempt_reset_seconds=120,
            )
        )

        assert policy == LockoutPolicy(
            max_failed_attempts=3,
            lockout_duration=timedelta(minutes=1),
            attempt_reset_timeout=timedelta(minutes=2),
        )

    def test_memory_store(self):
        engine = build_lockout_engine(Settings(lockout_store="memory"))
        assert isinstance(engine._store, InMemoryAttemptStore)

    def test_database_store(self, session_factory):
        engine = build_lockout_engine(
            Settings(lockout_store="database", lockout_max_failed_attempts=2),
            session_factory=session_factory,
        )

        assert isinstance(engine._store, SqlAlchemyAttemptStore)
        assert engine.policy.max_failed_attempts == 2
        engine.record_attempt("a@x.com", None, None, success=False)
        engine.record_attempt("a@x.com", None, None, success=False)
        assert engine.check_status("a@x.com").is_locked


class TestBuildEngine:
    def test_postgres_bounds_statements_and_locks(self):
        settings = Settings(database_url="postgresql://u:p@h/db", store_timeout_seconds=2.5)

        with patch("lockguard.db.session.create_engine") as mock_create:
            build_engine(settings)

        url = mock_create.call_args.args[0]
        kwargs = mock_create.call_args.kwargs
        assert url == "postgresql+psycopg://u:p@h/db"
        assert kwargs["connect_args"] == {
            "connect_timeout": 2,
            "options": "-c statement_timeout=2500 -c lock_timeout=2500",
        }
        assert kwargs["pool_timeout"] == 2.5
        assert kwargs["pool_pre_ping"] is True

    def test_sqlite_uses_busy_timeout(self):
        settings = Settings(database_url="sqlite:///./x.db", store_timeout_seconds=3.0)

        with patch("lockguard.db.session.create_engine") as mock_create:
            build_engine(settings)

        assert mock_create.call_args.kwargs == {
            "connect_args": {"check_same_thread": False, "timeout": 3.0}
        }
