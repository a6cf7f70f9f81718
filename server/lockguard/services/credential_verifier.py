"""Adapters for the external credential verifier.

The verifier performs the actual credential check and keeps its own lockout
cache, which can drift from the engine's view. The engine only needs two
operations from it: invalidate the cached lockout state for one identity, and
drop the cached connection so the next call starts from a fresh handle.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from threading import Lock

import httpx

from lockguard.core.config import Settings
from lockguard.core.errors import VerifierSyncError

logger = logging.getLogger(__name__)

INVALIDATE_PATH = "/lockouts/invalidate"


def sanitize_verifier_error(e: Exception) -> str:
    """Return a safe error message that never leaks tokens or credentials.

    httpx exceptions can contain Authorization headers, Bearer tokens and full
    URLs with query parameters in their string representations. This function
    returns only generic, safe messages.
    """
    if isinstance(e, httpx.TimeoutException):
        return "Verifier timeout"
    if isinstance(e, httpx.ConnectError):
        return "Verifier connection failed"
    if isinstance(e, httpx.HTTPStatusError):
        return f"Verifier error: HTTP {e.response.status_code}"
    if isinstance(e, httpx.HTTPError):
        return "Verifier error"
    if isinstance(e, httpx.InvalidURL):
        return "Verifier URL invalid"
    return "Verifier sync failed"


class CredentialVerifier(ABC):
    """Contract the lockout engine needs from the credential verifier."""

    @abstractmethod
    def invalidate_lockout_cache(self, identity: str) -> bool:
        """Ask the verifier to forget its lockout state for ``identity``.

        Returns True when the verifier acknowledged the invalidation.
        Raises VerifierSyncError when it could not be reached or refused.
        """

    @abstractmethod
    def reset_connection(self) -> None:
        """Drop any cached handle to the verifier."""


class VerifierConnection:
    """Owns the cached HTTP client for the verifier and its reconnect policy.

    The client is created lazily. After ``max_consecutive_failures`` failed
    calls the client is discarded so the next call reconnects.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 3.0,
        max_consecutive_failures: int = 3,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._max_consecutive_failures = max(1, max_consecutive_failures)
        self._transport = transport
        self._client: httpx.Client | None = None
        self._lock = Lock()
        self.consecutive_failures = 0
        self.reset_count = 0

    @property
    def healthy(self) -> bool:
        return self.consecutive_failures == 0

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    @property
    def client(self) -> httpx.Client:
        with self._lock:
            if self._client is None:
                headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
                self._client = httpx.Client(
                    base_url=self._base_url,
                    timeout=self._timeout,
                    headers=headers,
                    transport=self._transport,
                )
            return self._client

    def mark_success(self) -> None:
        self.consecutive_failures = 0

    def mark_failure(self) -> None:
        self.consecutive_failures += 1
        if self.consecutive_failures >= self._max_consecutive_failures:
            logger.warning(
                "Verifier failed %d times in a row, reconnecting", self.consecutive_failures
            )
            self.reset()

    def reset(self) -> None:
        """Close the cached client; the next access opens a new one."""
        with self._lock:
            client, self._client = self._client, None
            self.reset_count += 1
        if client is not None:
            client.close()

    def close(self) -> None:
        with self._lock:
            client, self._client = self._client, None
        if client is not None:
            client.close()


class HttpCredentialVerifier(CredentialVerifier):
    """Talks to a verifier that exposes an HTTP invalidation endpoint."""

    def __init__(self, connection: VerifierConnection) -> None:
        self._connection = connection

    def invalidate_lockout_cache(self, identity: str) -> bool:
        try:
            response = self._connection.client.post(INVALIDATE_PATH, json={"identity": identity})
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            self._connection.mark_failure()
            raise VerifierSyncError(sanitize_verifier_error(e)) from e

        self._connection.mark_success()
        return True

    def reset_connection(self) -> None:
        self._connection.reset()


class NullCredentialVerifier(CredentialVerifier):
    """Used when no verifier is configured; nothing to invalidate."""

    def invalidate_lockout_cache(self, identity: str) -> bool:
        logger.debug("No verifier configured, skipping invalidation for %s", identity)
        return False

    def reset_connection(self) -> None:
        pass


def build_credential_verifier(settings: Settings) -> CredentialVerifier:
    if not settings.verifier_base_url:
        return NullCredentialVerifier()
    connection = VerifierConnection(
        settings.verifier_base_url,
        api_key=settings.verifier_api_key,
        timeout=settings.verifier_timeout_seconds,
    )
    return HttpCredentialVerifier(connection)
