"""Exceptions raised by the lockout engine and its adapters."""


class LockoutError(Exception):
    """Base class for lockout engine errors."""


class InvalidIdentityError(LockoutError, ValueError):
    """Raised when an identity is empty or contains unsafe characters."""


class StoreUnavailableError(LockoutError):
    """Raised when the attempt store cannot be reached or timed out."""


class ConcurrentUpdateError(LockoutError):
    """Raised when an atomic increment kept conflicting with concurrent writers.

    Transient: the caller may retry the whole operation.
    """


class VerifierSyncError(LockoutError):
    """Raised by a credential verifier adapter when invalidation fails.

    The message is always sanitized and safe to log.
    """
