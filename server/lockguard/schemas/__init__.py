from lockguard.schemas.lockout import (
    CleanupResultOut,
    ClearLockoutRequest,
    ClearLockoutResponse,
    LockoutCheckRequest,
    LockoutInfoOut,
    LockoutStatusOut,
    LockoutStatusResponse,
    LoginAttemptIn,
    LoginAttemptRecordOut,
    StatusResponse,
)

__all__ = [
    "CleanupResultOut",
    "ClearLockoutRequest",
    "ClearLockoutResponse",
    "LockoutCheckRequest",
    "LockoutInfoOut",
    "LockoutStatusOut",
    "LockoutStatusResponse",
    "LoginAttemptIn",
    "LoginAttemptRecordOut",
    "StatusResponse",
]
