from datetime import datetime

from pydantic import BaseModel, Field


class LockoutCheckRequest(BaseModel):
    identity: str = Field(..., min_length=1, max_length=255)
    ip_address: str | None = Field(None, max_length=64)


class LoginAttemptIn(BaseModel):
    identity: str = Field(..., min_length=1, max_length=255)
    ip_address: str | None = Field(None, max_length=64)
    user_agent: str | None = None
    success: bool


class ClearLockoutRequest(BaseModel):
    identity: str = Field(..., min_length=1, max_length=255)
    ip_address: str | None = Field(None, max_length=64)


class LockoutStatusOut(BaseModel):
    identity: str
    is_locked: bool
    remaining_attempts: int
    lockout_until: datetime | None = None
    time_remaining_ms: int | None = None
    message: str | None = None


class LockoutInfoOut(BaseModel):
    is_locked: bool
    time_remaining: str | None = None
    attempts_remaining: int | None = None

    class Config:
        from_attributes = True


class LockoutStatusResponse(BaseModel):
    status: LockoutStatusOut
    info: LockoutInfoOut


class ClearLockoutResponse(BaseModel):
    status: str
    message: str
    verifier_invalidated: bool
    verifier_error: str | None = None


class CleanupResultOut(BaseModel):
    lockouts_cleared: int
    attempts_reset: int
    batches: int
    errors: int
    sync_failures: int
    complete: bool

    class Config:
        from_attributes = True


class LoginAttemptRecordOut(BaseModel):
    identity: str
    ip_address: str | None = None
    user_agent: str | None = None
    failed_attempts: int
    last_attempt_at: datetime
    lockout_until: datetime | None = None

    class Config:
        from_attributes = True


class StatusResponse(BaseModel):
    status: str
