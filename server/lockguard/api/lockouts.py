"""Lockout API: status checks and attempt recording for the authentication
flow, plus clear/cleanup/listing for admin tooling."""

from fastapi import APIRouter, Depends, Query, Request, Response

from lockguard.api.deps import get_lockout_engine
from lockguard.core.client_ip import get_client_ip
from lockguard.core.validation import normalize_identity
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
from lockguard.services.lockout import (
    LockoutPolicyEngine,
    LockoutStatus,
    lockout_info,
    lockout_message,
)

router = APIRouter()


def _status_out(identity: str, status: LockoutStatus) -> LockoutStatusOut:
    return LockoutStatusOut(
        identity=identity,
        is_locked=status.is_locked,
        remaining_attempts=status.remaining_attempts,
        lockout_until=status.lockout_until,
        time_remaining_ms=(
            int(status.time_remaining.total_seconds() * 1000) if status.time_remaining else None
        ),
        message=lockout_message(status) if status.is_locked else None,
    )


@router.get("", response_model=list[LoginAttemptRecordOut])
def list_records(
    after: str | None = Query(None, max_length=255),
    limit: int = Query(50, ge=1, le=500),
    engine: LockoutPolicyEngine = Depends(get_lockout_engine),
) -> list[LoginAttemptRecordOut]:
    """Current attempt records, ordered by identity."""
    return [LoginAttemptRecordOut.model_validate(r) for r in engine.list_records(after, limit)]


@router.get("/status", response_model=LockoutStatusResponse)
def get_status(
    identity: str = Query(..., min_length=1, max_length=255),
    ip: str | None = Query(None, max_length=64),
    engine: LockoutPolicyEngine = Depends(get_lockout_engine),
) -> LockoutStatusResponse:
    status = engine.check_status(identity, ip)
    return LockoutStatusResponse(
        status=_status_out(normalize_identity(identity), status),
        info=LockoutInfoOut.model_validate(lockout_info(status)),
    )


@router.post("/check", response_model=LockoutStatusOut)
def check_lockout(
    request: Request,
    response: Response,
    body: LockoutCheckRequest,
    engine: LockoutPolicyEngine = Depends(get_lockout_engine),
) -> LockoutStatusOut:
    """Called before the credential check. A locked caller must not reach the verifier."""
    ip_address = body.ip_address or get_client_ip(request)
    status = engine.check_status(body.identity, ip_address)
    if status.is_locked:
        response.headers["Retry-After"] = str(status.retry_after_seconds)
    return _status_out(normalize_identity(body.identity), status)


@router.post("/attempts", response_model=StatusResponse)
def record_attempt(
    request: Request,
    body: LoginAttemptIn,
    engine: LockoutPolicyEngine = Depends(get_lockout_engine),
) -> StatusResponse:
    """Record the outcome of a credential check."""
    ip_address = body.ip_address or get_client_ip(request)
    user_agent = body.user_agent or request.headers.get("User-Agent")
    engine.record_attempt(body.identity, ip_address, user_agent, body.success)
    return StatusResponse(status="ok")


@router.post("/clear", response_model=ClearLockoutResponse)
def clear_lockout(
    body: ClearLockoutRequest,
    engine: LockoutPolicyEngine = Depends(get_lockout_engine),
) -> ClearLockoutResponse:
    outcome = engine.clear_lockout(body.identity, body.ip_address)
    return ClearLockoutResponse(
        status="ok",
        message=f"Lockout cleared for {outcome.identity}",
        verifier_invalidated=outcome.invalidated,
        verifier_error=outcome.error,
    )


@router.post("/cleanup", response_model=CleanupResultOut)
def run_cleanup(
    engine: LockoutPolicyEngine = Depends(get_lockout_engine),
) -> CleanupResultOut:
    return CleanupResultOut.model_validate(engine.cleanup_expired_records())
