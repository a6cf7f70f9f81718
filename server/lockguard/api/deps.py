import logging
import secrets
from functools import lru_cache

from fastapi import Header, HTTPException

from lockguard.core.config import get_settings
from lockguard.services.lockout import LockoutPolicyEngine, build_lockout_engine

logger = logging.getLogger(__name__)


@lru_cache
def get_lockout_engine() -> LockoutPolicyEngine:
    """One engine per process; tests override this dependency."""
    return build_lockout_engine(get_settings())


def require_lockout_api_key(x_lockout_api_key: str = Header(...)) -> None:
    """Guard for every /lockouts route.

    An unset server key rejects everything. Wrong and missing-config cases
    return the same 401 body.
    """
    expected = get_settings().lockout_api_key
    if not expected:
        logger.error("LOCKOUT_API_KEY is empty, refusing lockout API call")
    if not expected or not secrets.compare_digest(
        x_lockout_api_key.encode(), expected.encode()
    ):
        raise HTTPException(status_code=401, detail="Authentication failed")
