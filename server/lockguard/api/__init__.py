from fastapi import APIRouter, Depends

from lockguard.api import lockouts
from lockguard.api.deps import require_lockout_api_key

api_router = APIRouter()


@api_router.get("/health", tags=["health"])
def api_health_check():
    """Health check endpoint for monitoring and load balancers."""
    return {"status": "ok", "service": "api"}


api_router.include_router(
    lockouts.router,
    prefix="/lockouts",
    tags=["lockouts"],
    dependencies=[Depends(require_lockout_api_key)],
)
