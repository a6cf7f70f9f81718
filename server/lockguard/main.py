import logging

from fastapi import FastAPI
from fastapi import Request as FastAPIRequest
from fastapi.responses import JSONResponse

from lockguard.api import api_router
from lockguard.core.config import get_settings
from lockguard.core.errors import (
    ConcurrentUpdateError,
    InvalidIdentityError,
    StoreUnavailableError,
)

settings = get_settings()

# Configure app-level logging so module loggers (lockout, sync, cleanup)
# emit INFO-level diagnostics instead of being silenced by Python's default WARNING level.
logging.getLogger("lockguard").setLevel(logging.INFO)

app = FastAPI(
    title="Lockguard API",
    description="Login attempt tracking and account lockout policy",
    version="0.1.0",
    # Disable API docs in production
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    openapi_url=None if settings.is_production else "/openapi.json",
)

logger = logging.getLogger(__name__)


@app.exception_handler(InvalidIdentityError)
async def invalid_identity_handler(request: FastAPIRequest, exc: InvalidIdentityError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(
    request: FastAPIRequest, exc: StoreUnavailableError
) -> JSONResponse:
    logger.error("Attempt store unavailable on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=503,
        content={"detail": "Lockout store unavailable. Please try again later."},
    )


@app.exception_handler(ConcurrentUpdateError)
async def concurrent_update_handler(
    request: FastAPIRequest, exc: ConcurrentUpdateError
) -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"detail": "Too many concurrent updates. Please retry."},
        headers={"Retry-After": "1"},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: FastAPIRequest, exc: Exception) -> JSONResponse:
    """Catch unhandled exceptions and return a generic 500 response."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    content = {"detail": "Internal server error"}
    if not settings.is_production:
        content["debug"] = str(exc)
    return JSONResponse(status_code=500, content=content)


app.include_router(api_router, prefix="/api")


@app.get("/health")
def health_check():
    return {"status": "ok"}
