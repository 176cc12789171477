# app/main.py
"""
CRM core API: lead scoring and campaign scheduling with database pool
lifecycle management.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.config import settings
from app.db.pool import db_pool
from app.errors import (
    ConfigurationError,
    CrmCoreError,
    DelegateError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from app.features.campaigns.api import router as campaigns_api
from app.features.campaigns.services.scheduler import campaign_scheduler
from app.features.lead_scoring.api import router as scoring_api
from app.infrastructure.observability.logging import get_logger, log_request, setup_logging
from app.routes import health

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)

ERROR_STATUS_CODES: dict[type[CrmCoreError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ConfigurationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    DelegateError: status.HTTP_502_BAD_GATEWAY,
    StorageError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    try:
        await db_pool.initialize()
    except Exception as e:
        logger.error("Failed to initialize database pool", error=str(e))
        raise

    yield

    logger.info("Application shutting down")

    shutdown_errors = []

    try:
        await campaign_scheduler.close()
    except Exception as e:
        logger.error("Error closing campaign sender", error=str(e))
        shutdown_errors.append(f"Sender: {e}")

    try:
        await db_pool.close()
    except Exception as e:
        logger.error("Error closing database pool", error=str(e))
        shutdown_errors.append(f"Database: {e}")

    if shutdown_errors:
        logger.warning("Some services had shutdown errors", errors=shutdown_errors)
    else:
        logger.info("All services closed successfully")


app = FastAPI(
    title="CRM Core",
    description="Lead scoring and campaign scheduling for multi-tenant CRM",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(scoring_api.router)
app.include_router(campaigns_api.router)


@app.exception_handler(CrmCoreError)
async def handle_crm_error(request: Request, exc: CrmCoreError):
    """Map the service error taxonomy onto HTTP status codes."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            status_code = code
            break

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "Request failed",
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
        operation=exc.operation,
    )
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": str(exc),
            "error_type": type(exc).__name__,
            "recoverable": exc.recoverable,
        },
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    log_request(
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
        tenant_id=request.headers.get("x-tenant-id"),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
