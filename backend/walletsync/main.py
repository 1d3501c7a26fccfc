"""WalletSync API - Main entry point."""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from walletsync.config import get_settings
from walletsync.exceptions import FetchError, LedgerError, LoadError, WalletSyncError
from walletsync.logging_config import get_logger, setup_logging
from walletsync.routers import sync_router
from walletsync.schemas.common import ErrorResponse


settings = get_settings()
setup_logging(settings.log_level, log_to_file=settings.app_env != "testing")
logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting %s API...", settings.app_name)
    if settings.enable_cron_jobs:
        from walletsync.cron import sync_wallet_history

        await sync_wallet_history()
        logger.info("Scheduled wallet sync every %ds", settings.sync_interval_seconds)
    yield
    # Shutdown
    logger.info("Shutting down %s API...", settings.app_name)


app = FastAPI(
    title=settings.app_name,
    description="Incremental exchange deposit and withdrawal history sync",
    version="1.0.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)


ERROR_STATUS = {
    FetchError: status.HTTP_502_BAD_GATEWAY,
    LoadError: status.HTTP_502_BAD_GATEWAY,
    LedgerError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@app.exception_handler(WalletSyncError)
async def sync_error_handler(request: Request, exc: WalletSyncError):
    """Map pipeline errors that reach the caller to gateway errors."""
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    body = ErrorResponse(error=type(exc).__name__, detail=exc.message)
    return JSONResponse(status_code=status_code, content=body.model_dump())


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.exception("Unhandled error on %s", request.url.path)
    body = ErrorResponse(
        error="Internal server error",
        detail=str(exc) if settings.debug else None,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body.model_dump(exclude_none=True),
    )


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": "1.0.0",
    }


# Include routers with API prefix
app.include_router(sync_router, prefix=settings.api_v1_prefix)


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "version": "1.0.0",
        "docs": "/docs" if settings.debug else "Disabled in production",
        "api": settings.api_v1_prefix,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "walletsync.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
    )
