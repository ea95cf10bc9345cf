"""
Main FastAPI application for the Knowledge Base File Sync API
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy import text

import kbsync.models  # noqa: F401  registers tables on Base.metadata
from kbsync.config import get_settings, validate_required_for_production
from kbsync.core.exceptions import UploadError, ValidationError
from kbsync.core.middleware import (
    add_cors_middleware,
    add_file_size_middleware,
    add_request_logging_middleware,
    add_security_middleware
)
from kbsync.database import close_database, engine, init_database
from kbsync.schemas.upload import ApiInfo, HealthCheck

from kbsync.api import files, history, uploads

settings = get_settings()

logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan management.

    Args:
        app: FastAPI application instance
    """
    logger.info(f"Starting {settings.app_name}...")

    missing = validate_required_for_production()
    if missing:
        logger.warning(f"Missing configuration: {', '.join(missing)}")

    try:
        await init_database()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    logger.info("Application startup complete")

    yield

    logger.info(f"Shutting down {settings.app_name}...")
    try:
        await close_database()
        logger.info("Database connections closed")
    except Exception as e:
        logger.error(f"Error during database shutdown: {e}")

    logger.info("Application shutdown complete")


app = FastAPI(
    title=settings.app_name,
    description="Upload data files to object storage and sync them to the knowledge base",
    version=settings.version,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Custom handler for request validation errors (422).
    """
    logger.warning(f"Request validation failed for {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Request validation failed",
            "errors": jsonable_encoder(exc.errors())
        }
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Custom handler for HTTP exceptions.
    Logs authentication and other HTTP errors.
    """
    if exc.status_code == 401:
        logger.warning(f"Authentication failed for {request.method} {request.url.path}: {exc.detail}")
    elif exc.status_code >= 400:
        logger.warning(f"HTTP {exc.status_code} error for {request.method} {request.url.path}: {exc.detail}")

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(UploadError)
async def upload_error_handler(request: Request, exc: UploadError):
    """
    Maps workflow errors to their HTTP status.
    Validation rejections also carry their ``code``.
    """
    content = {"detail": exc.message}
    if isinstance(exc, ValidationError):
        content["code"] = exc.code
    if exc.upstream_status is not None:
        content["upstream_status"] = exc.upstream_status

    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} for {request.method} {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{type(exc).__name__} for {request.method} {request.url.path}: {exc.message}")

    return JSONResponse(status_code=exc.status_code, content=content)


add_cors_middleware(app)
add_security_middleware(app)
add_request_logging_middleware(app)
add_file_size_middleware(app)

app.include_router(
    uploads.router,
    prefix="/api/v1/uploads",
    tags=["uploads"]
)
app.include_router(
    files.router,
    prefix="/api/v1/files",
    tags=["files"]
)
app.include_router(
    history.router,
    prefix="/api/v1/history",
    tags=["history"]
)


@app.get("/")
async def root() -> dict:
    """
    Root endpoint with API information.

    Returns:
        dict: Basic API information
    """
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.version,
        "docs": "/docs",
        "status": "operational"
    }


@app.get("/api/v1/health", response_model=HealthCheck)
async def health_check() -> HealthCheck:
    """
    Health check endpoint.

    Returns:
        HealthCheck: Application health status
    """
    database_connected = True
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        database_connected = False

    storage_configured = settings.storage_configured

    return HealthCheck(
        status="healthy" if database_connected and storage_configured else "unhealthy",
        timestamp=datetime.now(timezone.utc),
        version=settings.version,
        database_connected=database_connected,
        storage_configured=storage_configured
    )


@app.get("/api/v1/info", response_model=ApiInfo)
async def api_info() -> ApiInfo:
    """
    API information endpoint.

    Returns:
        ApiInfo: Detailed API information
    """
    return ApiInfo(
        name=settings.app_name,
        version=settings.version
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "kbsync.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info"
    )
