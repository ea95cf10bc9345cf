"""
Middleware for CORS, trusted hosts, request logging and upload size limits
"""

import logging
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from kbsync.config import get_settings

settings = get_settings()
logger = logging.getLogger("kbsync.middleware")


def add_cors_middleware(app: FastAPI) -> None:
    """
    Add CORS middleware to FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "X-Requested-With",
            "Accept",
            "Origin",
            "User-Agent"
        ],
        expose_headers=["X-Process-Time"],
        max_age=600,  # 10 minutes
    )


def add_security_middleware(app: FastAPI) -> None:
    """
    Add trusted host middleware to FastAPI app.

    Args:
        app: FastAPI application instance
    """
    allowed_hosts = ["*"] if settings.debug else settings.trusted_hosts
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=allowed_hosts
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        logger.info(f"Request: {request.method} {request.url.path}")

        response: Response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(
            f"Response: {response.status_code} | "
            f"Time: {process_time:.4f}s | "
            f"Size: {response.headers.get('content-length', 'unknown')} bytes"
        )
        response.headers["X-Process-Time"] = str(process_time)
        return response


class FileSizeMiddleware(BaseHTTPMiddleware):
    """Rejects queue uploads whose declared body no acceptable request could reach.

    A request may carry up to ``max_files_per_request`` files of up to
    ``max_file_size_mb`` each; the per-file limit is enforced when each file is
    validated.
    """

    async def dispatch(self, request: Request, call_next):
        if request.method == "POST" and request.url.path.startswith("/api/v1/uploads"):
            content_length = request.headers.get("content-length")
            if content_length and content_length.isdigit():
                # Allow headroom for multipart framing
                limit = settings.max_file_size_bytes * settings.max_files_per_request + 1024 * 1024
                if int(content_length) > limit:
                    return JSONResponse(
                        status_code=413,
                        content={
                            "detail": (
                                f"Upload request must be less than {limit // (1024 * 1024)}MB "
                                f"({settings.max_files_per_request} files of up to {settings.max_file_size_mb}MB)"
                            )
                        }
                    )

        return await call_next(request)


def add_request_logging_middleware(app: FastAPI) -> None:
    app.add_middleware(RequestLoggingMiddleware)


def add_file_size_middleware(app: FastAPI) -> None:
    app.add_middleware(FileSizeMiddleware)
