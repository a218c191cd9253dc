"""
Request logging and panic recovery middleware.
"""

import time
from typing import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = structlog.get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs one line per request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
            remote=request.client.host if request.client else None,
        )
        return response


class RecoveryMiddleware(BaseHTTPMiddleware):
    """Turns an unhandled exception into a 500 so the process keeps serving."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception:
            logger.exception(
                "Unhandled error", method=request.method, path=request.url.path
            )
            return JSONResponse(status_code=500, content="Internal Server Error")
