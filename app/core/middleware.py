# app/core/middleware.py
from __future__ import annotations

import logging
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.core.errors import AppError

logger = logging.getLogger("rewards.request")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    One log line per request (method, path, status, duration) tagged with
    x-request-id. AppErrors that escape a router become JSON with their status.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except AppError as e:
            logger.warning("request_id=%s %s: %s", request_id, e.__class__.__name__, e.message)
            response = JSONResponse(status_code=e.status_code, content={"detail": e.message})

        duration_ms = (time.perf_counter() - start) * 1000.0
        logger.info(
            "request_id=%s method=%s path=%s status=%s duration_ms=%.2f",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )

        response.headers["x-request-id"] = request_id
        return response
