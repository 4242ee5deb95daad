import time
import uuid
from typing import Awaitable, Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings


class StructlogMiddleware(BaseHTTPMiddleware):
    """Bind a request id to the structlog context and log request outcome."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        # path params are not resolved yet at this point, only the query string is
        subject_id = request.query_params.get("subject_id")
        if subject_id:
            structlog.contextvars.bind_contextvars(subject_id=subject_id)

        logger = structlog.get_logger()
        if settings.ENVIRONMENT in ["local", "dev"]:
            logger.debug("request_started")

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("request_failed", duration=time.perf_counter() - started)
            raise

        logger.info(
            "request_finished",
            status_code=response.status_code,
            duration=time.perf_counter() - started,
        )
        response.headers["X-Request-ID"] = request_id
        return response
