"""Request context middleware for FastAPI.

Generates or propagates ``X-Request-ID`` and logs the request lifecycle so
every log line emitted while serving a request carries its id.

Usage:
    from libs.common.middleware import add_request_context_middleware

    app = FastAPI()
    add_request_context_middleware(app)
"""
import time
from typing import Callable

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from libs.common.logging import (
    clear_request_context,
    configure_logging,
    get_logger,
    set_request_context,
)

logger = get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind the request id to the logging context for the request's duration."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = set_request_context(
            request_id=request.headers.get("X-Request-ID"),
            path=request.url.path,
            method=request.method,
        )
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Request failed with unhandled exception",
                extra={"extra_fields": {
                    "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
                }},
            )
            raise
        else:
            if request.url.path != "/health":
                log = logger.warning if response.status_code >= 400 else logger.info
                log(
                    "Request completed",
                    extra={"extra_fields": {
                        "status_code": response.status_code,
                        "duration_ms": round(
                            (time.perf_counter() - start_time) * 1000, 2
                        ),
                    }},
                )
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_request_context()


def add_request_context_middleware(app: FastAPI) -> None:
    """Configure logging and install :class:`RequestContextMiddleware`."""
    configure_logging()
    app.add_middleware(RequestContextMiddleware)
