"""Request middleware binding correlation ids for authorization logs."""

from __future__ import annotations

import logging
import time
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from .logging import bind_request_context, clear_request_context

REQUEST_ID_HEADER = "X-Request-ID"

_REQUEST_LOGGER = logging.getLogger("lms_authz.request")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag every log line emitted while serving a request with its correlation id.

    The id comes from the ``X-Request-ID`` header when the caller sends one and
    is echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        request.state.correlation_id = correlation_id
        bind_request_context(correlation_id)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            _REQUEST_LOGGER.exception(
                "request.error",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                },
            )
            raise
        finally:
            clear_request_context()

        _REQUEST_LOGGER.info(
            "request.complete",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                "correlation_id": correlation_id,
            },
        )
        response.headers[REQUEST_ID_HEADER] = correlation_id
        return response


def register_middleware(app: FastAPI) -> None:
    app.add_middleware(RequestContextMiddleware)


__all__ = ["REQUEST_ID_HEADER", "RequestContextMiddleware", "register_middleware"]
