"""Middleware binding trace_id / request_id into the structlog context."""
from __future__ import annotations

import time
from uuid import UUID, uuid4

import structlog
from aiohttp import web

TRACE_ID_HEADER = "X-Trace-Id"
REQUEST_ID_HEADER = "X-Request-Id"

logger = structlog.get_logger(__name__)


def _header_uuid(request: web.Request, header: str) -> str:
    value = request.headers.get(header)
    if value:
        try:
            UUID(value)
            return value
        except ValueError:
            pass
    return str(uuid4())


def create_trace_middleware(service_name: str):
    """Create trace middleware with specified service name."""

    @web.middleware
    async def trace_middleware(request: web.Request, handler):
        start_time = time.monotonic()
        trace_id = _header_uuid(request, TRACE_ID_HEADER)
        request_id = _header_uuid(request, REQUEST_ID_HEADER)
        request["trace_id"] = trace_id
        request["request_id"] = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            trace_id=trace_id,
            request_id=request_id,
            service=service_name,
            method=request.method,
            path=request.path,
        )
        try:
            response = await handler(request)
        except web.HTTPException as exc:
            logger.warning(
                "request_failed",
                status_code=exc.status_code,
                duration_ms=round((time.monotonic() - start_time) * 1000, 2),
            )
            raise
        except Exception:
            logger.exception(
                "request_crashed",
                duration_ms=round((time.monotonic() - start_time) * 1000, 2),
            )
            raise
        else:
            log = logger.warning if response.status >= 400 else logger.info
            log(
                "request_completed",
                status_code=response.status,
                duration_ms=round((time.monotonic() - start_time) * 1000, 2),
            )
            response.headers[TRACE_ID_HEADER] = trace_id
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            structlog.contextvars.clear_contextvars()

    return trace_middleware
