"""Request context and access log middleware."""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from platform_access.logger import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Binds a request id into the structlog context and logs one access line per request.

    Produces logs like:
    INFO:     [hostname:pid] http_request request_id=... request="GET /api/v1/tenant HTTP/1.1" status=200 ...
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        start_time = time.perf_counter()
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

        # Context from a previous request on this task must not leak into this one.
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        path = request.url.path
        response: Response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id

        # Skip logging for health checks
        if path == "/health":
            return response

        duration_ms = (time.perf_counter() - start_time) * 1000
        client_host = request.client.host if request.client else "-"
        query = request.url.query
        full_path = f"{path}?{query}" if query else path
        http_version = request.scope.get("http_version", "1.1")

        logger.info(
            "http_request",
            client=client_host,
            request=f'"{request.method} {full_path} HTTP/{http_version}"',
            status=response.status_code,
            duration=f"{duration_ms:.1f}ms",
        )
        return response
