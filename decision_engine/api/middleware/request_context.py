"""Request context middleware: correlation id, request logging, metrics.

- Reads X-Correlation-ID or generates one, binds it for the request and
  echoes it in the response headers.
- Logs request start/completion with timing.
- Counts requests on the container's metrics collector, labeled by route
  template so path parameters do not explode label cardinality.
"""

import time
from collections.abc import Awaitable, Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from decision_engine.infrastructure.observability.correlation import (
    CORRELATION_HEADER,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)


def _route_label(request: Request) -> str:
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path or "unmatched"


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or generate_correlation_id()
        token = set_correlation_id(correlation_id)

        log = structlog.get_logger().bind(
            correlation_id=correlation_id,
            method=request.method,
            path=request.url.path,
        )
        log.debug("request_started")
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            log.exception(
                "request_failed",
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                error_type=type(exc).__name__,
            )
            self._record(request, 500)
            raise
        finally:
            reset_correlation_id(token)

        log.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        self._record(request, response.status_code)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response

    @staticmethod
    def _record(request: Request, status: int) -> None:
        container = getattr(request.app.state, "container", None)
        if container is not None:
            container.metrics.record_request(request.method, _route_label(request), status)
