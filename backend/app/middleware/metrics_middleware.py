"""
ASGI middleware for tracking HTTP request metrics.
Records request count, duration, and errors.
"""
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from app.utils.metrics import http_requests_total, http_request_duration_seconds, errors_total


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to track HTTP metrics for Prometheus."""

    async def dispatch(self, request: Request, call_next):
        """Process request and record metrics."""
        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.time()
        method = request.method

        try:
            response = await call_next(request)
        except Exception:
            errors_total.labels(error_type="exception").inc()
            raise

        # Route is resolved during call_next
        path = self._route_path(request)
        status_code = response.status_code

        http_requests_total.labels(
            method=method,
            path=path,
            status=status_code
        ).inc()
        http_request_duration_seconds.labels(
            method=method,
            path=path
        ).observe(time.time() - start_time)

        # Track errors (4xx and 5xx)
        if status_code >= 400:
            errors_total.labels(error_type=f"{status_code // 100}xx").inc()

        return response

    @staticmethod
    def _route_path(request: Request) -> str:
        """
        Use the matched route template as the path label.
        Unmatched paths share one label to keep cardinality bounded.
        """
        route = request.scope.get("route")
        return getattr(route, "path", None) or "unmatched"
