"""
ASGI middleware for tracking HTTP request metrics.
Records request count, duration, and errors.
"""
import re
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from presigned_storage.utils.metrics import http_requests_total, http_request_duration_seconds, errors_total

# Route suffixes kept verbatim when normalizing paths
_ACTION_SUFFIX = re.compile(r'/presigned/(upload/multipart|upload|download)$')


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to track HTTP metrics for Prometheus."""

    async def dispatch(self, request: Request, call_next):
        """Process request and record metrics."""
        start_time = time.time()

        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        normalized_path = self._normalize_path(request.url.path)

        try:
            response = await call_next(request)
        except Exception:
            errors_total.labels(error_type="exception").inc()
            raise

        status_code = response.status_code
        http_requests_total.labels(
            method=method,
            path=normalized_path,
            status=status_code
        ).inc()
        http_request_duration_seconds.labels(
            method=method,
            path=normalized_path
        ).observe(time.time() - start_time)

        # Track errors (4xx and 5xx)
        if status_code >= 400:
            errors_total.labels(error_type=f"{status_code // 100}xx").inc()

        return response

    def _normalize_path(self, path: str) -> str:
        """
        Normalize path to reduce cardinality.
        Bucket names and object keys are replaced with placeholders.
        """
        if not path.startswith("/api/buckets/"):
            return path

        rest = path[len("/api/buckets/"):]
        bucket, _, tail = rest.partition("/")
        if not tail.startswith("files"):
            return "/api/buckets/{bucket}"
        if tail == "files":
            return "/api/buckets/{bucket}/files"

        action = _ACTION_SUFFIX.search(tail)
        suffix = action.group(0) if action else ""
        return "/api/buckets/{bucket}/files/{key}" + suffix
