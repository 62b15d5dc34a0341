"""
Prometheus metrics definitions for the API and the upload client.
All metrics are registered here and can be imported by other modules.
"""
from prometheus_client import Counter, Histogram

# HTTP request metrics
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'path', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'path'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# Error metrics
errors_total = Counter(
    'errors_total',
    'Total errors',
    ['error_type']
)

# Presigned URL metrics
presigned_urls_issued_total = Counter(
    'presigned_urls_issued_total',
    'Total presigned URLs issued',
    ['operation']
)

# Multipart session metrics
multipart_sessions_total = Counter(
    'multipart_sessions_total',
    'Multipart upload session transitions',
    ['status']
)

multipart_parts_requested = Histogram(
    'multipart_parts_requested',
    'Number of parts requested per multipart session',
    buckets=[1, 2, 5, 10, 25, 50, 100, 250, 500, 1000, 10000]
)

# Storage gateway metrics
gateway_failures_total = Counter(
    'gateway_failures_total',
    'Total object storage call failures',
    ['operation']
)

gateway_latency_seconds = Histogram(
    'gateway_latency_seconds',
    'Object storage call latency in seconds',
    ['operation'],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)
