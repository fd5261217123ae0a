"""
Prometheus metrics definitions for the upload API.
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

# Upload saga metrics
media_uploads_total = Counter(
    'media_uploads_total',
    'Files that reached a terminal upload state',
    ['media_kind', 'outcome']
)

media_upload_rollbacks_total = Counter(
    'media_upload_rollbacks_total',
    'Upload sagas that required compensation',
    ['reason']
)

media_upload_step_duration_seconds = Histogram(
    'media_upload_step_duration_seconds',
    'Duration of a single upload saga step in seconds',
    ['step'],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0]
)
