from prometheus_client import Counter, Histogram, make_asgi_app

# Route templates (e.g. /api/files/{key:path}) keep label cardinality low
REQUESTS = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "route", "status"],
)

LATENCY = Histogram(
    "http_request_duration_seconds",
    "Request latency in seconds",
    ["method", "route"],
)

UPLOAD_BYTES = Counter(
    "upload_bytes_total",
    "Bytes accepted by upload endpoints",
    ["strategy"],
)

metrics_app = make_asgi_app()
