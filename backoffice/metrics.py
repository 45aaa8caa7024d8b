from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "path", "status"],
)
REQUEST_ERRORS = Counter(
    "http_request_errors_total",
    "Total HTTP 5xx responses",
    ["method", "path", "status"],
)

CACHE_LOOKUPS = Counter(
    "resource_cache_lookups_total",
    "Resource cache lookups by outcome",
    ["endpoint", "outcome"],
)
CACHE_FETCHES = Counter(
    "resource_cache_fetches_total",
    "Banking API fetches started by the resource cache",
    ["endpoint", "status"],
)
CACHE_INVALIDATIONS = Counter(
    "resource_cache_invalidations_total",
    "Cache entries invalidated by mutations",
    ["endpoint"],
)
FETCH_DURATION = Histogram(
    "resource_cache_fetch_duration_seconds",
    "Banking API fetch duration",
    ["endpoint", "status"],
)


def observe_fetch(endpoint: str, status: str, duration: float) -> None:
    CACHE_FETCHES.labels(endpoint=endpoint, status=status).inc()
    FETCH_DURATION.labels(endpoint=endpoint, status=status).observe(duration)
