"""
Prometheus collectors shared across the service.

Collectors are module level so they register once per process with the
default registry, however many application instances a test session builds.
"""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

REQUEST_COUNT = Counter(
    'api_requests_total',
    'Total number of API requests',
    ['method', 'endpoint', 'status_code']
)

REQUEST_DURATION = Histogram(
    'api_request_duration_seconds',
    'API request duration in seconds',
    ['method', 'endpoint']
)

ACTIVE_REQUESTS = Gauge(
    'api_active_requests',
    'Number of active API requests',
    ['endpoint']
)

WRITE_OPERATIONS = Counter(
    'write_operations_total',
    'Mutations processed by the write orchestrator',
    ['entity', 'operation', 'outcome']
)

WRITE_DURATION = Histogram(
    'write_operation_duration_seconds',
    'Write orchestrator pipeline duration',
    ['entity', 'operation']
)

BUSINESS_ERRORS = Counter(
    'business_errors_total',
    'Business errors returned to clients',
    ['kind', 'error_code']
)

DATABASE_OPERATION_DURATION = Histogram(
    'mongodb_operation_duration_seconds',
    'MongoDB operation duration in seconds',
    ['operation', 'collection'],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)
)

DATABASE_ERRORS = Counter(
    'mongodb_errors_total',
    'MongoDB errors by type',
    ['error_type', 'operation', 'collection']
)


def render_latest():
    """Return ``(body, content_type)`` for the /metrics endpoint."""
    return generate_latest(), CONTENT_TYPE_LATEST
