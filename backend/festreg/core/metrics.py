"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Registration metrics
registration_attempts = Counter(
    'registration_attempts_total',
    'Registration attempts by domain and outcome',
    ['domain', 'outcome']  # created, resumed, confirmed, free, error
)

status_transitions = Counter(
    'payment_status_transitions_total',
    'Payment status changes written to the store',
    ['domain', 'source', 'status']  # source: create, pull, push
)

# Provider metrics
provider_requests = Counter(
    'provider_requests_total',
    'Booking provider requests',
    ['operation', 'outcome']  # outcome: ok, http_error, transport_error, invalid
)

provider_latency = Histogram(
    'provider_request_latency_seconds',
    'Booking provider request latency',
    ['operation'],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# Webhook metrics
webhook_deliveries = Counter(
    'webhook_deliveries_total',
    'Provider webhook deliveries',
    ['result']  # updated, unchanged, unknown_ticket, not_found, missing_metadata, rejected
)

# Database metrics
db_retries = Counter(
    'db_transaction_retries_total',
    'Transaction retries due to concurrent modification'
)

# Auth metrics
auth_failures = Counter(
    'auth_failures_total',
    'Rejected identity tokens',
    ['reason']  # missing, invalid, revoked
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_registration(domain: str, outcome: str):
    registration_attempts.labels(domain=domain, outcome=outcome).inc()


def record_status_transition(domain: str, source: str, status: str):
    status_transitions.labels(domain=domain, source=source, status=status).inc()


def record_provider_request(operation: str, outcome: str):
    provider_requests.labels(operation=operation, outcome=outcome).inc()


def record_webhook(result: str):
    webhook_deliveries.labels(result=result).inc()


def record_auth_failure(reason: str):
    auth_failures.labels(reason=reason).inc()
