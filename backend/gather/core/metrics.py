"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Registration metrics
registration_attempts = Counter(
    'registration_attempts_total',
    'Total registration attempts',
    ['result']  # confirmed, waitlist, duplicate, conflict, invalid_event
)

registration_latency = Histogram(
    'registration_latency_seconds',
    'Registration decision latency (lock held to commit)',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

cancellations = Counter(
    'registration_cancellations_total',
    'Registrations cancelled',
    ['previous_status']  # confirmed, waitlist
)

waitlist_promotions = Counter(
    'waitlist_promotions_total',
    'Waitlisted registrations promoted to confirmed'
)

# Lock metrics
lock_wait_latency = Histogram(
    'event_lock_wait_seconds',
    'Time spent waiting for a per-event registration lock',
    ['backend'],
    buckets=[0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)

lock_timeouts = Counter(
    'event_lock_timeouts_total',
    'Per-event lock acquisitions that timed out',
    ['backend']
)

lock_retries = Counter(
    'registration_lock_retries_total',
    'Registration attempts retried after a lock conflict'
)

# Notification metrics
notifications_dispatched = Counter(
    'notifications_dispatched_total',
    'Notification dispatch outcomes',
    ['kind', 'result']  # result: sent, failed
)

notifications_in_flight = Gauge(
    'notifications_in_flight',
    'Notification sends scheduled but not yet finished'
)

# HTTP metrics
request_latency = Histogram(
    'http_request_latency_seconds',
    'HTTP request latency',
    ['method', 'status_code'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_registration_attempt(result: str):
    """Record registration outcome. Result: confirmed, waitlist, duplicate, conflict, invalid_event"""
    registration_attempts.labels(result=result).inc()


def record_cancellation(previous_status: str):
    cancellations.labels(previous_status=previous_status).inc()


def record_promotion(count: int = 1):
    waitlist_promotions.inc(count)


def record_lock_wait(backend: str, seconds: float):
    lock_wait_latency.labels(backend=backend).observe(seconds)


def record_lock_timeout(backend: str):
    lock_timeouts.labels(backend=backend).inc()


def record_notification(kind: str, sent: bool):
    """Record notification dispatch result."""
    result = "sent" if sent else "failed"
    notifications_dispatched.labels(kind=kind, result=result).inc()
