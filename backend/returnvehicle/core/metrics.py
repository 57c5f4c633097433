"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking attempts',
    ['outcome']  # success, seat_unavailable, rejected, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Latency of the book operation',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

booking_transitions = Counter(
    'booking_transitions_total',
    'Booking ledger state transitions',
    ['to_status']
)

# Compensation metrics
seat_releases = Counter(
    'seat_releases_total',
    'Seats returned to a ride after cancel/reject',
    ['path']  # cancel, reject, reconcile
)

seat_release_retries = Counter(
    'seat_release_retries_total',
    'Retries of the seat release phase after a storage error'
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(outcome: str):
    """Record booking attempt. Outcome: success, seat_unavailable, rejected, error"""
    booking_attempts.labels(outcome=outcome).inc()


def record_transition(to_status: str):
    booking_transitions.labels(to_status=to_status).inc()


def record_seat_release(path: str, seats: int):
    seat_releases.labels(path=path).inc(seats)


def record_cache_operation(operation: str, hit: bool):
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
