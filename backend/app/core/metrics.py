"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Checkout metrics
checkout_attempts = Counter(
    'checkout_attempts_total',
    'Total checkout attempts',
    ['outcome']  # payment_required, confirmed, capacity_conflict, discount_conflict, error
)

checkout_latency = Histogram(
    'checkout_latency_seconds',
    'Checkout request latency',
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

# Reconciliation metrics
capacity_rollbacks = Counter(
    'capacity_rollbacks_total',
    'Capacity reservations rolled back after a negative verification read'
)

discount_rollbacks = Counter(
    'discount_rollbacks_total',
    'Discount code reservations rolled back after a negative verification read'
)

compensation_failures = Counter(
    'compensation_failures_total',
    'Compensating releases that raised while undoing a partial acquisition',
    ['resource']  # capacity, discount
)

# Payment events
payment_events = Counter(
    'payment_events_total',
    'Payment gateway events processed',
    ['action']  # booking_* and gift_* outcomes, ignored
)

# Expiration reaper
reaper_bookings = Counter(
    'reaper_bookings_total',
    'Expired bookings handled by the reaper',
    ['result']  # processed, error
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
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


# Convenience functions for instrumentation
def record_checkout(outcome: str):
    """Record checkout outcome."""
    checkout_attempts.labels(outcome=outcome).inc()


def record_payment_event(action: str):
    payment_events.labels(action=action).inc()


def record_reaper(processed: int, errors: int):
    if processed:
        reaper_bookings.labels(result="processed").inc(processed)
    if errors:
        reaper_bookings.labels(result="error").inc(errors)


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
