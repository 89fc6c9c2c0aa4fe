"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Ledger operations
booking_operations = Counter(
    'booking_operations_total',
    'Reserve/cancel attempts by outcome',
    ['operation', 'outcome']  # reserve|cancel, success|not_found|unavailable|conflict|invalid_request|transaction_failed
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Latency of a reserve/cancel unit of work, retries included',
    ['operation'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)

booking_tx_retries = Counter(
    'booking_tx_retries_total',
    'Reserve/cancel retries after the store aborted the transaction',
    ['operation']
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Event listing cache operations',
    ['operation', 'result']  # get/set/invalidate, hit/miss/error
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


def record_booking_operation(operation: str, outcome: str):
    """Record a reserve/cancel outcome."""
    booking_operations.labels(operation=operation, outcome=outcome).inc()


def record_tx_retry(operation: str):
    booking_tx_retries.labels(operation=operation).inc()


def record_cache_operation(operation: str, result: str):
    """Record cache operation. Result: hit, miss, error, ok"""
    cache_operations.labels(operation=operation, result=result).inc()
