"""
Prometheus metrics: HTTP request counters plus the storefront domain counters.

/metrics is unauthenticated; expose it to the monitoring network only.
Under Gunicorn set PROMETHEUS_MULTIPROC_DIR so every worker reports.
"""
import logging
import os
import time

from flask import Blueprint, Response, request, g
from prometheus_client import (
    Counter, Histogram, CollectorRegistry, REGISTRY, CONTENT_TYPE_LATEST, generate_latest, multiprocess
)

logger = logging.getLogger(__name__)

metrics_bp = Blueprint('metrics', __name__)

if os.environ.get('PROMETHEUS_MULTIPROC_DIR'):
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
    _owner = None  # metrics land in the multiprocess directory
else:
    registry = REGISTRY
    _owner = REGISTRY


def _counter(name, documentation, labels):
    return Counter(name, documentation, labels, registry=_owner)


http_requests_total = _counter('http_requests_total', 'HTTP requests', ['method', 'endpoint', 'http_status'])
http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request latency in seconds',
    ['method', 'endpoint'],
    registry=_owner,
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)
)

checkouts_total = _counter('checkouts_total', 'Checkout attempts by outcome', ['outcome'])
cart_reconciliation_lines_total = _counter(
    'cart_reconciliation_lines_total', 'Cart lines removed or updated by reconciliation', ['outcome']
)
notification_failures_total = _counter(
    'notification_failures_total', 'Notifications that could not be delivered', ['template']
)
order_status_transitions_total = _counter(
    'order_status_transitions_total', 'Order status transitions by target status', ['status']
)


def record(counter: Counter, amount: int = 1, **labels) -> None:
    """Increment a labelled counter; metrics never break the caller."""
    try:
        counter.labels(**labels).inc(amount)
    except Exception as e:
        logger.warning(f"[METRICS] Could not record {labels}: {e}")


def setup_metrics_instrumentation(app):
    """Time every request and count it by endpoint and status."""

    @app.before_request
    def start_request_timer():
        g._request_started = time.perf_counter()

    @app.after_request
    def observe_request(response):
        started = g.pop('_request_started', None)
        if started is not None:
            endpoint = request.endpoint or 'unknown'
            http_request_duration_seconds.labels(request.method, endpoint).observe(time.perf_counter() - started)
            record(http_requests_total, method=request.method, endpoint=endpoint, http_status=response.status_code)
        return response


@metrics_bp.route('/metrics')
def metrics():
    return Response(generate_latest(registry), mimetype=CONTENT_TYPE_LATEST)
