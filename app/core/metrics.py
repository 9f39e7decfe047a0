"""Prometheus metric inventory.

Every metric the service exports is declared here; the modules that own a
behavior import the metric they need and increment/observe it in place.

Counters only go up (request totals, evaluations, transitions), gauges go
up and down (in-flight requests), histograms bucket observations so
Prometheus can derive percentiles:

  histogram_quantile(0.95, rate(http_request_duration_seconds_bucket[5m]))

Prometheus scrapes GET /metrics (see app/api/metrics_endpoint.py).
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Learning-progress metrics
# ---------------------------------------------------------------------------

LESSON_EVALUATIONS = Counter(
    "lesson_lock_evaluations_total",
    "Lesson access decisions made by the unlock evaluator",
    ["reason"],  # "unlocked" or one of the lock reasons
)

PATHWAY_TRANSITIONS = Counter(
    "pathway_transitions_total",
    "Pathway state machine transitions by kind and outcome",
    ["transition", "outcome"],  # transition: enroll|advance|choice
)

PROGRESS_MUTATIONS = Counter(
    "progress_mutations_total",
    "Student progress writes by kind and outcome",
    ["kind", "outcome"],  # kind: watch|submit|review
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache get operations by result",
    ["operation"],  # "hit" or "miss"
)
