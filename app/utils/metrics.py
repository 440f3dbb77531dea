"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
access_decisions_total = Counter(
    "access_decisions_total",
    "Access decisions served",
    ["source"],  # anonymous, cache, storage, fallback
)

access_cache_total = Counter(
    "access_cache_total",
    "Status cache lookups",
    ["result"],  # hit, miss, expired
)

profile_views_total = Counter(
    "profile_views_total",
    "record_view outcomes",
    ["result"],  # new, repeat, error
)

payments_initiated_total = Counter(
    "payments_initiated_total",
    "Payment sessions started",
    ["purpose", "method"],
)

payment_initiation_failures_total = Counter(
    "payment_initiation_failures_total",
    "Payment initiation rejected by validation or processor",
    ["stage"],  # validation, processor
)

payment_settlements_total = Counter(
    "payment_settlements_total",
    "Terminal settlement outcomes",
    ["purpose", "status"],  # completed, failed, timed_out
)

payment_status_queries_total = Counter(
    "payment_status_queries_total",
    "Processor status queries issued by the settlement poller",
    ["result"],  # pending, completed, failed, error
)

grants_applied_total = Counter(
    "grants_applied_total",
    "Purchase effects applied",
    ["purpose"],
)

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open)",
    ["name"],
)

# Histograms
settlement_duration_seconds = Histogram(
    "settlement_duration_seconds",
    "Time from initiation to terminal settlement",
    ["status"],
    buckets=[5, 10, 30, 60, 120, 300, 600],
)

# Gauges
active_settlement_polls = Gauge(
    "active_settlement_polls",
    "Settlement poll loops currently running",
)


# Metrics endpoint router
router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
