"""
Lightweight metrics collection for live match sync.
Prometheus counters, gauges and histograms; the HTTP exporter is opt-in.
"""
from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from shared.config import Settings, get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
PROVIDER_REQUESTS = Counter(
    "ls_provider_requests_total",
    "Total data source HTTP requests",
    ["provider", "endpoint", "status"],
)
CACHE_LOOKUPS = Counter(
    "ls_cache_lookups_total",
    "Result cache lookups",
    ["kind", "result"],
)
CACHE_EVICTIONS = Counter(
    "ls_cache_evictions_total",
    "Expired cache entries removed",
    ["reason"],
)
BUDGET_REJECTIONS = Counter(
    "ls_budget_rejections_total",
    "Outbound calls refused by the local call budget",
)
FETCH_RETRIES = Counter(
    "ls_fetch_retries_total",
    "Coordinator retries after a transient failure",
    ["operation", "kind"],
)
FALLBACK_STRATEGIES = Counter(
    "ls_fallback_strategy_total",
    "Fallback chain strategy outcomes",
    ["strategy", "outcome"],
)
MONITOR_POLLS = Counter(
    "ls_monitor_polls_total",
    "Live monitor poll iterations",
    ["outcome"],
)
EVENTS_DELIVERED = Counter(
    "ls_events_delivered_total",
    "Deduplicated live events delivered to listeners",
    ["event_type"],
)
EVENTS_DROPPED = Counter(
    "ls_events_dropped_total",
    "Delivered events that could not be applied to a session",
    ["reason"],
)
DECODE_SKIPS = Counter(
    "ls_decode_skipped_records_total",
    "Malformed records skipped while decoding a response",
    ["record"],
)

# ── Histograms ──────────────────────────────────────────────────────────
PROVIDER_LATENCY = Histogram(
    "ls_provider_latency_seconds",
    "Data source request latency in seconds",
    ["provider"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
MONITOR_INTERVAL = Histogram(
    "ls_monitor_interval_seconds",
    "Computed polling interval for monitored matches",
    ["status"],
    buckets=(15, 30, 60, 90, 120, 180, 300, 600),
)

# ── Gauges ──────────────────────────────────────────────────────────────
CACHE_ENTRIES = Gauge(
    "ls_cache_entries",
    "Entries currently held by the result cache",
)
BUDGET_USAGE = Gauge(
    "ls_budget_calls_in_window",
    "Outbound calls recorded in the current budget window",
)
ACTIVE_MONITORS = Gauge(
    "ls_active_monitors",
    "Live monitors currently registered",
)


def start_metrics_server(port: int | None = None, settings: Settings | None = None) -> None:
    """Start the Prometheus metrics HTTP server."""
    settings = settings or get_settings()
    if not settings.metrics_enabled:
        return
    metrics_port = port or settings.metrics_port
    try:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)
    except OSError as exc:
        logger.warning("metrics_server_failed", error=str(exc), port=metrics_port)
