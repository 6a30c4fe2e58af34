"""Monitoring configuration for vocabquest."""
from prometheus_client import Counter, Gauge, Histogram, start_http_server

# Challenge adapter metrics
adapter_calls = Counter(
    "vocabquest_adapter_calls_total",
    "Total number of challenge adapter calls",
    ["session_type", "outcome"],
)

adapter_response_time = Histogram(
    "vocabquest_adapter_response_seconds",
    "Duration of challenge adapter calls in seconds",
    ["session_type"],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0],
)

adapter_available = Gauge(
    "vocabquest_adapter_available",
    "Whether a challenge adapter is considered available (advisory)",
    ["session_type"],
)

# Session metrics
sessions_started = Counter(
    "vocabquest_sessions_started_total",
    "Total number of challenge sessions started",
    ["session_type"],
)

sessions_completed = Counter(
    "vocabquest_sessions_completed_total",
    "Total number of challenge sessions finished",
    ["session_type", "reason"],
)

answers_recorded = Counter(
    "vocabquest_answers_total",
    "Total number of answers recorded",
    ["session_type", "correct"],
)

fallback_words = Counter(
    "vocabquest_fallback_words_total",
    "Number of times a session advanced without its adapter",
    ["session_type"],
)

# Migration metrics
id_migrations = Counter(
    "vocabquest_id_migrations_total",
    "Word id migration runs",
    ["language", "outcome"],
)

words_migrated = Counter(
    "vocabquest_words_migrated_total",
    "Progress records moved to module-qualified ids",
    ["language"],
)

# Storage metrics
storage_errors = Counter(
    "vocabquest_storage_errors_total",
    "Total number of storage errors",
    ["operation"],
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
