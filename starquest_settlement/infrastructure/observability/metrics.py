"""Prometheus metrics for settlement outcomes, interest, and ledger performance"""

from prometheus_client import Counter, Histogram

# Settlement metrics
family_settlement_counter = Counter(
    "starquest_family_settlement_total",
    "Families handled by the settlement batch",
    ["state"],  # skipped | settlement_failed | notified | notification_failed | notification_skipped
)

child_settlement_counter = Counter(
    "starquest_child_settlement_total",
    "Children handled by the settlement processor",
    ["outcome"],  # settled | skipped | failed
)

interest_charged_counter = Counter(
    "starquest_interest_charged_stars_total",
    "Interest charged across all settlements, in stars",
)

credit_limit_adjustment_counter = Counter(
    "starquest_credit_limit_adjustment_total",
    "Credit limit changes applied at settlement",
    ["direction"],  # up | down | none
)

batch_duration_histogram = Histogram(
    "starquest_settlement_batch_seconds",
    "Settlement batch wall time",
    buckets=[0.5, 1.0, 5.0, 15.0, 30.0, 60.0, 300.0],
)

# Notification metrics
notification_counter = Counter(
    "starquest_settlement_notification_total",
    "Settlement notices by outcome",
    ["status"],  # sent | failed | skipped
)

# Ledger API metrics
ledger_latency_histogram = Histogram(
    "ledger_request_latency_seconds",
    "Points ledger response time",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ledger_failure_counter = Counter(
    "ledger_request_failures_total",
    "Failed points ledger calls (per attempt)",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_child_settlement(interest: int, credit_limit_adjustment: int) -> None:
    """Record interest and limit direction for one settled child"""
    child_settlement_counter.labels(outcome="settled").inc()
    interest_charged_counter.inc(interest)

    if credit_limit_adjustment > 0:
        direction = "up"
    elif credit_limit_adjustment < 0:
        direction = "down"
    else:
        direction = "none"

    credit_limit_adjustment_counter.labels(direction=direction).inc()
