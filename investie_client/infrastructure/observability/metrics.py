"""Prometheus metrics for API latency, account switching, project lifecycle and investments"""

from prometheus_client import Counter, Histogram

# Platform API metrics
api_request_duration_histogram = Histogram(
    "investie_api_request_duration_seconds",
    "Platform API round-trip time",
    ["method", "endpoint", "status"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

api_failure_counter = Counter(
    "investie_api_failures_total",
    "Platform API calls that raised",
    ["kind"],  # auth | forbidden | not_found | validation | conflict | network | server
)

# Account metrics
account_switch_counter = Counter(
    "investie_account_switch_total",
    "Account switch attempts",
    ["outcome"],  # switched | noop | missing | failed
)

snapshot_fallback_counter = Counter(
    "investie_snapshot_fallback_total",
    "Reads served from the last cached snapshot after a network failure",
    ["scope"],
)

# Project lifecycle metrics
project_transition_counter = Counter(
    "investie_project_transition_total",
    "Confirmed project lifecycle transitions",
    ["event"],  # create | publish | approve | reject | complete | close | delete
)

# Investment metrics
investment_submission_counter = Counter(
    "investie_investment_submission_total",
    "Investment submissions by outcome",
    ["outcome"],  # submitted | duplicate | self_investment | not_open | failed
)

investment_resolution_counter = Counter(
    "investie_investment_resolution_total",
    "Admin decisions on investment requests",
    ["decision"],  # approve | reject
)

# Notification metrics
notification_poll_failures_counter = Counter(
    "investie_notification_poll_failures_total",
    "Failed notification refreshes",
)


def record_submission(outcome: str) -> None:
    """Record an investment submission attempt"""
    investment_submission_counter.labels(outcome=outcome).inc()
