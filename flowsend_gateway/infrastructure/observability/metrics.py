"""Prometheus metrics for monitoring banking actions, ramp sessions, and upstream calls"""

from prometheus_client import Counter, Histogram

# Orchestration metrics
action_counter = Counter(
    "flowsend_banking_action_total",
    "Banking actions handled by the orchestrator",
    ["action", "state"],  # state: awaiting_params | awaiting_confirmation | succeeded | failed | ready
)

classifier_fallback_counter = Counter(
    "flowsend_classifier_fallback_total",
    "Classifications that degraded to no banking intent",
    ["reason"],  # unavailable | unparseable | unknown_action
)

# Ramp metrics
token_issuance_counter = Counter(
    "flowsend_token_issuance_total",
    "Session token issuance attempts",
    ["outcome"],  # issued | failed | not_configured
)

ramp_url_counter = Counter(
    "flowsend_ramp_url_total",
    "Hosted ramp URLs generated",
    ["direction", "mode"],  # onramp | offramp, secure | fallback
)

# Ledger API metrics
ledger_latency_histogram = Histogram(
    "ledger_request_latency_seconds",
    "Ledger API response time",
    ["operation"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

ledger_failure_counter = Counter(
    "ledger_failures_total",
    "Failed ledger API calls",
    ["operation"],
)

# Sponsorship metrics
sponsorship_decision_counter = Counter(
    "flowsend_sponsorship_decision_total",
    "Sponsorship eligibility decisions",
    ["eligible"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_action(action_type: str, state: str) -> None:
    """Record orchestration outcome per action type"""
    action_counter.labels(action=action_type, state=state).inc()


def record_ramp_url(direction: str, mode: str) -> None:
    ramp_url_counter.labels(direction=direction, mode=mode).inc()


def record_sponsorship(eligible: bool) -> None:
    sponsorship_decision_counter.labels(eligible="true" if eligible else "false").inc()
