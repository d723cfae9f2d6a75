"""
Prometheus business metrics for the triage engine.

HTTP request metrics live in api.middleware.metrics; these cover the AI
side (provider attempts, latency, status transitions, scope violations)
and are exposed through the same /metrics endpoint.
"""

from prometheus_client import Counter, Histogram

AI_PROVIDER_CALLS = Counter(
    "triage_ai_provider_calls_total",
    "AI provider attempts",
    ["provider", "outcome"],
)
AI_LATENCY = Histogram(
    "triage_ai_duration_seconds",
    "AI provider latency",
    ["provider"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
)
TICKET_TRANSITIONS = Counter(
    "triage_ticket_status_transitions_total",
    "Ticket status transitions applied by the AI",
    ["from_status", "to_status"],
)
SCOPE_VIOLATIONS = Counter(
    "triage_scope_violations_total",
    "Out-of-scope AI replies",
    ["action"],
)
TRIAGE_TURNS = Counter(
    "triage_turns_total",
    "Processed triage turns",
    ["operation", "outcome"],
)


def record_provider_call(provider: str, outcome: str, seconds: float = 0.0):
    """Record one provider attempt; outcome is 'ok' or an AiErrorKind value."""
    AI_PROVIDER_CALLS.labels(provider=provider, outcome=outcome).inc()
    if outcome == "ok":
        AI_LATENCY.labels(provider=provider).observe(seconds)


def record_transition(from_status: str, to_status: str):
    """Record a status change applied by the controller."""
    TICKET_TRANSITIONS.labels(from_status=from_status, to_status=to_status).inc()


def record_scope_violation(action: str):
    """Record an out-of-scope reply ('none', 'warning' or 'closed')."""
    SCOPE_VIOLATIONS.labels(action=action).inc()


def record_turn(operation: str, outcome: str):
    """Record the outcome of one controller operation."""
    TRIAGE_TURNS.labels(operation=operation, outcome=outcome).inc()
