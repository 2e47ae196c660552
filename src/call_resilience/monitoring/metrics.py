"""Custom Prometheus metrics for the call-resilience layer.

These metrics are exposed at /metrics endpoint and should be scraped by Prometheus.
Alert rules should be configured for:
- circuit_transitions_total{to_state="OPEN"} (a dependency is failing)
- retry_outcomes_total{success="false"} (retries exhausted or failed fast)
- fallback_content_total (users are receiving placeholder content)
"""

from prometheus_client import Counter, Gauge, Histogram

# === Retry Metrics ===

retry_attempts_total = Counter(
    "retry_attempts_total",
    "Failed attempts by error kind and retry decision",
    ["error_kind", "decision"],
)
"""
Failed attempt counter.

Labels:
- error_kind: TEMPORARY, PERMANENT, RATE_LIMIT, UNKNOWN
- decision: retry (another attempt scheduled), abort (fail-fast), exhausted (no retries left)
"""

retry_outcomes_total = Counter(
    "retry_outcomes_total",
    "Completed retry sequences by success and attempt bucket",
    ["success", "retried"],
)
"""
Retry sequence outcome counter.

Labels:
- success: true / false
- retried: true if more than one attempt was needed
"""

# === Circuit Breaker Metrics ===

circuit_transitions_total = Counter(
    "circuit_transitions_total",
    "Circuit state transitions by circuit and target state",
    ["circuit", "to_state"],
)

circuit_open = Gauge(
    "circuit_open",
    "1 while the named circuit is OPEN, 0 otherwise",
    ["circuit"],
)

circuit_fallbacks_total = Counter(
    "circuit_fallbacks_total",
    "Fallback invocations by circuit and reason",
    ["circuit", "reason"],
)
"""
Fallback counter.

Labels:
- circuit: dependency name (e.g., openai-chat)
- reason: circuit_open (call short-circuited), operation_failed (call attempted and failed)
"""

# === Auth Gate Metrics ===

auth_rejections_total = Counter(
    "auth_rejections_total",
    "Requests rejected by the auth gate by reason",
    ["reason"],
)
"""
Labels:
- reason: missing_header, invalid_token, insufficient_role, rate_limited, verifier_error
"""

# === Response Metrics ===

fallback_content_total = Counter(
    "fallback_content_total",
    "Placeholder payloads served after generation failures",
    ["training_type"],
)

# === LLM Metrics ===

llm_latency_seconds = Histogram(
    "llm_latency_seconds",
    "Chat completion latency per HTTP round trip",
    ["model", "success"],
    buckets=[0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0],
)

llm_tokens_total = Counter(
    "llm_tokens_total",
    "Tokens reported by the provider",
    ["model", "token_type"],  # token_type: prompt, completion
)
