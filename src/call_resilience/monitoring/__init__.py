"""Monitoring and metrics instrumentation for the call-resilience layer.

Exports custom Prometheus metrics for operational monitoring and alerting.
"""

from call_resilience.monitoring.metrics import (
    auth_rejections_total,
    circuit_fallbacks_total,
    circuit_open,
    circuit_transitions_total,
    fallback_content_total,
    llm_latency_seconds,
    llm_tokens_total,
    retry_attempts_total,
    retry_outcomes_total,
)

__all__ = [
    "retry_attempts_total",
    "retry_outcomes_total",
    "circuit_transitions_total",
    "circuit_open",
    "circuit_fallbacks_total",
    "auth_rejections_total",
    "fallback_content_total",
    "llm_latency_seconds",
    "llm_tokens_total",
]
