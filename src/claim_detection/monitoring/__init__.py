"""Monitoring and metrics instrumentation for the claim detection service.

Exports custom Prometheus metrics for operational monitoring and alerting.
"""

from claim_detection.monitoring.metrics import (
    classifications_total,
    completion_latency_seconds,
    completion_tokens_total,
    messages_total,
    normalization_failures_total,
    pipeline_run_duration_seconds,
    pipeline_runs_total,
)

__all__ = [
    "classifications_total",
    "completion_latency_seconds",
    "completion_tokens_total",
    "messages_total",
    "normalization_failures_total",
    "pipeline_run_duration_seconds",
    "pipeline_runs_total",
]
