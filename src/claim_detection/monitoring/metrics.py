"""Custom Prometheus metrics for the claim detection service.

These metrics are exposed at /metrics endpoint and should be scraped by Prometheus.
Alert rules should be configured for:
- normalization_failures_total (model output drift or prompt regressions)
- pipeline_runs_total{status="error"} (failed or partially failed runs)
- completion_latency_seconds (backend saturation)
"""

from prometheus_client import Counter, Histogram

# === Classification Metrics ===

classifications_total = Counter(
    "classifications_total",
    "Total persisted classifications by category and claim flag",
    ["category", "is_claim"],
)
"""
Classification counter.

Labels:
- category: answer quality, answer delay, ..., other, not_claim, excluded
- is_claim: true / false
"""

normalization_failures_total = Counter(
    "normalization_failures_total",
    "Model responses that could not be used as-is",
    ["reason"],
)
"""
Response Normalizer fallbacks.

Labels:
- reason: empty_response, no_json, json_decode_error, unexpected_error

Alert thresholds:
- WARN: rate > 5% of classifications
"""

# === Completion Service Metrics ===

completion_latency_seconds = Histogram(
    "completion_latency_seconds",
    "Completion call latency in seconds",
    ["backend", "success"],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
)

completion_tokens_total = Counter(
    "completion_tokens_total",
    "Total tokens consumed by backend and type",
    ["backend", "token_type"],
)

# === Pipeline Metrics ===

pipeline_runs_total = Counter(
    "pipeline_runs_total",
    "Pipeline runs by terminal status",
    ["status"],
)

pipeline_run_duration_seconds = Histogram(
    "pipeline_run_duration_seconds",
    "Wall-clock duration of a pipeline run",
    buckets=[1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0, 600.0, 1800.0],
)

messages_total = Counter(
    "messages_total",
    "Messages touched by the pipeline by outcome",
    ["outcome"],
)
"""
Labels:
- outcome: recorded (newly saved), skipped (already recorded), excluded,
  empty (no text to analyze), failed (fetch/persist error)
"""
