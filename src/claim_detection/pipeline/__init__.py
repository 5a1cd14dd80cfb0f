"""Processing pipeline (orchestrator) and its fatal-error types."""

from claim_detection.pipeline.exceptions import (
    PipelineError,
    SourceSelectionError,
    UnsupportedBackendError,
)
from claim_detection.pipeline.orchestrator import ClaimDetectionPipeline

__all__ = [
    "ClaimDetectionPipeline",
    "PipelineError",
    "SourceSelectionError",
    "UnsupportedBackendError",
]
