"""
Data models for the claim detection service.

- enums: Closed taxonomies (category, severity) and lifecycle enums
- message: Mail Source messages and date ranges
- classification: ClassificationResult and reporting records
- run: ProcessOptions, ProcessingRun, filters and stats
- llm_models: Completion request/response shapes
"""

from claim_detection.models.classification import (
    ClassificationRecord,
    ClassificationResult,
    MessageRecord,
)
from claim_detection.models.enums import (
    Backend,
    ClaimCategory,
    PipelineState,
    RunStatus,
    SelectionStrategy,
    Severity,
)
from claim_detection.models.llm_models import (
    BackendHealth,
    CompletionRequest,
    CompletionResponse,
)
from claim_detection.models.message import DateRange, MessageDetail, MessageSummary
from claim_detection.models.run import (
    ClaimStats,
    ClassificationFilters,
    MessageFilters,
    ProcessingRun,
    ProcessOptions,
    ProcessResult,
)

__all__ = [
    "Backend",
    "BackendHealth",
    "ClaimCategory",
    "ClaimStats",
    "ClassificationFilters",
    "ClassificationRecord",
    "ClassificationResult",
    "CompletionRequest",
    "CompletionResponse",
    "DateRange",
    "MessageDetail",
    "MessageFilters",
    "MessageRecord",
    "MessageSummary",
    "PipelineState",
    "ProcessingRun",
    "ProcessOptions",
    "ProcessResult",
    "RunStatus",
    "SelectionStrategy",
    "Severity",
]
