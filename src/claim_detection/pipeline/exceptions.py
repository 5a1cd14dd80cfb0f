"""
Exceptions raised by the processing pipeline.

Only fatal run errors cross the pipeline boundary; per-message failures are
aggregated into the ProcessingRun error text instead.
"""


class PipelineError(Exception):
    """Base exception for fatal run errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class SourceSelectionError(PipelineError):
    """Listing the candidate batch from the Mail Source failed."""
    pass


class UnsupportedBackendError(PipelineError):
    """No classifier is configured for the requested backend."""
    pass
