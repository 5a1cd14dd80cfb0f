"""
Processing run models: options accepted by process(), its result, the
persisted ProcessingRun record, and reporting filters.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from claim_detection.models.enums import Backend, ClaimCategory, RunStatus, Severity


class ProcessOptions(BaseModel):
    """
    Options for one pipeline invocation.
    
    Selection precedence: an explicit date range (days/hours/start/end) wins
    over incremental retrieval; a mailbox may be combined with either.
    """
    
    days: Optional[int] = Field(default=None, ge=1, description="Look back N days")
    hours: Optional[int] = Field(default=None, ge=1, description="Look back N hours")
    start_date: Optional[datetime] = Field(default=None)
    end_date: Optional[datetime] = Field(default=None)
    mailbox: Optional[str] = Field(
        default=None,
        description="Alternate mailbox address (default mailbox when omitted)"
    )
    concurrency: Optional[int] = Field(
        default=None,
        ge=1,
        description="Max concurrent completion calls (hosted backend only)"
    )
    debug: bool = Field(default=False, description="Verbose diagnostic tracing")
    backend: Backend = Field(default=Backend.HOSTED)
    
    @model_validator(mode="after")
    def _check_range(self) -> "ProcessOptions":
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self
    
    @property
    def has_date_range(self) -> bool:
        return any(
            v is not None for v in (self.days, self.hours, self.start_date, self.end_date)
        )


class ProcessResult(BaseModel):
    """Counts returned to the caller of process()."""
    
    processed: int = 0
    claims_detected: int = 0
    skipped: bool = Field(
        default=False,
        description="True when the call was refused because a run was in flight"
    )


class ProcessingRun(BaseModel):
    """One execution record of the pipeline."""
    
    id: Optional[int] = None
    started_at: datetime
    completed_at: datetime
    messages_processed: int = Field(default=0, ge=0)
    claims_detected: int = Field(default=0, ge=0)
    error: Optional[str] = None
    status: RunStatus


class ClassificationFilters(BaseModel):
    """Filters for listing classifications (reporting)."""
    
    claims_only: bool = True
    category: Optional[ClaimCategory] = None
    severity: Optional[Severity] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    min_confidence: Optional[int] = Field(default=None, ge=0, le=100)
    sender: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=1)


class MessageFilters(BaseModel):
    """Filters for the processing history listing."""
    
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    sender: Optional[str] = None
    limit: int = Field(default=50, ge=1)


class ClaimStats(BaseModel):
    """Aggregate claim statistics."""
    
    total_claims: int = 0
    total_messages: int = 0
    claims_by_category: dict[str, int] = Field(default_factory=dict)
    claims_by_severity: dict[str, int] = Field(default_factory=dict)
    recent_claims: int = Field(default=0, description="Claims received in the last 7 days")
