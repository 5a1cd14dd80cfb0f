"""
Classification result models.

ClassificationResult is always fully populated: every constructor path
(normal parse, parse failure, analysis failure, exclusion) yields safe
defaults for all fields.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from claim_detection.models.enums import ClaimCategory, Severity


EXCLUDED_REASON = "Email excluded from claim detection due to sender/subject filters"
EXCLUDED_SUMMARY = "Excluded from analysis"


class ClassificationResult(BaseModel):
    """Complaint-detection verdict for exactly one message."""
    
    is_claim: bool = Field(default=False)
    confidence: int = Field(default=0, ge=0, le=100)
    category: ClaimCategory = Field(default=ClaimCategory.OTHER)
    severity: Severity = Field(default=Severity.MEDIUM)
    reason: str = Field(default="")
    keywords: list[str] = Field(default_factory=list)
    summary: str = Field(default="")
    raw_response: Optional[str] = Field(
        default=None,
        description="Original model text (for audit)"
    )
    parse_error: Optional[str] = Field(
        default=None,
        description="Why the model text could not be used, if it could not"
    )
    error: Optional[str] = Field(
        default=None,
        description="Analysis failure message (completion call failed)"
    )
    
    @classmethod
    def excluded(cls) -> "ClassificationResult":
        """Synthetic verdict for messages exempted by the Exclusion Filter."""
        return cls(
            is_claim=False,
            confidence=0,
            category=ClaimCategory.EXCLUDED,
            severity=Severity.NONE,
            reason=EXCLUDED_REASON,
            keywords=[],
            summary=EXCLUDED_SUMMARY,
        )
    
    @classmethod
    def failed(cls, message: str) -> "ClassificationResult":
        """Error-marker verdict for a message whose analysis call failed."""
        return cls(
            is_claim=False,
            confidence=0,
            reason=f"Analysis error: {message}",
            error=message,
        )


class ClassificationRecord(BaseModel):
    """A persisted classification joined with its message fields (reporting view)."""
    
    id: int
    message_id: int
    external_id: str
    subject: str = ""
    sender_address: str = ""
    sender_name: str = ""
    received_at: Optional[datetime] = None
    body_text: str = ""
    is_claim: bool
    confidence: int
    category: ClaimCategory
    severity: Severity
    reason: str = ""
    keywords: list[str] = Field(default_factory=list)
    summary: str = ""
    analyzed_at: datetime


class MessageRecord(BaseModel):
    """A persisted message with its verdict, if any (processing history view)."""
    
    id: int
    external_id: str
    internet_message_id: Optional[str] = None
    subject: str = ""
    sender_address: str = ""
    sender_name: str = ""
    received_at: Optional[datetime] = None
    body_text: str = ""
    mailbox: Optional[str] = None
    created_at: datetime
    is_claim: Optional[bool] = None
    confidence: Optional[int] = None
    category: Optional[ClaimCategory] = None
    severity: Optional[Severity] = None
