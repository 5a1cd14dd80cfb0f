"""
Message models exchanged with the Mail Source.

A MessageDetail is immutable once fetched; the extracted plain text is
attached with model_copy() rather than by mutation.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MessageSummary(BaseModel):
    """Lightweight listing entry returned by list_messages()."""
    
    model_config = ConfigDict(frozen=True)
    
    id: str = Field(..., description="External (provider) message id")
    subject: str = Field(default="")
    received_at: Optional[datetime] = Field(default=None)
    mailbox: Optional[str] = Field(
        default=None,
        description="Mailbox the message was listed from (None = default mailbox)"
    )


class MessageDetail(BaseModel):
    """Full message as fetched from the Mail Source."""
    
    model_config = ConfigDict(frozen=True)
    
    id: str = Field(..., description="External (provider) message id, unique")
    internet_message_id: Optional[str] = Field(default=None)
    subject: str = Field(default="")
    sender_address: str = Field(default="")
    sender_name: str = Field(default="")
    to_recipients: list[str] = Field(default_factory=list)
    cc_recipients: list[str] = Field(default_factory=list)
    received_at: Optional[datetime] = Field(default=None)
    body_content: str = Field(default="", description="Raw body as delivered")
    body_content_type: str = Field(default="text", description="'html' or 'text'")
    has_attachments: bool = Field(default=False)
    mailbox: Optional[str] = Field(default=None)
    body_text: str = Field(
        default="",
        description="Plain text after markup stripping (set by the pipeline)"
    )
    
    @property
    def sender_display(self) -> str:
        """Sender formatted as 'Name <address>' for prompts."""
        return f"{self.sender_name} <{self.sender_address}>"


class DateRange(BaseModel):
    """Inclusive received-time window for explicit range selection."""
    
    model_config = ConfigDict(frozen=True)
    
    start: Optional[datetime] = None
    end: Optional[datetime] = None
