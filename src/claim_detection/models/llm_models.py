"""
Completion-layer data models for the request/response cycle.

These models are internal to the llm package and abstract the shape of the
hosted and self-hosted chat-completion endpoints.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class CompletionRequest(BaseModel):
    """
    Standardized completion request sent to any client implementation.
    """
    model_config = ConfigDict(frozen=True)
    
    system_prompt: str = Field(..., description="System message")
    user_prompt: str = Field(..., description="User message")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="Sampling temperature")
    max_tokens: int = Field(default=2000, ge=1, le=32768, description="Maximum tokens to generate")


class CompletionResponse(BaseModel):
    """
    Raw completion text plus metadata for logging.
    
    content may be empty: deciding what an empty answer means is the
    Response Normalizer's job, not the transport's.
    """
    model_config = ConfigDict(frozen=True)
    
    content: str = Field(default="", description="Generated text")
    model: Optional[str] = Field(default=None, description="Model reported by the server")
    finish_reason: Optional[str] = Field(default=None)
    prompt_tokens: Optional[int] = Field(default=None)
    completion_tokens: Optional[int] = Field(default=None)
    latency_ms: int = Field(default=0, ge=0)
    raw_metadata: Dict[str, Any] = Field(default_factory=dict)


class BackendHealth(BaseModel):
    """Health probe payload of the self-hosted backend."""
    
    status: str = Field(default="error")
    model_loaded: bool = Field(default=False)
    message: Optional[str] = Field(default=None)
    
    @property
    def is_ready(self) -> bool:
        return self.status == "ok" and self.model_loaded
