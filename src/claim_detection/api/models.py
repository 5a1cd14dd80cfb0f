"""
API-specific request and response models for FastAPI endpoints.

Domain models (ProcessOptions, ClassificationRecord, ProcessingRun, ...)
are returned as-is where they fit; these wrap them with status metadata.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from claim_detection.models.enums import Backend


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProcessResponse(BaseModel):
    """Response for the process endpoint."""

    status: str = Field(
        description="Run outcome",
        examples=["completed", "skipped"]
    )
    processed: int = Field(ge=0, description="Messages newly recorded in this run")
    claims_detected: int = Field(ge=0)


class ReportResponse(BaseModel):
    """Response for the claim report endpoint."""

    backend: Backend
    claims_count: int = Field(ge=0, description="Claims included in the report")
    report: str
    generated_at: datetime = Field(default_factory=_utcnow)


class BackendStatusResponse(BaseModel):
    """Self-hosted backend status."""

    status: str = Field(examples=["ok", "error"])
    model_loaded: bool
    managed: bool = Field(description="True if this process started the server")
    message: Optional[str] = None


class BackendStopResponse(BaseModel):
    stopped: bool = Field(description="False when there was no managed server to stop")


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    status: str = Field(
        description="Overall health status",
        examples=["healthy", "degraded", "unhealthy"]
    )
    version: str = Field(examples=["0.1.0"])
    services: dict[str, str] = Field(
        description="Service-specific health status",
        examples=[{"redis": "ok", "hosted": "configured", "self_hosted": "unavailable"}]
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="Health check timestamp (UTC)"
    )
