"""
HTTP routes: trigger processing, query results, manage the self-hosted
backend and report health.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, status
from fastapi.responses import JSONResponse

from claim_detection.api.dependencies import (
    get_hosted_client,
    get_local_client,
    get_pipeline,
    get_prompt_builder,
    get_repository,
    get_settings,
)
from claim_detection.api.models import (
    BackendStatusResponse,
    BackendStopResponse,
    HealthResponse,
    ProcessResponse,
    ReportResponse,
)
from claim_detection.bootstrap import build_report_generator
from claim_detection.config import Settings
from claim_detection.llm.azure_openai_client import AzureOpenAIClient
from claim_detection.llm.local_client import LocalLLMClient
from claim_detection.llm.prompt_builder import PromptBuilder
from claim_detection.models.classification import ClassificationRecord, MessageRecord
from claim_detection.models.enums import Backend, ClaimCategory, Severity
from claim_detection.models.run import (
    ClaimStats,
    ClassificationFilters,
    MessageFilters,
    ProcessingRun,
    ProcessOptions,
)
from claim_detection.persistence.repository import ClaimRepository
from claim_detection.pipeline.orchestrator import ClaimDetectionPipeline

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/process",
    response_model=ProcessResponse,
    summary="Run the claim detection pipeline once",
    description="""
    Retrieve candidate messages, skip already-recorded ones, apply exclusion
    rules, classify the rest and record a processing run.

    Selection: an explicit date range (days / hours / start_date / end_date)
    wins over incremental retrieval since the last successful run.
    Returns status "skipped" if a run is already in flight.
    """,
    responses={
        200: {"description": "Run completed or skipped"},
        502: {"description": "Mail source or completion service failed"},
        503: {"description": "Self-hosted backend not ready"},
    },
    tags=["processing"],
)
async def process_messages(
    options: Optional[ProcessOptions] = Body(default=None),
    pipeline: ClaimDetectionPipeline = Depends(get_pipeline),
) -> ProcessResponse:
    result = await pipeline.process(options or ProcessOptions())
    return ProcessResponse(
        status="skipped" if result.skipped else "completed",
        processed=result.processed,
        claims_detected=result.claims_detected,
    )


@router.get(
    "/claims",
    response_model=list[ClassificationRecord],
    summary="List classifications (claims only by default)",
    tags=["reporting"],
)
async def list_claims(
    category: Optional[ClaimCategory] = None,
    severity: Optional[Severity] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    min_confidence: Optional[int] = Query(default=None, ge=0, le=100),
    sender: Optional[str] = None,
    claims_only: bool = True,
    limit: Optional[int] = Query(default=None, ge=1),
    repository: ClaimRepository = Depends(get_repository),
) -> list[ClassificationRecord]:
    return await repository.list_classifications(ClassificationFilters(
        claims_only=claims_only,
        category=category,
        severity=severity,
        date_from=date_from,
        date_to=date_to,
        min_confidence=min_confidence,
        sender=sender,
        limit=limit,
    ))


@router.get(
    "/messages",
    response_model=list[MessageRecord],
    summary="Processing history: recorded messages with their verdict",
    tags=["reporting"],
)
async def list_messages(
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    sender: Optional[str] = None,
    limit: int = Query(default=50, ge=1),
    repository: ClaimRepository = Depends(get_repository),
) -> list[MessageRecord]:
    return await repository.list_messages(MessageFilters(
        date_from=date_from,
        date_to=date_to,
        sender=sender,
        limit=limit,
    ))


@router.get("/stats", response_model=ClaimStats, summary="Claim statistics", tags=["reporting"])
async def claim_stats(repository: ClaimRepository = Depends(get_repository)) -> ClaimStats:
    return await repository.get_claim_stats()


@router.get("/runs", response_model=list[ProcessingRun], summary="Recent processing runs", tags=["reporting"])
async def recent_runs(
    limit: int = Query(default=20, ge=1, le=1000),
    repository: ClaimRepository = Depends(get_repository),
) -> list[ProcessingRun]:
    return await repository.recent_runs(limit)


@router.post(
    "/report",
    response_model=ReportResponse,
    summary="Generate a narrative claim report",
    tags=["reporting"],
)
async def claim_report(
    backend: Optional[Backend] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    repository: ClaimRepository = Depends(get_repository),
    prompt_builder: PromptBuilder = Depends(get_prompt_builder),
    hosted_client: Optional[AzureOpenAIClient] = Depends(get_hosted_client),
    local_client: LocalLLMClient = Depends(get_local_client),
    settings: Settings = Depends(get_settings),
) -> ReportResponse:
    selected_backend = backend or Backend(settings.DEFAULT_BACKEND)
    generator = build_report_generator(settings, selected_backend, prompt_builder, hosted_client, local_client)

    claims = await repository.list_classifications(ClassificationFilters(
        date_from=date_from,
        date_to=date_to,
        limit=settings.REPORT_CLAIM_LIMIT,
    ))
    if claims and selected_backend == Backend.SELF_HOSTED:
        await local_client.ensure_running()

    report = await generator.generate(claims)
    logger.info("Claim report served", extra={"backend": selected_backend.value, "claims": len(claims)})
    return ReportResponse(backend=selected_backend, claims_count=len(claims), report=report)


@router.get(
    "/backend/status",
    response_model=BackendStatusResponse,
    summary="Self-hosted backend status",
    tags=["backend"],
)
async def backend_status(local_client: LocalLLMClient = Depends(get_local_client)) -> BackendStatusResponse:
    health = await local_client.check_health()
    return BackendStatusResponse(
        status=health.status,
        model_loaded=health.model_loaded,
        managed=local_client.is_managed,
        message=health.message,
    )


@router.post(
    "/backend/start",
    response_model=BackendStatusResponse,
    summary="Start the self-hosted backend and wait until the model is loaded",
    responses={503: {"description": "Backend did not become ready"}},
    tags=["backend"],
)
async def backend_start(local_client: LocalLLMClient = Depends(get_local_client)) -> BackendStatusResponse:
    health = await local_client.ensure_running()
    return BackendStatusResponse(
        status=health.status,
        model_loaded=health.model_loaded,
        managed=local_client.is_managed,
        message=health.message,
    )


@router.post(
    "/backend/stop",
    response_model=BackendStopResponse,
    summary="Stop the self-hosted backend if this service started it",
    tags=["backend"],
)
async def backend_stop(local_client: LocalLLMClient = Depends(get_local_client)) -> BackendStopResponse:
    return BackendStopResponse(stopped=await local_client.stop_server())


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="""
    Check the claim store (Redis) and both completion backends.

    Redis is critical (503 when unreachable); backends only degrade status.
    """,
    responses={
        200: {"description": "Healthy or degraded"},
        503: {"description": "Claim store unreachable"},
    },
    tags=["health"],
)
async def health_check(
    repository: ClaimRepository = Depends(get_repository),
    hosted_client: Optional[AzureOpenAIClient] = Depends(get_hosted_client),
    local_client: LocalLLMClient = Depends(get_local_client),
    settings: Settings = Depends(get_settings),
):
    services = {}

    try:
        await repository.ping()
        services["redis"] = "ok"
    except Exception as e:
        services["redis"] = f"unreachable ({type(e).__name__})"

    services["hosted"] = "configured" if hosted_client is not None else "not_configured"

    local_health = await local_client.check_health()
    services["self_hosted"] = "ok" if local_health.is_ready else "unavailable"

    if services["redis"] != "ok":
        health_status, status_code = "unhealthy", status.HTTP_503_SERVICE_UNAVAILABLE
    elif hosted_client is None and not local_health.is_ready:
        health_status, status_code = "degraded", status.HTTP_200_OK
    else:
        health_status, status_code = "healthy", status.HTTP_200_OK

    logger.info("Health check", extra={"status": health_status, "services": services})

    response = HealthResponse(
        status=health_status,
        version=settings.APP_VERSION,
        services=services,
    )
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))
