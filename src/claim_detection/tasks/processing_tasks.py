"""
Celery tasks for scheduled and on-demand pipeline runs.

Tasks accept JSON-serializable dicts and return dicts for compatibility
with Celery's JSON serialization. Each task runs its own event loop, so
every async collaborator (Redis, HTTP clients) is created and closed
inside that loop.
"""

import asyncio
from typing import Optional

import structlog

from claim_detection.bootstrap import (
    build_hosted_client,
    build_local_client,
    build_mail_source,
    build_pipeline,
    build_prompt_builder,
)
from claim_detection.config import Settings, settings
from claim_detection.models.enums import Backend
from claim_detection.models.run import ProcessOptions, ProcessResult
from claim_detection.persistence.redis_client import RedisClient
from claim_detection.persistence.repository import ClaimRepository
from claim_detection.tasks.celery_app import celery_app

logger = structlog.get_logger(__name__)


async def run_pipeline_once(options: ProcessOptions, app_settings: Settings) -> ProcessResult:
    """
    Build the pipeline for one run, execute it and release every resource.

    The self-hosted server, if this run started it, is stopped on exit.
    """
    redis_client = RedisClient.create_standalone_client(app_settings)
    hosted_client = build_hosted_client(app_settings)
    local_client = build_local_client(app_settings)
    mail_source = build_mail_source(app_settings)

    try:
        pipeline = build_pipeline(
            app_settings,
            store=ClaimRepository(redis_client, app_settings),
            mail_source=mail_source,
            prompt_builder=build_prompt_builder(app_settings),
            hosted_client=hosted_client,
            local_client=local_client,
        )
        return await pipeline.process(options)
    finally:
        if hosted_client is not None:
            await hosted_client.close()
        await local_client.close()
        await mail_source.close()
        await redis_client.aclose()


@celery_app.task(bind=True, name="process_mailbox")
def process_mailbox_task(self, options_dict: Optional[dict] = None) -> dict:
    """
    Run the claim detection pipeline once.

    Args:
        options_dict: ProcessOptions as dict; None means an incremental run
            on the default backend (the scheduled case)

    Returns:
        ProcessResult as dict
    """
    if options_dict is None:
        options = ProcessOptions(backend=Backend(settings.DEFAULT_BACKEND))
    else:
        options = ProcessOptions.model_validate(options_dict)

    structlog.contextvars.bind_contextvars(task_id=self.request.id)
    logger.info("Celery processing task started", backend=options.backend.value)

    try:
        result = asyncio.run(run_pipeline_once(options, settings))
    except Exception as e:
        logger.error("Celery processing task failed", error_type=type(e).__name__, error=str(e))
        raise
    finally:
        structlog.contextvars.unbind_contextvars("task_id")

    logger.info(
        "Celery processing task completed",
        processed=result.processed,
        claims_detected=result.claims_detected,
        skipped=result.skipped,
    )
    return result.model_dump()
