"""
FastAPI application entry point for the claim detection service.
"""

from pathlib import Path

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from claim_detection.api.dependencies import get_hosted_client, get_local_client, get_mail_source
from claim_detection.api.error_handlers import EXCEPTION_HANDLERS
from claim_detection.api.middleware import RequestTracingMiddleware
from claim_detection.api.routes import router
from claim_detection.config import settings
from claim_detection.logging_config import configure_logging
from claim_detection.persistence.redis_client import RedisClient

# Route app and library logs through structlog
configure_logging(settings)
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Claim Detection Service",
    description="Detects customer complaints in a mailbox with an LLM and records the verdicts",
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Request tracing middleware (must be first for request_id in all logs)
app.add_middleware(RequestTracingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for exc_class, handler in EXCEPTION_HANDLERS.items():
    app.add_exception_handler(exc_class, handler)

app.include_router(router)


@app.on_event("startup")
async def startup():
    """Application startup - verify configuration and resources."""
    logger.info(
        "Application startup",
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        default_backend=settings.DEFAULT_BACKEND,
        mailbox=settings.MAILBOX_EMAIL,
    )

    templates_dir = Path(settings.PROMPT_TEMPLATES_DIR)
    if templates_dir.exists():
        logger.info("Prompt templates directory found", path=str(templates_dir))
    else:
        logger.error("Prompt templates directory not found", path=str(templates_dir))

    if not Path(settings.EXCLUSION_LIST_PATH).exists():
        logger.warning("Exclusion list not found, no messages will be excluded", path=settings.EXCLUSION_LIST_PATH)

    if get_hosted_client() is None:
        logger.warning("Hosted backend not configured; only the self-hosted backend is available")

    logger.info("Application startup complete")


@app.on_event("shutdown")
async def shutdown():
    """Application shutdown - close clients and stop a managed backend."""
    logger.info("Application shutdown")

    hosted_client = get_hosted_client()
    if hosted_client is not None:
        await hosted_client.close()
    await get_local_client().close()
    await get_mail_source().close()
    await RedisClient.close_async_pool()

    logger.info("Application shutdown complete")


if settings.PROMETHEUS_ENABLED:
    Instrumentator().instrument(app).expose(app)


@app.get("/")
async def root():
    """Root endpoint with API documentation links."""
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/health",
        "metrics": "/metrics" if settings.PROMETHEUS_ENABLED else None,
    }


def run():
    """Console entry point (claim-detection-api)."""
    import uvicorn

    uvicorn.run(
        "claim_detection.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )


if __name__ == "__main__":
    run()
