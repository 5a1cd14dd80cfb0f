"""
FastAPI dependency injection for the claim detection service.

Expensive resources (HTTP clients, prompt templates, the pipeline) are
process-wide singletons. The pipeline in particular MUST be a singleton:
its single-flight guard only protects runs that share the instance.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends

from claim_detection.bootstrap import (
    build_hosted_client,
    build_local_client,
    build_mail_source,
    build_pipeline,
    build_prompt_builder,
)
from claim_detection.config import Settings, settings
from claim_detection.llm.azure_openai_client import AzureOpenAIClient
from claim_detection.llm.local_client import LocalLLMClient
from claim_detection.llm.prompt_builder import PromptBuilder
from claim_detection.mail.graph_client import GraphMailSource
from claim_detection.persistence.redis_client import RedisClient
from claim_detection.persistence.repository import ClaimRepository
from claim_detection.pipeline.orchestrator import ClaimDetectionPipeline


@lru_cache()
def get_settings() -> Settings:
    """
    Get settings singleton.

    Returns:
        Settings instance
    """
    return settings


@lru_cache()
def get_prompt_builder() -> PromptBuilder:
    """
    Get singleton prompt builder.

    Loads Jinja2 templates once and reuses them across requests.
    """
    return build_prompt_builder(get_settings())


@lru_cache()
def get_hosted_client() -> Optional[AzureOpenAIClient]:
    """
    Get singleton Azure OpenAI client (None when not configured).

    The client maintains an internal connection pool.
    """
    return build_hosted_client(get_settings())


@lru_cache()
def get_local_client() -> LocalLLMClient:
    """Get singleton self-hosted client (owns the managed server process, if any)."""
    return build_local_client(get_settings())


@lru_cache()
def get_mail_source() -> GraphMailSource:
    return build_mail_source(get_settings())


def get_repository(settings: Settings = Depends(get_settings)) -> ClaimRepository:
    """
    Create claim repository over the pooled async Redis client.

    Args:
        settings: Application settings (injected)

    Returns:
        ClaimRepository instance
    """
    return ClaimRepository(RedisClient.get_async_client(settings), settings)


@lru_cache()
def get_pipeline() -> ClaimDetectionPipeline:
    """Get the process-wide pipeline singleton."""
    current = get_settings()
    return build_pipeline(
        settings=current,
        store=ClaimRepository(RedisClient.get_async_client(current), current),
        mail_source=get_mail_source(),
        prompt_builder=get_prompt_builder(),
        hosted_client=get_hosted_client(),
        local_client=get_local_client(),
    )
