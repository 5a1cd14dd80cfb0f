"""
Component wiring shared by the API process and Celery workers.

Builds the collaborators from Settings and composes them into a
ClaimDetectionPipeline. The hosted backend is optional: without Azure
OpenAI settings only the self-hosted classifier is available.
"""

from pathlib import Path
from typing import Optional

import structlog

from claim_detection.analysis.classifier import Classifier, CompletionClassifier
from claim_detection.analysis.report import ClaimReportGenerator
from claim_detection.config import Settings
from claim_detection.filtering.exclusion import ExclusionFilter
from claim_detection.llm.azure_openai_client import AzureOpenAIClient
from claim_detection.llm.base_client import BaseCompletionClient
from claim_detection.llm.exceptions import CompletionConfigurationError
from claim_detection.llm.local_client import LocalLLMClient
from claim_detection.llm.prompt_builder import PromptBuilder
from claim_detection.mail.graph_client import GraphMailSource
from claim_detection.models.enums import Backend
from claim_detection.pipeline.exceptions import UnsupportedBackendError
from claim_detection.pipeline.orchestrator import ClaimDetectionPipeline, ClaimStore
from claim_detection.validation.normalizer import ResponseNormalizer


logger = structlog.get_logger(__name__)


def build_prompt_builder(settings: Settings) -> PromptBuilder:
    return PromptBuilder(
        templates_dir=Path(settings.PROMPT_TEMPLATES_DIR),
        body_truncation_limit=settings.BODY_TRUNCATION_LIMIT,
        response_language=settings.RESPONSE_LANGUAGE,
    )


def build_hosted_client(settings: Settings) -> Optional[AzureOpenAIClient]:
    """Azure OpenAI client, or None when it is not configured."""
    try:
        return AzureOpenAIClient(
            endpoint=settings.AZURE_OPENAI_ENDPOINT,
            api_key=settings.AZURE_OPENAI_API_KEY,
            deployment=settings.AZURE_OPENAI_DEPLOYMENT_NAME,
            api_version=settings.AZURE_OPENAI_API_VERSION,
            timeout=settings.COMPLETION_TIMEOUT,
            max_retries=settings.COMPLETION_MAX_RETRIES,
        )
    except CompletionConfigurationError as e:
        logger.warning("Hosted backend disabled", reason=e.message, missing=e.details.get("missing"))
        return None


def build_local_client(settings: Settings) -> LocalLLMClient:
    return LocalLLMClient(
        base_url=settings.LOCAL_LLM_BASE_URL,
        timeout=settings.COMPLETION_TIMEOUT,
        max_retries=settings.COMPLETION_MAX_RETRIES,
        server_command=settings.LOCAL_LLM_SERVER_COMMAND,
        ready_retries=settings.LOCAL_LLM_READY_RETRIES,
        ready_interval=settings.LOCAL_LLM_READY_INTERVAL,
    )


def build_mail_source(settings: Settings) -> GraphMailSource:
    return GraphMailSource(
        base_url=settings.GRAPH_BASE_URL,
        access_token=settings.GRAPH_ACCESS_TOKEN,
        default_mailbox=settings.MAILBOX_EMAIL,
        page_size=settings.MAIL_PAGE_SIZE,
        timeout=settings.MAIL_TIMEOUT,
    )


def build_classifiers(
    settings: Settings,
    prompt_builder: PromptBuilder,
    hosted_client: Optional[AzureOpenAIClient],
    local_client: LocalLLMClient,
) -> dict[Backend, Classifier]:
    normalizer = ResponseNormalizer()
    classifiers: dict[Backend, Classifier] = {
        Backend.SELF_HOSTED: CompletionClassifier(
            client=local_client,
            prompt_builder=prompt_builder,
            normalizer=normalizer,
            backend=Backend.SELF_HOSTED,
            temperature=settings.LOCAL_LLM_TEMPERATURE,
            max_tokens=settings.LOCAL_LLM_MAX_TOKENS,
        ),
    }
    if hosted_client is not None:
        classifiers[Backend.HOSTED] = CompletionClassifier(
            client=hosted_client,
            prompt_builder=prompt_builder,
            normalizer=normalizer,
            backend=Backend.HOSTED,
            temperature=settings.HOSTED_TEMPERATURE,
            max_tokens=settings.HOSTED_MAX_TOKENS,
        )
    return classifiers


def build_pipeline(
    settings: Settings,
    store: ClaimStore,
    mail_source: GraphMailSource,
    prompt_builder: PromptBuilder,
    hosted_client: Optional[AzureOpenAIClient],
    local_client: LocalLLMClient,
) -> ClaimDetectionPipeline:
    return ClaimDetectionPipeline(
        mail_source=mail_source,
        store=store,
        exclusion_filter=ExclusionFilter.from_file(settings.EXCLUSION_LIST_PATH),
        classifiers=build_classifiers(settings, prompt_builder, hosted_client, local_client),
        settings=settings,
        backend_launcher=local_client,
    )


def build_report_generator(
    settings: Settings,
    backend: Backend,
    prompt_builder: PromptBuilder,
    hosted_client: Optional[AzureOpenAIClient],
    local_client: LocalLLMClient,
) -> ClaimReportGenerator:
    """
    Raises:
        UnsupportedBackendError: Hosted backend requested but not configured
    """
    client: Optional[BaseCompletionClient]
    if backend == Backend.HOSTED:
        client, temperature, max_tokens = hosted_client, settings.HOSTED_TEMPERATURE, settings.HOSTED_MAX_TOKENS
    else:
        client, temperature, max_tokens = local_client, settings.LOCAL_LLM_TEMPERATURE, settings.LOCAL_LLM_MAX_TOKENS

    if client is None:
        raise UnsupportedBackendError(f"Backend '{backend.value}' is not configured")

    return ClaimReportGenerator(
        client=client,
        prompt_builder=prompt_builder,
        temperature=temperature,
        max_tokens=max_tokens,
        claim_limit=settings.REPORT_CLAIM_LIMIT,
    )
