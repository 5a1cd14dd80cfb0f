"""
Classifier capability and its completion-backed implementation.

The pipeline only depends on the Classifier protocol; one
CompletionClassifier per backend (hosted, self-hosted) is composed at
startup and selected per run.
"""

from typing import Protocol, runtime_checkable

import structlog

from claim_detection.llm.base_client import BaseCompletionClient
from claim_detection.llm.prompt_builder import PromptBuilder
from claim_detection.models.classification import ClassificationResult
from claim_detection.models.enums import Backend
from claim_detection.monitoring.metrics import classifications_total
from claim_detection.validation.normalizer import ResponseNormalizer


logger = structlog.get_logger(__name__)


@runtime_checkable
class Classifier(Protocol):
    """Anything that can turn one message into a ClassificationResult."""

    async def classify(
        self,
        text: str,
        subject: str,
        sender: str,
        *,
        debug: bool = False,
    ) -> ClassificationResult:
        ...


class CompletionClassifier:
    """
    Classify a message with one Completion Service backend.

    Transport errors propagate to the caller (the Analysis Dispatcher turns
    them into error-marker results); malformed model text never does.
    """

    def __init__(
        self,
        client: BaseCompletionClient,
        prompt_builder: PromptBuilder,
        normalizer: ResponseNormalizer,
        backend: Backend,
        temperature: float,
        max_tokens: int,
    ):
        self.client = client
        self.prompt_builder = prompt_builder
        self.normalizer = normalizer
        self.backend = backend
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def classify(
        self,
        text: str,
        subject: str,
        sender: str,
        *,
        debug: bool = False,
    ) -> ClassificationResult:
        request = self.prompt_builder.build_analysis_request(
            text,
            subject,
            sender,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

        if debug:
            logger.info(
                "Classification request",
                backend=self.backend.value,
                subject=subject,
                sender=sender,
                text_preview=text[:200]
            )

        response = await self.client.complete(request)
        result = self.normalizer.normalize(response.content, debug=debug)

        classifications_total.labels(
            category=result.category.value,
            is_claim=str(result.is_claim).lower()
        ).inc()

        if result.is_claim:
            logger.info(
                "Claim detected",
                backend=self.backend.value,
                confidence=result.confidence,
                category=result.category.value,
                severity=result.severity.value,
                keywords=result.keywords
            )
        else:
            logger.info("No claim detected", backend=self.backend.value, confidence=result.confidence)

        return result
