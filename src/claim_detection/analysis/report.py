"""
Claim report generation.

Summarizes detected claims (category/severity breakdown, trends, priority
cases) with the selected Completion Service backend.
"""

from typing import Sequence

import structlog

from claim_detection.llm.base_client import BaseCompletionClient
from claim_detection.llm.exceptions import CompletionClientError
from claim_detection.llm.prompt_builder import PromptBuilder
from claim_detection.models.classification import ClassificationRecord


logger = structlog.get_logger(__name__)

NO_CLAIMS_REPORT = "No claims were detected."
REPORT_FAILED = "An error occurred while generating the report."


class ClaimReportGenerator:
    """Build a free-text summary report from a list of claims."""

    def __init__(
        self,
        client: BaseCompletionClient,
        prompt_builder: PromptBuilder,
        temperature: float,
        max_tokens: int,
        claim_limit: int = 100,
    ):
        self.client = client
        self.prompt_builder = prompt_builder
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.claim_limit = claim_limit

    async def generate(self, claims: Sequence[ClassificationRecord]) -> str:
        """
        Generate the report.

        Returns NO_CLAIMS_REPORT for an empty list and REPORT_FAILED when the
        completion call fails; never raises for transport errors.
        """
        if not claims:
            return NO_CLAIMS_REPORT

        selected = list(claims)[:self.claim_limit]
        request = self.prompt_builder.build_report_request(
            selected,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

        try:
            response = await self.client.complete(request)
        except CompletionClientError as e:
            logger.error(
                "Report generation failed",
                error=e.message,
                error_type=type(e).__name__,
                details=e.details
            )
            return REPORT_FAILED

        logger.info("Report generated", claims_count=len(selected), report_length=len(response.content))
        return response.content or REPORT_FAILED
