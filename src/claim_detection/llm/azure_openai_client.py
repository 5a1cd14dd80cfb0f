"""
Azure OpenAI client (hosted Completion Service).

POST {endpoint}/openai/deployments/{deployment}/chat/completions?api-version=...
authenticated with the `api-key` header.
"""

from typing import Any, Dict, Optional

import httpx
import structlog

from claim_detection.llm.base_client import BaseCompletionClient
from claim_detection.llm.exceptions import CompletionConfigurationError
from claim_detection.models.llm_models import CompletionRequest


logger = structlog.get_logger(__name__)


class AzureOpenAIClient(BaseCompletionClient):
    """
    Hosted chat-completion client for an Azure OpenAI deployment.

    Newer Azure deployments reject `max_tokens`; the limit is sent as
    `max_completion_tokens`.
    """

    backend_name = "hosted"

    def __init__(
        self,
        endpoint: str,
        api_key: Optional[str],
        deployment: str,
        api_version: str = "2024-02-15-preview",
        timeout: int = 60,
        max_retries: int = 2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        missing = [
            name for name, value in (
                ("AZURE_OPENAI_ENDPOINT", endpoint),
                ("AZURE_OPENAI_API_KEY", api_key),
                ("AZURE_OPENAI_DEPLOYMENT_NAME", deployment),
            ) if not value
        ]
        if missing:
            raise CompletionConfigurationError(
                "Azure OpenAI configuration incomplete",
                details={"missing": missing}
            )

        self.api_key = api_key
        self.deployment = deployment
        self.api_version = api_version
        super().__init__(endpoint, timeout=timeout, max_retries=max_retries, transport=transport)

    def _default_headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json", "api-key": self.api_key}

    def _completion_path(self) -> str:
        return f"/openai/deployments/{self.deployment}/chat/completions"

    def _completion_params(self) -> Dict[str, str]:
        return {"api-version": self.api_version}

    def _build_payload(self, request: CompletionRequest) -> Dict[str, Any]:
        return {
            "messages": [
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": request.user_prompt},
            ],
            "max_completion_tokens": request.max_tokens,
            "temperature": request.temperature,
        }
