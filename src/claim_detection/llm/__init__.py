"""
Completion Service layer.

Two interchangeable chat-completion clients (hosted Azure OpenAI and the
self-hosted local server) share BaseCompletionClient; PromptBuilder renders
the Jinja2 prompt templates shipped in prompts/.
"""

from claim_detection.llm.azure_openai_client import AzureOpenAIClient
from claim_detection.llm.base_client import BaseCompletionClient
from claim_detection.llm.exceptions import (
    BackendNotReadyError,
    CompletionClientError,
    CompletionConfigurationError,
    CompletionConnectionError,
    CompletionRateLimitError,
    CompletionRequestError,
    CompletionTimeoutError,
)
from claim_detection.llm.local_client import LocalLLMClient
from claim_detection.llm.prompt_builder import PromptBuilder

__all__ = [
    "AzureOpenAIClient",
    "BackendNotReadyError",
    "BaseCompletionClient",
    "CompletionClientError",
    "CompletionConfigurationError",
    "CompletionConnectionError",
    "CompletionRateLimitError",
    "CompletionRequestError",
    "CompletionTimeoutError",
    "LocalLLMClient",
    "PromptBuilder",
]
