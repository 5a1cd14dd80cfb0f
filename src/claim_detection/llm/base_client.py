"""
Abstract base client for chat-completion backends.

Defines the interface that both Completion Service variants (hosted Azure
OpenAI and the self-hosted local server) implement, so classifiers can be
composed with either one without knowing which.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
import structlog

from claim_detection.llm.exceptions import (
    CompletionClientError,
    CompletionConnectionError,
    CompletionRateLimitError,
    CompletionRequestError,
    CompletionTimeoutError,
)
from claim_detection.models.llm_models import CompletionRequest, CompletionResponse
from claim_detection.monitoring.metrics import completion_latency_seconds, completion_tokens_total


logger = structlog.get_logger(__name__)


def _token_count(value: Any) -> Optional[int]:
    """Usage counts are informational; anything but a non-negative int is dropped."""
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    return None


class BaseCompletionClient(ABC):
    """
    Abstract base class for chat-completion clients.

    Responsibilities:
    - Send a system+user prompt pair and return the raw generated text
    - Retry network errors, timeouts, 429 and 5xx with exponential backoff
    - Record latency and token metrics

    Does NOT handle:
    - Prompt construction (that's PromptBuilder's job)
    - Interpreting the model text (that's ResponseNormalizer's job)
    """

    backend_name: str = "unknown"

    def __init__(
        self,
        base_url: str,
        timeout: int = 60,
        max_retries: int = 2,
        connection_limits: Optional[httpx.Limits] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize base client.

        Args:
            base_url: Base URL of the completion endpoint
            timeout: Request timeout in seconds
            max_retries: Attempts for retryable errors (network, 429, 5xx)
            connection_limits: httpx connection pool limits
            transport: Optional httpx transport (tests inject MockTransport)
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self._connection_limits = connection_limits or httpx.Limits(
            max_keepalive_connections=5,
            max_connections=10,
            keepalive_expiry=30.0
        )
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        logger.info(
            "Initialized completion client",
            client_class=self.__class__.__name__,
            base_url=self.base_url,
            timeout=timeout,
            max_retries=self.max_retries
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                limits=self._connection_limits,
                headers=self._default_headers(),
                transport=self._transport,
                follow_redirects=True
            )
            logger.debug("Created new httpx AsyncClient", client_class=self.__class__.__name__)
        return self._client

    def _default_headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    @abstractmethod
    def _completion_path(self) -> str:
        """Path (relative to base_url) of the chat-completion endpoint."""

    @abstractmethod
    def _completion_params(self) -> Dict[str, str]:
        """Query parameters for the chat-completion endpoint."""

    @abstractmethod
    def _build_payload(self, request: CompletionRequest) -> Dict[str, Any]:
        """Format the request according to the provider's API."""

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """
        Send a chat completion and return the generated text.

        Request/response only, no streaming. An empty completion is returned
        as-is (content="") and left to the Response Normalizer.

        Raises:
            CompletionTimeoutError: Request exceeded timeout on every attempt
            CompletionConnectionError: Network errors on every attempt
            CompletionRateLimitError: 429 on every attempt
            CompletionRequestError: Non-retryable status or invalid envelope
        """
        payload = self._build_payload(request)
        start_time = time.time()

        logger.info(
            "Sending completion request",
            backend=self.backend_name,
            system_prompt_length=len(request.system_prompt),
            user_prompt_length=len(request.user_prompt),
            temperature=request.temperature,
            max_tokens=request.max_tokens
        )

        last_error: Optional[CompletionClientError] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                client = await self._get_client()
                response = await client.post(
                    self._completion_path(),
                    params=self._completion_params(),
                    json=payload,
                )
                response.raise_for_status()
                data = response.json()

            except httpx.TimeoutException as e:
                logger.warning(
                    "Completion request timeout",
                    backend=self.backend_name,
                    attempt=attempt,
                    timeout=self.timeout,
                    error=str(e)
                )
                last_error = CompletionTimeoutError(
                    f"Request timeout after {self.timeout}s",
                    details={"attempt": attempt, "timeout": self.timeout}
                )

            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                error_text = e.response.text
                logger.error(
                    "Completion HTTP error",
                    backend=self.backend_name,
                    status_code=status_code,
                    error_text=error_text[:500],
                    attempt=attempt
                )
                details = {"status": status_code, "error": error_text}
                if status_code == 429:
                    last_error = CompletionRateLimitError(
                        f"Rate limited by {self.backend_name} backend", details=details
                    )
                elif status_code >= 500:
                    last_error = CompletionRequestError(
                        f"Completion server error: {status_code}", details=details
                    )
                else:
                    self._observe_latency(start_time, success=False)
                    raise CompletionRequestError(
                        f"Completion client error: {status_code}", details=details
                    )

            except httpx.TransportError as e:
                logger.warning(
                    "Completion network error",
                    backend=self.backend_name,
                    attempt=attempt,
                    error=str(e)
                )
                last_error = CompletionConnectionError(
                    f"Network error: {e}",
                    details={"attempt": attempt, "error_type": type(e).__name__}
                )

            except ValueError as e:
                # response.json() failed
                self._observe_latency(start_time, success=False)
                logger.error("Failed to parse completion envelope", error=str(e))
                raise CompletionRequestError(
                    "Invalid JSON envelope from completion endpoint",
                    details={"parse_error": str(e)}
                )

            else:
                return self._to_response(data, start_time, attempt)

            if attempt < self.max_retries:
                backoff = 2 ** attempt
                logger.info("Retrying completion request", backoff_seconds=backoff, attempt=attempt)
                await asyncio.sleep(backoff)

        self._observe_latency(start_time, success=False)
        raise last_error

    def _to_response(self, data: Any, start_time: float, attempt: int) -> CompletionResponse:
        """Parse the OpenAI-shaped chat-completion envelope."""
        if not isinstance(data, dict):
            raise CompletionRequestError(
                "Unexpected completion envelope",
                details={"type": type(data).__name__}
            )

        choices = data.get("choices") or []
        usage = data.get("usage") or {}
        if not isinstance(choices, list) or not isinstance(usage, dict):
            raise CompletionRequestError(
                "Unexpected completion envelope",
                details={"choices": type(choices).__name__, "usage": type(usage).__name__}
            )

        first = choices[0] if choices else {}
        message = (first.get("message") or {}) if isinstance(first, dict) else None
        if not isinstance(message, dict):
            raise CompletionRequestError(
                "Unexpected completion choice",
                details={"choice": type(first).__name__}
            )

        content = message.get("content") or ""
        finish_reason = first.get("finish_reason")
        if not isinstance(finish_reason, str):
            finish_reason = None
        prompt_tokens = _token_count(usage.get("prompt_tokens"))
        completion_tokens = _token_count(usage.get("completion_tokens"))
        model = data.get("model") if isinstance(data.get("model"), str) else None
        latency_ms = int((time.time() - start_time) * 1000)

        logger.info(
            "Completion successful",
            backend=self.backend_name,
            model=model,
            latency_ms=latency_ms,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            finish_reason=finish_reason,
            attempt=attempt
        )

        completion_latency_seconds.labels(
            backend=self.backend_name, success="true"
        ).observe(latency_ms / 1000.0)
        if prompt_tokens:
            completion_tokens_total.labels(
                backend=self.backend_name, token_type="prompt"
            ).inc(prompt_tokens)
        if completion_tokens:
            completion_tokens_total.labels(
                backend=self.backend_name, token_type="completion"
            ).inc(completion_tokens)

        return CompletionResponse(
            content=content if isinstance(content, str) else str(content),
            model=model,
            finish_reason=finish_reason,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            latency_ms=latency_ms,
            raw_metadata={"id": data.get("id"), "created": data.get("created")},
        )

    def _observe_latency(self, start_time: float, success: bool) -> None:
        completion_latency_seconds.labels(
            backend=self.backend_name, success=str(success).lower()
        ).observe(time.time() - start_time)

    async def close(self):
        """Close the HTTP client connection."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            logger.debug("Closed completion client", client_class=self.__class__.__name__)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"base_url={self.base_url}, "
            f"timeout={self.timeout}s)"
        )
