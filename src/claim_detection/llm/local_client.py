"""
Self-hosted Completion Service client.

Talks to a local OpenAI-compatible inference server:
- POST /api/chat/completions: chat completion (no streaming)
- GET /health: {"status": "ok", "model_loaded": true}

Optionally manages the server process itself (LOCAL_LLM_SERVER_COMMAND).
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

import httpx
import structlog

from claim_detection.llm.base_client import BaseCompletionClient
from claim_detection.llm.exceptions import BackendNotReadyError
from claim_detection.models.llm_models import BackendHealth, CompletionRequest


logger = structlog.get_logger(__name__)


class LocalLLMClient(BaseCompletionClient):
    """
    Client for the self-hosted inference server.

    The server must report a loaded model before the pipeline may use it;
    ensure_running() starts it (when a command is configured) and polls
    /health with a bounded retry count and fixed interval.
    """

    backend_name = "self_hosted"

    def __init__(
        self,
        base_url: str = "http://localhost:5834",
        timeout: int = 60,
        max_retries: int = 2,
        server_command: Optional[Sequence[str]] = None,
        ready_retries: int = 30,
        ready_interval: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        super().__init__(base_url, timeout=timeout, max_retries=max_retries, transport=transport)
        self.server_command = list(server_command or [])
        self.ready_retries = ready_retries
        self.ready_interval = ready_interval
        self._sleep = sleep
        self._process: Optional[asyncio.subprocess.Process] = None

    def _completion_path(self) -> str:
        return "/api/chat/completions"

    def _completion_params(self) -> Dict[str, str]:
        return {}

    def _build_payload(self, request: CompletionRequest) -> Dict[str, Any]:
        return {
            "messages": [
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": request.user_prompt},
            ],
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "stream": False,
        }

    @property
    def is_managed(self) -> bool:
        """True when this client started the server process and still owns it."""
        return self._process is not None and self._process.returncode is None

    async def check_health(self) -> BackendHealth:
        """
        Probe GET /health.

        Never raises: connection failures come back as status="error".
        """
        try:
            client = await self._get_client()
            response = await client.get("/health", timeout=5.0)
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            return BackendHealth(status="error", model_loaded=False, message=str(e))

        if not isinstance(data, dict):
            return BackendHealth(status="error", message="Unexpected health payload")
        return BackendHealth(
            status=str(data.get("status", "error")),
            model_loaded=bool(data.get("model_loaded", False)),
            message=data.get("message"),
        )

    async def wait_until_ready(self) -> BackendHealth:
        """
        Poll /health until the model is loaded.

        Raises:
            BackendNotReadyError: Not ready after ready_retries polls
        """
        health = BackendHealth()
        for attempt in range(1, self.ready_retries + 1):
            health = await self.check_health()
            if health.is_ready:
                logger.info("Self-hosted backend ready", attempt=attempt)
                return health
            logger.info(
                "Waiting for self-hosted backend",
                attempt=attempt,
                max_attempts=self.ready_retries,
                status=health.status,
                model_loaded=health.model_loaded
            )
            await self._sleep(self.ready_interval)

        raise BackendNotReadyError(
            "Server failed to start within timeout period",
            details={
                "attempts": self.ready_retries,
                "interval": self.ready_interval,
                "last_status": health.status,
            }
        )

    async def ensure_running(self) -> BackendHealth:
        """
        Make sure the backend is up with a loaded model.

        Already healthy -> return immediately. Otherwise start the configured
        server command (if any) and wait for readiness.

        Raises:
            BackendNotReadyError: Server could not be started or never became ready
        """
        health = await self.check_health()
        if health.is_ready:
            logger.info("Self-hosted backend already running")
            return health

        if health.status != "ok" and not self.is_managed:
            if not self.server_command:
                raise BackendNotReadyError(
                    "Self-hosted backend is not running and no server command is configured",
                    details={"base_url": self.base_url, "status": health.status}
                )
            await self._spawn()

        return await self.wait_until_ready()

    async def _spawn(self) -> None:
        logger.info("Starting self-hosted backend", command=self.server_command)
        try:
            self._process = await asyncio.create_subprocess_exec(*self.server_command)
        except OSError as e:
            raise BackendNotReadyError(
                f"Failed to start self-hosted backend: {e}",
                details={"command": self.server_command}
            ) from e

    async def stop_server(self) -> bool:
        """
        Terminate the server process if this client started it.

        Returns:
            True if a managed process was stopped, False if there was none
        """
        if not self.is_managed:
            logger.info("No managed self-hosted backend to stop")
            self._process = None
            return False

        logger.info("Stopping self-hosted backend", pid=self._process.pid)
        self._process.terminate()
        try:
            await asyncio.wait_for(self._process.wait(), timeout=10.0)
        except asyncio.TimeoutError:
            logger.warning("Backend did not exit after terminate, killing", pid=self._process.pid)
            self._process.kill()
            await self._process.wait()
        self._process = None
        return True

    async def close(self):
        await self.stop_server()
        await super().close()
