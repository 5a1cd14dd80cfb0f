"""
Configuration settings for the claim detection service.

All settings are loaded from environment variables with sensible defaults.
Use .env file for local development (see .env.example).
"""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


PACKAGE_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
    
    # === Application ===
    APP_NAME: str = "Claim Detection Service"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"
    LIBRARY_LOG_LEVELS: dict[str, str] = {
        "httpx": "WARNING",
        "httpcore": "WARNING",
        "asyncio": "WARNING",
        "redis": "WARNING",
        "celery": "INFO",
        "uvicorn.access": "WARNING",
    }  # JSON object in the environment
    
    # === Mail Source (Microsoft Graph) ===
    GRAPH_BASE_URL: str = "https://graph.microsoft.com/v1.0"
    GRAPH_ACCESS_TOKEN: Optional[str] = None
    MAILBOX_EMAIL: str = ""
    MAIL_PAGE_SIZE: int = 50  # Max messages retrieved per run
    MAIL_TIMEOUT: int = 30  # seconds
    
    # === Hosted Completion Service (Azure OpenAI) ===
    AZURE_OPENAI_ENDPOINT: str = ""
    AZURE_OPENAI_API_KEY: Optional[str] = None
    AZURE_OPENAI_DEPLOYMENT_NAME: str = ""
    AZURE_OPENAI_API_VERSION: str = "2024-02-15-preview"
    HOSTED_TEMPERATURE: float = 1.0
    HOSTED_MAX_TOKENS: int = 2000
    COMPLETION_TIMEOUT: int = 60  # seconds
    COMPLETION_MAX_RETRIES: int = 2
    
    # === Self-hosted Completion Backend ===
    LOCAL_LLM_BASE_URL: str = "http://localhost:5834"
    LOCAL_LLM_TEMPERATURE: float = 0.7
    LOCAL_LLM_MAX_TOKENS: int = 2000
    LOCAL_LLM_SERVER_COMMAND: list[str] = []  # e.g. ["python", "-m", "npu_server"]
    LOCAL_LLM_READY_RETRIES: int = 30
    LOCAL_LLM_READY_INTERVAL: float = 1.0  # seconds
    
    # === Analysis ===
    DEFAULT_BACKEND: str = "hosted"  # hosted | self_hosted
    DEFAULT_CONCURRENCY: int = 1  # 1 = sequential
    INTER_CALL_DELAY_SECONDS: float = 1.0  # Rate-limit spacing between calls/chunks
    BODY_TRUNCATION_LIMIT: int = 8000  # chars
    PROMPT_TEMPLATES_DIR: str = str(PACKAGE_DIR / "llm" / "prompts")
    RESPONSE_LANGUAGE: str = "Japanese"
    REPORT_CLAIM_LIMIT: int = 100
    
    # === Exclusion Filter ===
    EXCLUSION_LIST_PATH: str = "config/exclusion_list.json"
    
    # === Redis ===
    REDIS_URL: str = "redis://redis:6379/0"
    REDIS_MAX_CONNECTIONS: int = 20
    REDIS_KEY_PREFIX: str = "claims"
    RUN_LOG_MAX_ENTRIES: int = 1000
    
    # === Celery ===
    CELERY_BROKER_URL: str = "redis://redis:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://redis:6379/2"
    CELERY_TASK_TIME_LIMIT: int = 1800  # seconds
    CELERY_WORKER_CONCURRENCY: int = 1  # Keep at 1: one pipeline run per worker at a time
    CHECK_INTERVAL_MINUTES: int = 30
    ENABLE_SCHEDULED_PROCESSING: bool = True
    
    # === Monitoring ===
    PROMETHEUS_ENABLED: bool = True


# Global settings instance
settings = Settings()
