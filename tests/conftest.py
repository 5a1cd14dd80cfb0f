"""Shared test fixtures and configuration for all tests.

This conftest.py provides common fixtures used across unit and integration tests.
"""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from claim_detection.config import PACKAGE_DIR, Settings
from claim_detection.models.message import MessageDetail, MessageSummary


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Test settings with safe defaults for local testing.
    
    Override specific settings in individual tests as needed:
        def test_something(test_settings):
            test_settings.DEFAULT_CONCURRENCY = 5
    """
    return Settings(
        # === Application ===
        APP_NAME="Claim Detection Service (Test)",
        APP_VERSION="0.1.0",
        DEBUG=True,
        LOG_LEVEL="DEBUG",
        ENVIRONMENT="development",
        
        # === Mail Source ===
        GRAPH_BASE_URL="https://graph.test/v1.0",
        GRAPH_ACCESS_TOKEN="test-token",
        MAILBOX_EMAIL="support@example.com",
        
        # === Completion backends ===
        AZURE_OPENAI_ENDPOINT="https://example.openai.azure.com",
        AZURE_OPENAI_API_KEY="test-key",
        AZURE_OPENAI_DEPLOYMENT_NAME="gpt-test",
        LOCAL_LLM_BASE_URL="http://localhost:5834",
        LOCAL_LLM_SERVER_COMMAND=[],
        
        # === Analysis ===
        DEFAULT_CONCURRENCY=1,
        INTER_CALL_DELAY_SECONDS=0.0,  # No rate-limit spacing in tests
        PROMPT_TEMPLATES_DIR=str(PACKAGE_DIR / "llm" / "prompts"),
        EXCLUSION_LIST_PATH=str(tmp_path / "missing_exclusion_list.json"),
        
        # === Redis ===
        REDIS_URL="redis://localhost:6379/0",
        REDIS_MAX_CONNECTIONS=10,
        REDIS_KEY_PREFIX="test-claims",
        RUN_LOG_MAX_ENTRIES=100,
        
        PROMETHEUS_ENABLED=False,  # Disable metrics in tests unless explicitly needed
    )


@pytest.fixture
def templates_dir() -> Path:
    """Path to the packaged prompt templates."""
    return PACKAGE_DIR / "llm" / "prompts"


@pytest.fixture
def create_message_detail():
    """Factory fixture to create MessageDetail with custom fields.
    
    Usage:
        def test_something(create_message_detail):
            message = create_message_detail(msg_id="m1", body="Still no answer!")
    """
    def _create(
        msg_id: str = "msg-1",
        subject: str = "Question about my ticket",
        body: str = "Hello, could you check my ticket?",
        sender_address: str = "user@customer.example",
        sender_name: str = "Test User",
        content_type: str = "text",
        received_at: datetime = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc),
    ) -> MessageDetail:
        return MessageDetail(
            id=msg_id,
            internet_message_id=f"<{msg_id}@customer.example>",
            subject=subject,
            sender_address=sender_address,
            sender_name=sender_name,
            to_recipients=["support@example.com"],
            received_at=received_at,
            body_content=body,
            body_content_type=content_type,
        )
    
    return _create


@pytest.fixture
def summary_of():
    """Build the listing entry for a MessageDetail."""
    def _summary(detail: MessageDetail) -> MessageSummary:
        return MessageSummary(id=detail.id, subject=detail.subject, received_at=detail.received_at)
    
    return _summary
