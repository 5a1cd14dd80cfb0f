"""
Unit tests for the HTTP routes (TestClient with dependency overrides,
no external services).
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from claim_detection.api import dependencies
from claim_detection.llm.exceptions import BackendNotReadyError, CompletionTimeoutError
from claim_detection.llm.prompt_builder import PromptBuilder
from claim_detection.main import app
from claim_detection.mail.exceptions import MailSourceConnectionError
from claim_detection.models.classification import ClassificationRecord
from claim_detection.models.enums import Backend, ClaimCategory, RunStatus, Severity
from claim_detection.models.llm_models import BackendHealth, CompletionResponse
from claim_detection.models.run import ClaimStats, ProcessingRun, ProcessOptions, ProcessResult
from claim_detection.pipeline.exceptions import SourceSelectionError, UnsupportedBackendError


CLAIM = ClassificationRecord(
    id=1,
    message_id=1,
    external_id="msg-1",
    subject="Still waiting",
    sender_address="user@customer.example",
    received_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
    is_claim=True,
    confidence=90,
    category=ClaimCategory.ANSWER_DELAY,
    severity=Severity.HIGH,
    summary="No reply for two weeks",
    analyzed_at=datetime(2024, 5, 2, tzinfo=timezone.utc),
)


@pytest.fixture
def mock_pipeline():
    pipeline = MagicMock()
    pipeline.process = AsyncMock(return_value=ProcessResult(processed=3, claims_detected=1))
    return pipeline


@pytest.fixture
def mock_repository():
    repository = MagicMock()
    repository.list_classifications = AsyncMock(return_value=[CLAIM])
    repository.list_messages = AsyncMock(return_value=[])
    repository.get_claim_stats = AsyncMock(return_value=ClaimStats(total_claims=1, total_messages=4))
    repository.recent_runs = AsyncMock(return_value=[])
    repository.ping = AsyncMock(return_value=True)
    return repository


@pytest.fixture
def mock_hosted_client():
    client = MagicMock()
    client.complete = AsyncMock(return_value=CompletionResponse(content="One claim this week."))
    return client


@pytest.fixture
def mock_local_client():
    client = MagicMock()
    client.is_managed = False
    client.check_health = AsyncMock(return_value=BackendHealth(status="ok", model_loaded=True))
    client.ensure_running = AsyncMock(return_value=BackendHealth(status="ok", model_loaded=True))
    client.stop_server = AsyncMock(return_value=True)
    client.complete = AsyncMock(return_value=CompletionResponse(content="Local report."))
    return client


@pytest.fixture
def overrides(test_settings, templates_dir, mock_pipeline, mock_repository, mock_hosted_client, mock_local_client):
    """Install dependency overrides; tests may replace individual entries."""
    app.dependency_overrides = {
        dependencies.get_settings: lambda: test_settings,
        dependencies.get_pipeline: lambda: mock_pipeline,
        dependencies.get_repository: lambda: mock_repository,
        dependencies.get_prompt_builder: lambda: PromptBuilder(templates_dir),
        dependencies.get_hosted_client: lambda: mock_hosted_client,
        dependencies.get_local_client: lambda: mock_local_client,
    }
    yield app.dependency_overrides
    app.dependency_overrides = {}


@pytest.fixture
def client(overrides):
    return TestClient(app)


def test_process_without_body(client, mock_pipeline):
    response = client.post("/process")
    
    assert response.status_code == 200
    assert response.json() == {"status": "completed", "processed": 3, "claims_detected": 1}
    mock_pipeline.process.assert_awaited_once_with(ProcessOptions())


def test_process_with_options(client, mock_pipeline):
    response = client.post("/process", json={
        "days": 2,
        "mailbox": "sales@example.com",
        "concurrency": 4,
        "backend": "self_hosted",
    })
    
    assert response.status_code == 200
    options = mock_pipeline.process.await_args.args[0]
    assert options.days == 2
    assert options.mailbox == "sales@example.com"
    assert options.concurrency == 4
    assert options.backend == Backend.SELF_HOSTED


def test_process_skipped(client, mock_pipeline):
    mock_pipeline.process.return_value = ProcessResult(skipped=True)
    
    response = client.post("/process")
    
    assert response.json()["status"] == "skipped"


def test_process_rejects_invalid_options(client):
    assert client.post("/process", json={"days": 0}).status_code == 422
    assert client.post("/process", json={
        "start_date": "2024-05-02T00:00:00Z",
        "end_date": "2024-05-01T00:00:00Z",
    }).status_code == 422


@pytest.mark.parametrize("error, status_code, error_code", [
    (SourceSelectionError("Failed to list messages: refused"), 502, "upstream_failed"),
    (MailSourceConnectionError("Network error: refused"), 502, "upstream_failed"),
    (BackendNotReadyError("Server failed to start within timeout period"), 503, "service_unavailable"),
    (CompletionTimeoutError("Request timeout after 60s"), 504, "completion_timeout"),
    (UnsupportedBackendError("No classifier configured for backend 'hosted'"), 400, "unsupported_backend"),
])
def test_process_error_mapping(client, mock_pipeline, error, status_code, error_code):
    mock_pipeline.process.side_effect = error
    
    response = client.post("/process")
    
    assert response.status_code == status_code
    assert response.json()["error"] == error_code


def test_list_claims_passes_filters(client, mock_repository):
    response = client.get("/claims", params={
        "category": "answer delay",
        "severity": "high",
        "min_confidence": 50,
        "sender": "customer.example",
        "limit": 10,
    })
    
    assert response.status_code == 200
    assert response.json()[0]["external_id"] == "msg-1"
    filters = mock_repository.list_classifications.await_args.args[0]
    assert filters.category == ClaimCategory.ANSWER_DELAY
    assert filters.severity == Severity.HIGH
    assert filters.min_confidence == 50
    assert filters.sender == "customer.example"
    assert filters.limit == 10
    assert filters.claims_only is True


def test_list_claims_rejects_unknown_category(client):
    assert client.get("/claims", params={"category": "bogus"}).status_code == 422


def test_messages_stats_and_runs(client, mock_repository):
    mock_repository.recent_runs.return_value = [ProcessingRun(
        id=7,
        started_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
        completed_at=datetime(2024, 5, 1, 0, 1, tzinfo=timezone.utc),
        messages_processed=2,
        status=RunStatus.SUCCESS,
    )]
    
    assert client.get("/messages").json() == []
    assert client.get("/stats").json()["total_messages"] == 4
    runs = client.get("/runs", params={"limit": 5}).json()
    
    assert runs[0]["id"] == 7
    mock_repository.recent_runs.assert_awaited_once_with(5)


def test_report_hosted(client, mock_hosted_client, mock_local_client):
    response = client.post("/report", params={"backend": "hosted"})
    
    assert response.status_code == 200
    data = response.json()
    assert data["report"] == "One claim this week."
    assert data["claims_count"] == 1
    assert data["backend"] == "hosted"
    mock_local_client.ensure_running.assert_not_awaited()


def test_report_self_hosted_starts_backend(client, mock_local_client):
    response = client.post("/report", params={"backend": "self_hosted"})
    
    assert response.json()["report"] == "Local report."
    mock_local_client.ensure_running.assert_awaited_once()


def test_report_without_claims(client, mock_repository, mock_hosted_client):
    mock_repository.list_classifications.return_value = []
    
    response = client.post("/report", params={"backend": "hosted"})
    
    assert response.json()["report"] == "No claims were detected."
    mock_hosted_client.complete.assert_not_awaited()


def test_report_unconfigured_hosted_backend(client, overrides):
    overrides[dependencies.get_hosted_client] = lambda: None
    
    response = client.post("/report", params={"backend": "hosted"})
    
    assert response.status_code == 400
    assert response.json()["error"] == "unsupported_backend"


def test_backend_endpoints(client, mock_local_client):
    status = client.get("/backend/status").json()
    assert status == {"status": "ok", "model_loaded": True, "managed": False, "message": None}
    
    assert client.post("/backend/start").json()["model_loaded"] is True
    assert client.post("/backend/stop").json() == {"stopped": True}


def test_backend_start_failure(client, mock_local_client):
    mock_local_client.ensure_running.side_effect = BackendNotReadyError("Server failed to start within timeout period")
    
    response = client.post("/backend/start")
    
    assert response.status_code == 503
    assert response.json()["message"] == "Server failed to start within timeout period"


def test_health_healthy(client):
    response = client.get("/health")
    
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["services"] == {"redis": "ok", "hosted": "configured", "self_hosted": "ok"}


def test_health_redis_down(client, mock_repository):
    mock_repository.ping.side_effect = ConnectionError("refused")
    
    response = client.get("/health")
    
    assert response.status_code == 503
    assert response.json()["status"] == "unhealthy"


def test_health_degraded_without_backends(client, overrides, mock_local_client):
    overrides[dependencies.get_hosted_client] = lambda: None
    mock_local_client.check_health.return_value = BackendHealth(status="error", message="refused")
    
    response = client.get("/health")
    
    assert response.status_code == 200
    assert response.json()["status"] == "degraded"
    assert response.json()["services"]["self_hosted"] == "unavailable"


def test_request_id_header(client):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"
    
    assert client.get("/health").headers["X-Request-ID"]
