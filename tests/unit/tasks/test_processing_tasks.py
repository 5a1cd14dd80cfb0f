"""
Unit tests for Celery processing tasks.

Tasks are executed eagerly with apply(); no broker is contacted.
"""

import importlib
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from claim_detection.models.enums import Backend
from claim_detection.models.run import ProcessOptions, ProcessResult
from claim_detection.tasks.processing_tasks import process_mailbox_task, run_pipeline_once


class TestProcessMailboxTask:
    
    def test_scheduled_run_uses_default_backend(self):
        runner = AsyncMock(return_value=ProcessResult(processed=3, claims_detected=1))
        
        with patch("claim_detection.tasks.processing_tasks.run_pipeline_once", runner), \
                patch("claim_detection.tasks.processing_tasks.settings") as mock_settings:
            mock_settings.DEFAULT_BACKEND = "self_hosted"
            result = process_mailbox_task.apply().get()
        
        assert result == {"processed": 3, "claims_detected": 1, "skipped": False}
        options = runner.await_args.args[0]
        assert options.backend == Backend.SELF_HOSTED
        assert not options.has_date_range
    
    def test_explicit_options_are_validated(self):
        runner = AsyncMock(return_value=ProcessResult(skipped=True))
        
        with patch("claim_detection.tasks.processing_tasks.run_pipeline_once", runner):
            result = process_mailbox_task.apply(args=[{"days": 2, "concurrency": 4}]).get()
        
        assert result["skipped"] is True
        options = runner.await_args.args[0]
        assert options.days == 2
        assert options.concurrency == 4
        assert options.backend == Backend.HOSTED
    
    def test_failure_propagates(self):
        runner = AsyncMock(side_effect=RuntimeError("mail source down"))
        
        with patch("claim_detection.tasks.processing_tasks.run_pipeline_once", runner):
            with pytest.raises(RuntimeError, match="mail source down"):
                process_mailbox_task.apply(args=[{}]).get()


class TestRunPipelineOnce:
    
    @pytest.fixture
    def collaborators(self):
        redis_client = MagicMock()
        redis_client.aclose = AsyncMock()
        hosted_client = MagicMock()
        hosted_client.close = AsyncMock()
        local_client = MagicMock()
        local_client.close = AsyncMock()
        mail_source = MagicMock()
        mail_source.close = AsyncMock()
        pipeline = MagicMock()
        pipeline.process = AsyncMock(return_value=ProcessResult(processed=1))
        
        module = "claim_detection.tasks.processing_tasks"
        with patch(f"{module}.RedisClient.create_standalone_client", return_value=redis_client), \
                patch(f"{module}.build_hosted_client", return_value=hosted_client), \
                patch(f"{module}.build_local_client", return_value=local_client), \
                patch(f"{module}.build_mail_source", return_value=mail_source), \
                patch(f"{module}.build_prompt_builder"), \
                patch(f"{module}.build_pipeline", return_value=pipeline):
            yield {
                "redis": redis_client,
                "hosted": hosted_client,
                "local": local_client,
                "mail": mail_source,
                "pipeline": pipeline,
            }
    
    @pytest.mark.asyncio
    async def test_runs_and_closes_everything(self, collaborators, test_settings):
        options = ProcessOptions(hours=6)
        
        result = await run_pipeline_once(options, test_settings)
        
        assert result.processed == 1
        collaborators["pipeline"].process.assert_awaited_once_with(options)
        for name in ("hosted", "local", "mail"):
            collaborators[name].close.assert_awaited_once()
        collaborators["redis"].aclose.assert_awaited_once()
    
    @pytest.mark.asyncio
    async def test_closes_everything_on_failure(self, collaborators, test_settings):
        collaborators["pipeline"].process.side_effect = RuntimeError("boom")
        
        with pytest.raises(RuntimeError):
            await run_pipeline_once(ProcessOptions(), test_settings)
        
        collaborators["local"].close.assert_awaited_once()
        collaborators["mail"].close.assert_awaited_once()
        collaborators["redis"].aclose.assert_awaited_once()


def test_worker_logging_uses_service_configuration():
    celery_module = importlib.import_module("claim_detection.tasks.celery_app")
    
    with patch.object(celery_module, "configure_logging") as mock_configure:
        celery_module.configure_worker_logging(loglevel="INFO")
    
    mock_configure.assert_called_once_with(celery_module.settings)
