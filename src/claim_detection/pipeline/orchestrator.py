"""
Processing Pipeline (orchestrator).

State machine:
    Idle -> Running -> per message: Fetching -> Filtering -> [Excluded | Analyzing -> Persisting]
         -> Completed(success | error)

Policy:
- Single-flight: a call made while a run is in flight is refused (logged,
  returns skipped=True); nothing is queued.
- Dedup by external id against the Store before any fetch or analysis.
- Excluded messages get a synthetic verdict without a completion call.
- Per-message failures are aggregated into the run's error text; source
  selection and self-hosted backend startup failures are fatal.
- Exactly one ProcessingRun is recorded per run, and the state returns to
  Idle, whatever happens.
"""

import asyncio
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, Sequence

import structlog

from claim_detection.analysis.classifier import Classifier
from claim_detection.analysis.dispatcher import AnalysisDispatcher, AnalysisItem, AnalysisOutcome
from claim_detection.config import Settings
from claim_detection.filtering.exclusion import ExclusionFilter
from claim_detection.mail.base import MailSource, build_date_range
from claim_detection.mail.extraction import extract_text
from claim_detection.models.classification import ClassificationRecord, ClassificationResult, MessageRecord
from claim_detection.models.enums import Backend, PipelineState, RunStatus, SelectionStrategy
from claim_detection.models.message import MessageDetail, MessageSummary
from claim_detection.models.run import (
    ClaimStats,
    ClassificationFilters,
    MessageFilters,
    ProcessingRun,
    ProcessOptions,
    ProcessResult,
)
from claim_detection.monitoring.metrics import (
    messages_total,
    pipeline_run_duration_seconds,
    pipeline_runs_total,
)
from claim_detection.pipeline.exceptions import SourceSelectionError, UnsupportedBackendError


logger = structlog.get_logger(__name__)


class ClaimStore(Protocol):
    """Store collaborator (see persistence.repository.ClaimRepository)."""

    async def is_message_recorded(self, external_id: str) -> bool: ...

    async def save_message(self, message: MessageDetail) -> int: ...

    async def save_classification(self, message_id: int, result: ClassificationResult) -> int: ...

    async def get_last_successful_run_completion(self) -> Optional[datetime]: ...

    async def record_run(self, run: ProcessingRun) -> int: ...

    async def list_classifications(self, filters: ClassificationFilters) -> list[ClassificationRecord]: ...

    async def list_messages(self, filters: MessageFilters) -> list[MessageRecord]: ...

    async def get_claim_stats(self) -> ClaimStats: ...

    async def recent_runs(self, limit: int = 20) -> list[ProcessingRun]: ...


class BackendLauncher(Protocol):
    """Starts the self-hosted backend (see llm.local_client.LocalLLMClient)."""

    async def ensure_running(self) -> Any: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _RunState:
    """Mutable tallies of one run."""

    def __init__(self):
        self.processed = 0
        self.claims_detected = 0
        self.errors: list[str] = []

    def add_error(self, external_id: str, error: Any) -> None:
        self.errors.append(f"Message {external_id}: {error}")


class ClaimDetectionPipeline:
    """
    Turn a batch of mailbox messages into recorded classifications.

    Collaborators are injected: Mail Source, Store, Exclusion Filter and one
    Classifier per backend. The optional backend launcher is consulted only
    for self-hosted runs.
    """

    def __init__(
        self,
        mail_source: MailSource,
        store: ClaimStore,
        exclusion_filter: ExclusionFilter,
        classifiers: Mapping[Backend, Classifier],
        settings: Settings,
        backend_launcher: Optional[BackendLauncher] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.mail_source = mail_source
        self.store = store
        self.exclusion_filter = exclusion_filter
        self.classifiers = dict(classifiers)
        self.settings = settings
        self.backend_launcher = backend_launcher
        self._sleep = sleep
        self._state = PipelineState.IDLE

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == PipelineState.RUNNING

    async def process(self, options: Optional[ProcessOptions] = None) -> ProcessResult:
        """
        Run the pipeline once.

        Returns:
            ProcessResult with processed / claims_detected counts, or
            skipped=True if a run was already in flight

        Raises:
            BackendNotReadyError: Self-hosted backend failed to start
            SourceSelectionError: Candidate batch could not be listed
            UnsupportedBackendError: No classifier for the requested backend
        """
        options = options or ProcessOptions()

        # Check-then-set with no await in between
        if self._state == PipelineState.RUNNING:
            logger.warning("Processing is already running, skipping")
            return ProcessResult(skipped=True)
        self._state = PipelineState.RUNNING

        run_id = uuid.uuid4().hex
        started_at = _utcnow()
        started_monotonic = time.monotonic()
        structlog.contextvars.bind_contextvars(run_id=run_id, backend=options.backend.value)
        run = _RunState()
        fatal: Optional[BaseException] = None

        logger.info(
            "Processing run started",
            has_date_range=options.has_date_range,
            mailbox=options.mailbox,
            concurrency=options.concurrency,
            debug=options.debug
        )

        try:
            await self._run(options, run)
        except BaseException as e:
            fatal = e
            raise
        finally:
            record_error = await self._finalize(run, started_at, fatal)
            pipeline_run_duration_seconds.observe(time.monotonic() - started_monotonic)
            self._state = PipelineState.IDLE
            structlog.contextvars.unbind_contextvars("run_id", "backend")
            if record_error is not None and fatal is None:
                raise record_error

        return ProcessResult(processed=run.processed, claims_detected=run.claims_detected)

    async def _run(self, options: ProcessOptions, run: _RunState) -> None:
        classifier = self.classifiers.get(options.backend)
        if classifier is None:
            raise UnsupportedBackendError(
                f"No classifier configured for backend '{options.backend.value}'",
                details={"available": [b.value for b in self.classifiers]}
            )

        if options.backend == Backend.SELF_HOSTED and self.backend_launcher is not None:
            logger.info("Self-hosted backend selected, ensuring it is running")
            await self.backend_launcher.ensure_running()

        summaries = await self._select_batch(options)
        logger.info("Retrieved candidate messages", count=len(summaries))
        if not summaries:
            logger.info("No new messages to process")
            return

        items = []
        for summary in summaries:
            try:
                item = await self._prepare_message(summary, options, run)
            except Exception as e:
                logger.error(
                    "Error processing message",
                    external_id=summary.id,
                    error=str(e),
                    error_type=type(e).__name__
                )
                messages_total.labels(outcome="failed").inc()
                run.add_error(summary.id, e)
                continue
            if item is not None:
                items.append(item)

        dispatcher = AnalysisDispatcher(
            classifier,
            concurrency=self._effective_concurrency(options),
            inter_call_delay=self.settings.INTER_CALL_DELAY_SECONDS,
            sleep=self._sleep,
        )
        async def persist(outcome: AnalysisOutcome) -> None:
            await self._persist_outcome(outcome, run)

        # Each verdict is stored before the next call or chunk is dispatched
        await dispatcher.dispatch(items, debug=options.debug, on_outcome=persist)

    async def _select_batch(self, options: ProcessOptions) -> Sequence[MessageSummary]:
        """
        Choose the batch: an explicit range wins over incremental retrieval;
        a mailbox, when given, applies to either.
        """
        try:
            if options.has_date_range:
                date_range = build_date_range(
                    days=options.days,
                    hours=options.hours,
                    start=options.start_date,
                    end=options.end_date,
                )
                logger.info(
                    "Selecting messages by date range",
                    strategy=SelectionStrategy.DATE_RANGE.value,
                    start=date_range.start.isoformat() if date_range.start else None,
                    end=date_range.end.isoformat() if date_range.end else None,
                    mailbox=options.mailbox
                )
                return await self.mail_source.list_messages(date_range=date_range, mailbox=options.mailbox)

            since = await self.store.get_last_successful_run_completion()
            strategy = SelectionStrategy.MAILBOX if options.mailbox else SelectionStrategy.INCREMENTAL
            logger.info(
                "Selecting messages incrementally",
                strategy=strategy.value,
                since=since.isoformat() if since else None,
                mailbox=options.mailbox
            )
            return await self.mail_source.list_messages(since=since, mailbox=options.mailbox)
        except Exception as e:
            raise SourceSelectionError(
                f"Failed to list messages: {e}",
                details={"error_type": type(e).__name__, "mailbox": options.mailbox}
            ) from e

    async def _prepare_message(
        self,
        summary: MessageSummary,
        options: ProcessOptions,
        run: _RunState,
    ) -> Optional[AnalysisItem]:
        """
        Fetch, record and filter one message.

        Returns the item to analyze, or None when the message was already
        recorded, excluded, or has no text.
        """
        if await self.store.is_message_recorded(summary.id):
            logger.debug("Message already processed, skipping", external_id=summary.id)
            messages_total.labels(outcome="skipped").inc()
            return None

        detail = await self.mail_source.get_message_detail(
            summary.id,
            mailbox=options.mailbox or summary.mailbox,
        )
        text = extract_text(detail)
        detail = detail.model_copy(update={"body_text": text})
        message_id = await self.store.save_message(detail)
        run.processed += 1
        messages_total.labels(outcome="recorded").inc()

        if self.exclusion_filter.should_exclude(detail.sender_address, detail.subject):
            logger.info("Message excluded from claim detection", external_id=summary.id, sender=detail.sender_address)
            await self.store.save_classification(message_id, ClassificationResult.excluded())
            messages_total.labels(outcome="excluded").inc()
            return None

        if not text.strip():
            logger.info("Message has no text to analyze", external_id=summary.id)
            messages_total.labels(outcome="empty").inc()
            return None

        return AnalysisItem(
            message_id=message_id,
            external_id=detail.id,
            subject=detail.subject,
            sender_address=detail.sender_address,
            sender_name=detail.sender_name,
            text=text,
        )

    def _effective_concurrency(self, options: ProcessOptions) -> int:
        if options.backend == Backend.SELF_HOSTED:
            if options.concurrency and options.concurrency > 1:
                logger.warning(
                    "Concurrency setting ignored for self-hosted backend",
                    concurrency=options.concurrency
                )
            return 1
        return options.concurrency or self.settings.DEFAULT_CONCURRENCY

    async def _persist_outcome(self, outcome: AnalysisOutcome, run: _RunState) -> None:
        item = outcome.item
        try:
            await self.store.save_classification(item.message_id, outcome.result)
        except Exception as e:
            logger.error(
                "Failed to persist classification",
                external_id=item.external_id,
                message_id=item.message_id,
                error=str(e)
            )
            run.add_error(item.external_id, e)
            return

        if outcome.error is not None:
            run.add_error(item.external_id, f"analysis failed: {outcome.error}")
        elif outcome.result.is_claim:
            run.claims_detected += 1

    async def _finalize(
        self,
        run: _RunState,
        started_at: datetime,
        fatal: Optional[BaseException],
    ) -> Optional[Exception]:
        """
        Record the ProcessingRun. Never raises: a store failure is logged
        and returned so the caller decides whether to surface it.
        """
        errors = list(run.errors)
        if fatal is not None:
            errors.insert(0, str(fatal) or type(fatal).__name__)
        error_text = "; ".join(errors) or None
        status = RunStatus.ERROR if error_text else RunStatus.SUCCESS

        processing_run = ProcessingRun(
            started_at=started_at,
            completed_at=_utcnow(),
            messages_processed=run.processed,
            claims_detected=run.claims_detected,
            error=error_text,
            status=status,
        )
        pipeline_runs_total.labels(status=status.value).inc()

        try:
            await self.store.record_run(processing_run)
        except Exception as e:
            logger.error("Failed to record processing run", error=str(e), error_type=type(e).__name__)
            return e

        log = logger.error if status == RunStatus.ERROR else logger.info
        log(
            "Processing run completed",
            status=status.value,
            messages_processed=run.processed,
            claims_detected=run.claims_detected,
            errors=len(errors)
        )
        return None

    # === Reporting passthroughs ===

    async def list_classifications(self, filters: Optional[ClassificationFilters] = None) -> list[ClassificationRecord]:
        return await self.store.list_classifications(filters or ClassificationFilters())

    async def list_messages(self, filters: Optional[MessageFilters] = None) -> list[MessageRecord]:
        return await self.store.list_messages(filters or MessageFilters())

    async def get_claim_stats(self) -> ClaimStats:
        return await self.store.get_claim_stats()

    async def recent_runs(self, limit: int = 20) -> list[ProcessingRun]:
        return await self.store.recent_runs(limit)
