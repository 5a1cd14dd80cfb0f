"""
Analysis Dispatcher: run classification calls sequentially or in bounded
concurrent chunks.

Scheduling:
- concurrency <= 1: one call at a time in arrival order, with the
  inter-call delay after each call.
- concurrency k > 1: ordered chunks of k; calls inside a chunk are awaited
  together, a chunk settles completely before the next one is dispatched,
  and the delay is inserted between chunks.

Every call is isolated: a failure becomes an error-marker
ClassificationResult for that message and never affects its siblings.
Outcomes are handed to the on_outcome callback as soon as they exist: after
each call, or after each chunk settles.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence

import structlog

from claim_detection.analysis.classifier import Classifier
from claim_detection.models.classification import ClassificationResult


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AnalysisItem:
    """A stored, non-excluded message with text to analyze."""

    message_id: int
    external_id: str
    subject: str
    sender_address: str
    sender_name: str
    text: str

    @property
    def sender_display(self) -> str:
        return f"{self.sender_name} <{self.sender_address}>"


@dataclass(frozen=True)
class AnalysisOutcome:
    """Exactly one per dispatched item."""

    item: AnalysisItem
    result: ClassificationResult
    error: Optional[str] = None


OutcomeHandler = Callable[[AnalysisOutcome], Awaitable[None]]


def chunked(items: Sequence[Any], size: int) -> list[Sequence[Any]]:
    """
    Split items into consecutive chunks of at most `size`.

    Examples:
        >>> chunked([1, 2, 3, 4, 5], 2)
        [[1, 2], [3, 4], [5]]
    """
    return [items[i:i + size] for i in range(0, len(items), size)]


class AnalysisDispatcher:
    """
    Dispatch analysis of a batch with a concurrency limit.

    Args:
        classifier: Classifier to call for each item
        concurrency: Max simultaneous calls (<= 1 means sequential)
        inter_call_delay: Seconds to wait after each call (sequential) or
            between chunks (concurrent); 0 disables the wait
        sleep: Awaitable sleep function (tests inject a recorder)
    """

    def __init__(
        self,
        classifier: Classifier,
        concurrency: int = 1,
        inter_call_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.classifier = classifier
        self.concurrency = max(1, concurrency)
        self.inter_call_delay = max(0.0, inter_call_delay)
        self._sleep = sleep

    async def dispatch(
        self,
        items: Sequence[AnalysisItem],
        debug: bool = False,
        on_outcome: Optional[OutcomeHandler] = None,
    ) -> list[AnalysisOutcome]:
        """
        Analyze every item and return one outcome per item.

        Args:
            items: Messages to analyze
            debug: Verbose diagnostic tracing in the classifier
            on_outcome: Awaited once per outcome before the next call or chunk
                is dispatched
        """
        if not items:
            return []

        if self.concurrency <= 1:
            return await self._dispatch_sequential(items, debug, on_outcome)
        return await self._dispatch_chunked(items, debug, on_outcome)

    async def _dispatch_sequential(
        self,
        items: Sequence[AnalysisItem],
        debug: bool,
        on_outcome: Optional[OutcomeHandler],
    ) -> list[AnalysisOutcome]:
        logger.info("Analyzing messages sequentially", total=len(items))
        outcomes = []
        for item in items:
            outcome = await self._analyze_one(item, debug)
            outcomes.append(outcome)
            if on_outcome is not None:
                await on_outcome(outcome)
            await self._pause()
        return outcomes

    async def _dispatch_chunked(
        self,
        items: Sequence[AnalysisItem],
        debug: bool,
        on_outcome: Optional[OutcomeHandler],
    ) -> list[AnalysisOutcome]:
        chunks = chunked(items, self.concurrency)
        logger.info(
            "Analyzing messages concurrently",
            total=len(items),
            concurrency=self.concurrency,
            chunks=len(chunks)
        )

        outcomes: list[AnalysisOutcome] = []
        for index, chunk in enumerate(chunks):
            if index:
                await self._pause()
            # _analyze_one never raises, so gather cannot short-circuit
            settled = await asyncio.gather(*(self._analyze_one(item, debug) for item in chunk))
            outcomes.extend(settled)
            if on_outcome is not None:
                for outcome in settled:
                    await on_outcome(outcome)
            logger.info("Analysis progress", processed=len(outcomes), total=len(items))
        return outcomes

    async def _analyze_one(self, item: AnalysisItem, debug: bool) -> AnalysisOutcome:
        try:
            result = await self.classifier.classify(
                item.text,
                item.subject,
                item.sender_display,
                debug=debug,
            )
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(
                "Analysis failed",
                message_id=item.message_id,
                external_id=item.external_id,
                error=message,
                error_type=type(e).__name__
            )
            return AnalysisOutcome(item=item, result=ClassificationResult.failed(message), error=message)
        return AnalysisOutcome(item=item, result=result)

    async def _pause(self) -> None:
        if self.inter_call_delay > 0:
            await self._sleep(self.inter_call_delay)
