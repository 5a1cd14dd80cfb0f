"""
Unit tests for AnalysisDispatcher scheduling and failure isolation.
"""

import asyncio

import pytest

from claim_detection.analysis.dispatcher import AnalysisDispatcher, AnalysisItem, chunked
from claim_detection.models.classification import ClassificationResult


def make_items(*texts):
    return [
        AnalysisItem(
            message_id=i,
            external_id=f"msg-{i}",
            subject=f"subject-{i}",
            sender_address=f"user{i}@customer.example",
            sender_name=f"User {i}",
            text=text,
        )
        for i, text in enumerate(texts, start=1)
    ]


class EventLogClassifier:
    """Appends ("call", subject) to a shared event log."""

    def __init__(self, events):
        self.events = events

    async def classify(self, text, subject, sender, *, debug=False):
        self.events.append(("call", subject))
        await asyncio.sleep(0)
        return ClassificationResult(summary=subject)


@pytest.fixture
def events():
    return []


@pytest.fixture
def event_sleep(events):
    async def _sleep(seconds):
        events.append(("sleep", seconds))
    return _sleep


def test_chunked():
    assert chunked([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert chunked([1, 2], 5) == [[1, 2]]
    assert chunked([], 3) == []


@pytest.mark.asyncio
async def test_sequential_delay_after_every_call(events, event_sleep):
    dispatcher = AnalysisDispatcher(EventLogClassifier(events), concurrency=1, inter_call_delay=1.5, sleep=event_sleep)
    
    outcomes = await dispatcher.dispatch(make_items("a", "b", "c"))
    
    assert len(outcomes) == 3
    assert events == [
        ("call", "subject-1"), ("sleep", 1.5),
        ("call", "subject-2"), ("sleep", 1.5),
        ("call", "subject-3"), ("sleep", 1.5),
    ]


@pytest.mark.asyncio
async def test_chunks_settle_before_next_chunk(events, event_sleep):
    """Five items with k=2: chunks {1,2}, {3,4}, {5}, delay between chunks only."""
    dispatcher = AnalysisDispatcher(EventLogClassifier(events), concurrency=2, inter_call_delay=1.0, sleep=event_sleep)
    
    outcomes = await dispatcher.dispatch(make_items("a", "b", "c", "d", "e"))
    
    assert [o.item.message_id for o in outcomes] == [1, 2, 3, 4, 5]
    assert events == [
        ("call", "subject-1"), ("call", "subject-2"),
        ("sleep", 1.0),
        ("call", "subject-3"), ("call", "subject-4"),
        ("sleep", 1.0),
        ("call", "subject-5"),
    ]


@pytest.mark.asyncio
async def test_concurrency_is_bounded(classifier_factory, recording_sleep):
    classifier = classifier_factory()
    dispatcher = AnalysisDispatcher(classifier, concurrency=3, inter_call_delay=0.5, sleep=recording_sleep)
    
    outcomes = await dispatcher.dispatch(make_items(*["text"] * 7))
    
    assert len(outcomes) == 7
    assert classifier.max_in_flight == 3
    assert recording_sleep.delays == [0.5, 0.5]


@pytest.mark.asyncio
async def test_failure_is_isolated(classifier_factory, recording_sleep):
    """One failing call yields an error marker; siblings in the chunk are unaffected."""
    dispatcher = AnalysisDispatcher(classifier_factory(), concurrency=3, inter_call_delay=0, sleep=recording_sleep)
    
    outcomes = await dispatcher.dispatch(make_items("a complaint", "boom", "fine"))
    
    assert [o.item.message_id for o in outcomes] == [1, 2, 3]
    assert outcomes[0].error is None and outcomes[0].result.is_claim is True
    assert outcomes[2].error is None and outcomes[2].result.is_claim is False
    
    failed = outcomes[1]
    assert failed.error == "completion backend exploded"
    assert failed.result.is_claim is False
    assert failed.result.confidence == 0
    assert failed.result.error == "completion backend exploded"
    assert failed.result.reason == "Analysis error: completion backend exploded"


@pytest.mark.asyncio
async def test_failure_isolated_in_sequential_mode(classifier_factory, recording_sleep):
    dispatcher = AnalysisDispatcher(classifier_factory(), concurrency=1, inter_call_delay=0, sleep=recording_sleep)
    
    outcomes = await dispatcher.dispatch(make_items("boom", "a complaint"))
    
    assert outcomes[0].error is not None
    assert outcomes[1].result.is_claim is True
    assert recording_sleep.delays == []


@pytest.mark.asyncio
async def test_error_without_message_uses_type_name(recording_sleep):
    class SilentFailure:
        async def classify(self, text, subject, sender, *, debug=False):
            raise TimeoutError()
    
    dispatcher = AnalysisDispatcher(SilentFailure(), sleep=recording_sleep)
    
    outcomes = await dispatcher.dispatch(make_items("x"))
    
    assert outcomes[0].error == "TimeoutError"


@pytest.mark.asyncio
async def test_empty_batch(classifier_factory, recording_sleep):
    classifier = classifier_factory()
    dispatcher = AnalysisDispatcher(classifier, concurrency=4, sleep=recording_sleep)
    
    assert await dispatcher.dispatch([]) == []
    assert classifier.calls == []
    assert recording_sleep.delays == []


@pytest.mark.asyncio
async def test_sequential_and_concurrent_results_match(classifier_factory, recording_sleep):
    items = make_items("a complaint", "hello", "another complaint", "boom", "thanks")
    
    sequential = await AnalysisDispatcher(classifier_factory(), concurrency=1, sleep=recording_sleep).dispatch(items)
    concurrent = await AnalysisDispatcher(classifier_factory(), concurrency=5, sleep=recording_sleep).dispatch(items)
    
    assert [(o.item, o.result, o.error) for o in sequential] == [(o.item, o.result, o.error) for o in concurrent]


@pytest.mark.asyncio
async def test_sequential_outcome_handled_before_next_call(events, event_sleep):
    async def on_outcome(outcome):
        events.append(("outcome", outcome.item.subject))
    
    dispatcher = AnalysisDispatcher(EventLogClassifier(events), concurrency=1, inter_call_delay=0, sleep=event_sleep)
    
    await dispatcher.dispatch(make_items("a", "b"), on_outcome=on_outcome)
    
    assert events == [
        ("call", "subject-1"),
        ("outcome", "subject-1"),
        ("call", "subject-2"),
        ("outcome", "subject-2"),
    ]


@pytest.mark.asyncio
async def test_chunk_outcomes_handled_before_next_chunk(events, event_sleep):
    async def on_outcome(outcome):
        events.append(("outcome", outcome.item.subject))
    
    dispatcher = AnalysisDispatcher(EventLogClassifier(events), concurrency=2, inter_call_delay=0, sleep=event_sleep)
    
    outcomes = await dispatcher.dispatch(make_items("a", "b", "c"), on_outcome=on_outcome)
    
    assert len(outcomes) == 3
    third_call = events.index(("call", "subject-3"))
    assert ("outcome", "subject-1") in events[:third_call]
    assert ("outcome", "subject-2") in events[:third_call]
    assert events[-1] == ("outcome", "subject-3")
