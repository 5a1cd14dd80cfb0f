"""Unit test fixtures (fakes and stubs).

Provides in-memory stand-ins for Redis, the Mail Source and the
Classifier so the pipeline can be exercised without external services.
"""

import asyncio
from typing import Optional
from unittest.mock import AsyncMock

import pytest

from claim_detection.mail.exceptions import MailSourceRequestError
from claim_detection.models.classification import ClassificationResult
from claim_detection.models.enums import ClaimCategory, Severity
from claim_detection.models.message import MessageSummary
from claim_detection.persistence.repository import ClaimRepository


class FakeAsyncRedis:
    """In-memory subset of redis.asyncio.Redis (decode_responses=True)."""

    def __init__(self):
        self.strings: dict[str, str] = {}
        self.zsets: dict[str, dict[str, float]] = {}
        self.lists: dict[str, list[str]] = {}

    async def exists(self, *keys):
        return sum(1 for k in keys if k in self.strings)

    async def get(self, key):
        return self.strings.get(key)

    async def set(self, key, value, nx=False):
        if nx and key in self.strings:
            return None
        self.strings[key] = str(value)
        return True

    async def incr(self, key):
        value = int(self.strings.get(key, 0)) + 1
        self.strings[key] = str(value)
        return value

    async def mget(self, keys):
        return [self.strings.get(k) for k in keys]

    async def zadd(self, name, mapping):
        zset = self.zsets.setdefault(name, {})
        added = sum(1 for m in mapping if m not in zset)
        zset.update({str(m): float(s) for m, s in mapping.items()})
        return added

    async def zrevrange(self, name, start, end):
        members = sorted(self.zsets.get(name, {}).items(), key=lambda kv: (kv[1], kv[0]), reverse=True)
        return [m for m, _ in self._slice(members, start, end)]

    async def zcard(self, name):
        return len(self.zsets.get(name, {}))

    async def lpush(self, key, *values):
        items = self.lists.setdefault(key, [])
        for value in values:
            items.insert(0, str(value))
        return len(items)

    async def ltrim(self, key, start, end):
        self.lists[key] = self._slice(self.lists.get(key, []), start, end)
        return True

    async def lrange(self, key, start, end):
        return self._slice(self.lists.get(key, []), start, end)

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            for store in (self.strings, self.zsets, self.lists):
                if store.pop(key, None) is not None:
                    removed += 1
        return removed

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    async def ping(self):
        return True

    async def aclose(self):
        return None

    @staticmethod
    def _slice(items, start, end):
        # Redis ranges are inclusive and accept -1 for "last"
        stop = None if end == -1 else end + 1
        return list(items[start:stop])


class FakePipeline:
    """Queues set/zadd calls and applies them in order on execute()."""

    def __init__(self, redis: FakeAsyncRedis):
        self.redis = redis
        self.commands: list[tuple[str, tuple, dict]] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.commands.clear()

    def set(self, *args, **kwargs):
        self.commands.append(("set", args, kwargs))
        return self

    def zadd(self, *args, **kwargs):
        self.commands.append(("zadd", args, kwargs))
        return self

    async def execute(self):
        commands, self.commands = self.commands, []
        return [await getattr(self.redis, name)(*args, **kwargs) for name, args, kwargs in commands]


class FakeMailSource:
    """Mail Source serving a fixed set of MessageDetail objects."""

    def __init__(self, details=(), fail_ids=(), list_error: Optional[Exception] = None):
        self.details = {d.id: d for d in details}
        self.fail_ids = set(fail_ids)
        self.list_error = list_error
        self.list_calls: list[dict] = []
        self.detail_calls: list[tuple[str, Optional[str]]] = []

    async def list_messages(self, since=None, date_range=None, mailbox=None):
        self.list_calls.append({"since": since, "date_range": date_range, "mailbox": mailbox})
        if self.list_error is not None:
            raise self.list_error
        return [
            MessageSummary(id=d.id, subject=d.subject, received_at=d.received_at)
            for d in self.details.values()
        ]

    async def get_message_detail(self, message_id, mailbox=None):
        self.detail_calls.append((message_id, mailbox))
        if message_id in self.fail_ids:
            raise MailSourceRequestError(f"Graph request failed: 404 for {message_id}")
        return self.details[message_id]


class FakeClassifier:
    """
    Keyword classifier: "complaint" in the text is a claim, "boom" raises.

    Tracks calls and the peak number of calls in flight.
    """

    def __init__(self, gate: Optional[asyncio.Event] = None):
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.gate = gate
        self.started = asyncio.Event()

    async def classify(self, text, subject, sender, *, debug=False):
        self.calls.append(subject)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.started.set()
        try:
            if self.gate is not None:
                await self.gate.wait()
            await asyncio.sleep(0)
            if "boom" in text:
                raise RuntimeError("completion backend exploded")
            if "complaint" in text:
                return ClassificationResult(
                    is_claim=True,
                    confidence=90,
                    category=ClaimCategory.ANSWER_DELAY,
                    severity=Severity.HIGH,
                    reason="customer is chasing a reply",
                    keywords=["complaint"],
                    summary=subject,
                )
            return ClassificationResult(
                is_claim=False,
                confidence=10,
                category=ClaimCategory.NOT_CLAIM,
                severity=Severity.LOW,
                summary=subject,
            )
        finally:
            self.in_flight -= 1


@pytest.fixture
def fake_redis() -> FakeAsyncRedis:
    return FakeAsyncRedis()


@pytest.fixture
def fake_redis_factory():
    return FakeAsyncRedis


@pytest.fixture
def repository(fake_redis, test_settings) -> ClaimRepository:
    """ClaimRepository over the in-memory Redis."""
    return ClaimRepository(fake_redis, test_settings)


@pytest.fixture
def fake_classifier() -> FakeClassifier:
    return FakeClassifier()


@pytest.fixture
def recording_sleep():
    """Awaitable sleep that records requested delays instead of waiting."""
    delays: list[float] = []

    async def _sleep(seconds):
        delays.append(seconds)

    _sleep.delays = delays
    return _sleep


@pytest.fixture
def mock_backend_launcher():
    launcher = AsyncMock()
    launcher.ensure_running = AsyncMock(return_value=None)
    return launcher


@pytest.fixture
def mail_source_factory():
    """FakeMailSource class, for tests that need several configurations."""
    return FakeMailSource


@pytest.fixture
def classifier_factory():
    """FakeClassifier class (pass gate=asyncio.Event() to hold calls open)."""
    return FakeClassifier
