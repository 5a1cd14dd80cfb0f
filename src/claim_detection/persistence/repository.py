"""
Repository pattern for Redis-based persistence of messages, classifications
and processing runs.

Storage Strategy (all keys under "{REDIS_KEY_PREFIX}:"):
- Messages: JSON string "message:{id}", id from counter "message:seq"
- Dedup: "message:ext:{external_id}" -> id (SET NX, insert-or-ignore)
- Message index: sorted set "messages:index" (score = received timestamp)
- Classifications: JSON string "classification:{id}", counter "classification:seq"
- One verdict per message: "classification:by_message:{message_id}" -> id (SET NX)
- Classification index: sorted set "classifications:index" (score = received timestamp)
- Runs: list "runs" with JSON entries (LPUSH, newest first, trimmed)
- Incremental cursor: "runs:last_success" -> ISO completion time of the last successful run
"""

import json
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import structlog
from redis.asyncio import Redis as AsyncRedis

from claim_detection.config import Settings
from claim_detection.models.classification import (
    ClassificationRecord,
    ClassificationResult,
    MessageRecord,
)
from claim_detection.models.message import MessageDetail
from claim_detection.models.run import (
    ClaimStats,
    ClassificationFilters,
    MessageFilters,
    ProcessingRun,
)
from claim_detection.models.enums import RunStatus
from claim_detection.persistence.exceptions import (
    DuplicateClassificationError,
    UnknownMessageError,
)

logger = structlog.get_logger(__name__)

RECENT_CLAIMS_WINDOW = timedelta(days=7)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    return _as_utc(datetime.fromisoformat(value))


def _in_window(value: Optional[datetime], date_from: Optional[datetime], date_to: Optional[datetime]) -> bool:
    """Inclusive window check; a message without a timestamp only passes an open window."""
    date_from, date_to = _as_utc(date_from), _as_utc(date_to)
    if date_from is None and date_to is None:
        return True
    if value is None:
        return False
    if date_from is not None and value < date_from:
        return False
    if date_to is not None and value > date_to:
        return False
    return True


def _sender_matches(message: dict, needle: Optional[str]) -> bool:
    if not needle:
        return True
    needle = needle.lower()
    return (
        needle in (message.get("sender_address") or "").lower()
        or needle in (message.get("sender_name") or "").lower()
    )


class ClaimRepository:
    """
    Store collaborator of the processing pipeline plus reporting queries.

    Uses the async Redis client; all JSON payloads are pydantic dumps
    (mode="json"), so datetimes are ISO strings.
    """

    def __init__(self, redis_client: AsyncRedis, settings: Settings):
        """
        Initialize repository.

        Args:
            redis_client: AsyncRedis client instance (decode_responses=True)
            settings: Application settings
        """
        self.redis = redis_client
        self.settings = settings
        self.prefix = settings.REDIS_KEY_PREFIX
        self.run_log_max_entries = settings.RUN_LOG_MAX_ENTRIES

    def _key(self, *parts: Any) -> str:
        return ":".join([self.prefix, *(str(p) for p in parts)])

    # === Store contract used by the pipeline ===

    async def is_message_recorded(self, external_id: str) -> bool:
        return bool(await self.redis.exists(self._key("message", "ext", external_id)))

    async def save_message(self, message: MessageDetail) -> int:
        """
        Persist a message (insert-or-ignore).

        Returns:
            Internal id; the existing id when the external id is already stored
        """
        ext_key = self._key("message", "ext", message.id)
        existing = await self.redis.get(ext_key)
        if existing is not None:
            logger.debug("Message already stored", external_id=message.id, message_id=int(existing))
            return int(existing)

        message_id = int(await self.redis.incr(self._key("message", "seq")))
        claimed = await self.redis.set(ext_key, message_id, nx=True)
        if not claimed:
            # Lost a race with a concurrent insert of the same message
            existing = await self.redis.get(ext_key)
            return int(existing)

        created_at = datetime.now(timezone.utc)
        payload = {
            **message.model_dump(mode="json"),
            "external_id": message.id,
            "id": message_id,
            "created_at": created_at.isoformat(),
        }
        score = (_as_utc(message.received_at) or created_at).timestamp()

        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.set(self._key("message", message_id), json.dumps(payload, ensure_ascii=False))
                pipe.zadd(self._key("messages", "index"), {str(message_id): score})
                await pipe.execute()
        except Exception:
            # Release the claim so the message is not treated as recorded
            await self.redis.delete(ext_key)
            logger.error("Failed to save message, claim released", external_id=message.id, message_id=message_id)
            raise

        logger.info("Saved message", message_id=message_id, external_id=message.id)
        return message_id

    async def save_classification(self, message_id: int, result: ClassificationResult) -> int:
        """
        Persist the verdict for a stored message.

        Raises:
            UnknownMessageError: message_id was never saved
            DuplicateClassificationError: The message already has a verdict
        """
        raw_message = await self.redis.get(self._key("message", message_id))
        if raw_message is None:
            raise UnknownMessageError(
                f"Message {message_id} does not exist",
                details={"message_id": message_id}
            )

        classification_id = int(await self.redis.incr(self._key("classification", "seq")))
        link_key = self._key("classification", "by_message", message_id)
        if not await self.redis.set(link_key, classification_id, nx=True):
            raise DuplicateClassificationError(
                f"Message {message_id} already has a classification",
                details={"message_id": message_id}
            )

        analyzed_at = datetime.now(timezone.utc)
        payload = {
            **result.model_dump(mode="json", exclude={"raw_response"}),
            "id": classification_id,
            "message_id": message_id,
            "analyzed_at": analyzed_at.isoformat(),
        }
        await self.redis.set(
            self._key("classification", classification_id),
            json.dumps(payload, ensure_ascii=False)
        )

        message = json.loads(raw_message)
        score = (_parse_datetime(message.get("received_at")) or analyzed_at).timestamp()
        await self.redis.zadd(self._key("classifications", "index"), {str(classification_id): score})

        logger.info(
            "Saved classification",
            classification_id=classification_id,
            message_id=message_id,
            is_claim=result.is_claim,
            category=result.category.value
        )
        return classification_id

    async def get_last_successful_run_completion(self) -> Optional[datetime]:
        return _parse_datetime(await self.redis.get(self._key("runs", "last_success")))

    async def record_run(self, run: ProcessingRun) -> int:
        """Append a run to the run log; a successful run advances the incremental cursor."""
        run_id = int(await self.redis.incr(self._key("runs", "seq")))
        stored = run.model_copy(update={"id": run_id})

        runs_key = self._key("runs")
        await self.redis.lpush(runs_key, stored.model_dump_json())
        await self.redis.ltrim(runs_key, 0, self.run_log_max_entries - 1)

        if run.status == RunStatus.SUCCESS:
            await self.redis.set(
                self._key("runs", "last_success"),
                _as_utc(run.completed_at).isoformat()
            )

        logger.info(
            "Recorded processing run",
            run_id=run_id,
            status=run.status.value,
            messages_processed=run.messages_processed,
            claims_detected=run.claims_detected
        )
        return run_id

    # === Reporting queries ===

    async def _load_json(self, keys: list[str]) -> list[Optional[dict]]:
        if not keys:
            return []
        values = await self.redis.mget(keys)
        return [json.loads(v) if v is not None else None for v in values]

    async def _all_classifications(self) -> list[tuple[dict, dict]]:
        """(classification, message) pairs, newest received first."""
        ids = await self.redis.zrevrange(self._key("classifications", "index"), 0, -1)
        classifications = await self._load_json([self._key("classification", i) for i in ids])
        classifications = [c for c in classifications if c is not None]
        messages = await self._load_json([self._key("message", c["message_id"]) for c in classifications])
        return [(c, m) for c, m in zip(classifications, messages) if m is not None]

    async def list_classifications(self, filters: ClassificationFilters) -> list[ClassificationRecord]:
        records = []
        for classification, message in await self._all_classifications():
            if filters.claims_only and not classification["is_claim"]:
                continue
            if filters.category and classification["category"] != filters.category.value:
                continue
            if filters.severity and classification["severity"] != filters.severity.value:
                continue
            if filters.min_confidence is not None and classification["confidence"] < filters.min_confidence:
                continue
            if not _in_window(_parse_datetime(message.get("received_at")), filters.date_from, filters.date_to):
                continue
            if not _sender_matches(message, filters.sender):
                continue

            records.append(ClassificationRecord(
                **classification,
                external_id=message["external_id"],
                subject=message.get("subject") or "",
                sender_address=message.get("sender_address") or "",
                sender_name=message.get("sender_name") or "",
                received_at=message.get("received_at"),
                body_text=message.get("body_text") or "",
            ))
            if filters.limit and len(records) >= filters.limit:
                break

        logger.debug("Listed classifications", count=len(records))
        return records

    async def list_messages(self, filters: MessageFilters) -> list[MessageRecord]:
        ids = await self.redis.zrevrange(self._key("messages", "index"), 0, -1)
        messages = [m for m in await self._load_json([self._key("message", i) for i in ids]) if m]

        selected = [
            m for m in messages
            if _in_window(_parse_datetime(m.get("received_at")), filters.date_from, filters.date_to)
            and _sender_matches(m, filters.sender)
        ][:filters.limit]

        links = await self.redis.mget(
            [self._key("classification", "by_message", m["id"]) for m in selected]
        ) if selected else []
        verdicts = await self._load_json(
            [self._key("classification", link) for link in links if link is not None]
        )
        verdict_by_message = {v["message_id"]: v for v in verdicts if v}

        records = []
        for m in selected:
            verdict = verdict_by_message.get(m["id"], {})
            records.append(MessageRecord(
                id=m["id"],
                external_id=m["external_id"],
                internet_message_id=m.get("internet_message_id"),
                subject=m.get("subject") or "",
                sender_address=m.get("sender_address") or "",
                sender_name=m.get("sender_name") or "",
                received_at=m.get("received_at"),
                body_text=m.get("body_text") or "",
                mailbox=m.get("mailbox"),
                created_at=m["created_at"],
                is_claim=verdict.get("is_claim"),
                confidence=verdict.get("confidence"),
                category=verdict.get("category"),
                severity=verdict.get("severity"),
            ))
        return records

    async def get_claim_stats(self, now: Optional[datetime] = None) -> ClaimStats:
        now = _as_utc(now) or datetime.now(timezone.utc)
        recent_from = now - RECENT_CLAIMS_WINDOW

        by_category: Counter = Counter()
        by_severity: Counter = Counter()
        recent = 0
        for classification, message in await self._all_classifications():
            if not classification["is_claim"]:
                continue
            by_category[classification["category"]] += 1
            by_severity[classification["severity"]] += 1
            received_at = _parse_datetime(message.get("received_at"))
            if received_at is not None and received_at >= recent_from:
                recent += 1

        return ClaimStats(
            total_claims=sum(by_category.values()),
            total_messages=await self.redis.zcard(self._key("messages", "index")),
            claims_by_category=dict(by_category),
            claims_by_severity=dict(by_severity),
            recent_claims=recent,
        )

    async def recent_runs(self, limit: int = 20) -> list[ProcessingRun]:
        entries = await self.redis.lrange(self._key("runs"), 0, limit - 1)
        return [ProcessingRun.model_validate_json(e) for e in entries]

    async def ping(self) -> bool:
        return bool(await self.redis.ping())
