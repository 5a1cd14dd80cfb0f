"""
Mail Source interface consumed by the processing pipeline.

Any provider works as long as it lists candidate messages newest-first
(capped at a page size) and fetches full message detail by id.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol, Sequence, runtime_checkable

from claim_detection.models.message import DateRange, MessageDetail, MessageSummary


@runtime_checkable
class MailSource(Protocol):
    """Read-only mailbox collaborator."""

    async def list_messages(
        self,
        since: Optional[datetime] = None,
        date_range: Optional[DateRange] = None,
        mailbox: Optional[str] = None,
    ) -> Sequence[MessageSummary]:
        """
        List candidate messages, newest first.

        Exactly one of `since` (incremental, strictly after) or `date_range`
        (inclusive window) is normally given; neither lists the latest page.
        """
        ...

    async def get_message_detail(
        self,
        message_id: str,
        mailbox: Optional[str] = None,
    ) -> MessageDetail:
        ...


def build_date_range(
    days: Optional[int] = None,
    hours: Optional[int] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> DateRange:
    """
    Resolve relative and absolute range options into a DateRange.

    An explicit start wins; otherwise `days` then `hours` look back from now.
    The end stays open unless given explicitly.

    Examples:
        >>> build_date_range(days=1, now=datetime(2024, 5, 2, tzinfo=timezone.utc)).start
        datetime.datetime(2024, 5, 1, 0, 0, tzinfo=datetime.timezone.utc)
    """
    now = now or datetime.now(timezone.utc)
    range_start = start

    if range_start is None and days:
        range_start = now - timedelta(days=days)
    if range_start is None and hours:
        range_start = now - timedelta(hours=hours)

    return DateRange(start=range_start, end=end)
