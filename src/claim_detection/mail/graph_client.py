"""
Microsoft Graph mail source.

Endpoints:
- GET /users/{mailbox}/messages: listing (newest first, $top page size)
- GET /users/{mailbox}/messages/{id}: full detail

Authentication is out of scope: a bearer token is supplied by configuration.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence

import httpx
import structlog

from claim_detection.mail.exceptions import (
    MailSourceConfigurationError,
    MailSourceConnectionError,
    MailSourceError,
    MailSourceRequestError,
)
from claim_detection.models.message import DateRange, MessageDetail, MessageSummary


logger = structlog.get_logger(__name__)

LIST_SELECT = "id,subject,body,from,receivedDateTime,hasAttachments,internetMessageId"
DETAIL_SELECT = (
    "id,subject,body,from,toRecipients,ccRecipients,receivedDateTime,"
    "hasAttachments,internetMessageId,sender"
)


def format_graph_datetime(value: datetime) -> str:
    """
    Format a datetime for an OData $filter (UTC, millisecond precision).

    Naive datetimes are taken to be UTC.

    Examples:
        >>> format_graph_datetime(datetime(2024, 5, 1, 9, 30))
        '2024-05-01T09:30:00.000Z'
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def build_filter(since: Optional[datetime], date_range: Optional[DateRange]) -> Optional[str]:
    """Build the receivedDateTime $filter; an explicit range wins over `since`."""
    conditions = []
    if date_range is not None:
        if date_range.start:
            conditions.append(f"receivedDateTime ge {format_graph_datetime(date_range.start)}")
        if date_range.end:
            conditions.append(f"receivedDateTime le {format_graph_datetime(date_range.end)}")
    elif since is not None:
        conditions.append(f"receivedDateTime gt {format_graph_datetime(since)}")
    return " and ".join(conditions) or None


def _address(entry: Optional[Dict[str, Any]]) -> tuple[str, str]:
    email = (entry or {}).get("emailAddress") or {}
    return email.get("address") or "", email.get("name") or ""


class GraphMailSource:
    """
    Mail Source backed by the Microsoft Graph REST API.

    Network errors, 429 and 5xx are retried with exponential backoff; other
    error statuses raise MailSourceRequestError immediately.
    """

    def __init__(
        self,
        base_url: str,
        access_token: Optional[str],
        default_mailbox: str,
        page_size: int = 50,
        timeout: int = 30,
        max_retries: int = 2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.access_token = access_token
        self.default_mailbox = default_mailbox
        self.page_size = page_size
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        logger.info(
            "Initialized Graph mail source",
            base_url=self.base_url,
            default_mailbox=default_mailbox,
            page_size=page_size
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if not self.access_token:
            raise MailSourceConfigurationError("GRAPH_ACCESS_TOKEN is not configured")
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers={"Authorization": f"Bearer {self.access_token}"},
                transport=self._transport,
            )
        return self._client

    def _mailbox(self, mailbox: Optional[str]) -> str:
        target = mailbox or self.default_mailbox
        if not target:
            raise MailSourceConfigurationError("No mailbox configured (MAILBOX_EMAIL)")
        return target

    async def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        last_error: Optional[MailSourceError] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                client = await self._get_client()
                response = await client.get(path, params=params)
                response.raise_for_status()
                data = response.json()

            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                details = {"status": status_code, "path": path, "error": e.response.text[:500]}
                logger.error("Graph HTTP error", attempt=attempt, **details)
                if status_code != 429 and status_code < 500:
                    raise MailSourceRequestError(f"Graph request failed: {status_code}", details=details)
                last_error = MailSourceRequestError(f"Graph request failed: {status_code}", details=details)

            except httpx.TransportError as e:
                logger.warning("Graph network error", attempt=attempt, path=path, error=str(e))
                last_error = MailSourceConnectionError(
                    f"Network error: {e}",
                    details={"path": path, "error_type": type(e).__name__}
                )

            except ValueError as e:
                raise MailSourceRequestError(
                    "Invalid JSON from Graph",
                    details={"path": path, "parse_error": str(e)}
                )

            else:
                if not isinstance(data, dict):
                    raise MailSourceRequestError("Unexpected Graph payload", details={"path": path})
                return data

            if attempt < self.max_retries:
                await asyncio.sleep(2 ** attempt)

        raise last_error

    async def list_messages(
        self,
        since: Optional[datetime] = None,
        date_range: Optional[DateRange] = None,
        mailbox: Optional[str] = None,
    ) -> Sequence[MessageSummary]:
        target = self._mailbox(mailbox)
        params: Dict[str, Any] = {
            "$select": LIST_SELECT,
            "$orderby": "receivedDateTime desc",
            "$top": self.page_size,
        }
        odata_filter = build_filter(since, date_range)
        if odata_filter:
            params["$filter"] = odata_filter

        data = await self._get(f"/users/{target}/messages", params)
        summaries = [
            MessageSummary(
                id=item["id"],
                subject=item.get("subject") or "",
                received_at=item.get("receivedDateTime"),
                mailbox=mailbox,
            )
            for item in data.get("value") or []
            if isinstance(item, dict) and item.get("id")
        ]

        logger.info(
            "Listed messages",
            mailbox=target,
            count=len(summaries),
            filter=odata_filter
        )
        return summaries

    async def get_message_detail(self, message_id: str, mailbox: Optional[str] = None) -> MessageDetail:
        target = self._mailbox(mailbox)
        data = await self._get(
            f"/users/{target}/messages/{message_id}",
            {"$select": DETAIL_SELECT},
        )

        sender_address, sender_name = _address(data.get("from") or data.get("sender"))
        body = data.get("body") or {}
        return MessageDetail(
            id=data.get("id") or message_id,
            internet_message_id=data.get("internetMessageId"),
            subject=data.get("subject") or "",
            sender_address=sender_address,
            sender_name=sender_name,
            to_recipients=[a for a, _ in map(_address, data.get("toRecipients") or []) if a],
            cc_recipients=[a for a, _ in map(_address, data.get("ccRecipients") or []) if a],
            received_at=data.get("receivedDateTime"),
            body_content=body.get("content") or "",
            body_content_type=body.get("contentType") or "text",
            has_attachments=bool(data.get("hasAttachments")),
            mailbox=mailbox,
        )

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            logger.debug("Closed Graph client")
