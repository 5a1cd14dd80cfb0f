"""
Mail Source collaborators.

- base: MailSource protocol and date-range resolution
- graph_client: Microsoft Graph implementation
- extraction: plain-text extraction for analysis
"""

from claim_detection.mail.base import MailSource, build_date_range
from claim_detection.mail.exceptions import (
    MailSourceConfigurationError,
    MailSourceConnectionError,
    MailSourceError,
    MailSourceRequestError,
)
from claim_detection.mail.extraction import extract_text, strip_html
from claim_detection.mail.graph_client import GraphMailSource

__all__ = [
    "GraphMailSource",
    "MailSource",
    "MailSourceConfigurationError",
    "MailSourceConnectionError",
    "MailSourceError",
    "MailSourceRequestError",
    "build_date_range",
    "extract_text",
    "strip_html",
]
