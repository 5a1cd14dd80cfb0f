"""
Plain-text extraction from fetched messages.

The analyzed text is the subject followed by the body. HTML bodies are
parsed with BeautifulSoup: script, style and head content is dropped,
entities are decoded and whitespace is collapsed.
"""

import re

from bs4 import BeautifulSoup

from claim_detection.models.message import MessageDetail


WHITESPACE_PATTERN = re.compile(r"\s+")
NON_TEXT_TAGS = ["script", "style", "head"]


def strip_html(html: str) -> str:
    """Convert an HTML body to a single line of readable text."""
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(NON_TEXT_TAGS):
        tag.decompose()

    text = soup.get_text(separator=" ")
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def extract_text(message: MessageDetail) -> str:
    """
    Build the text sent for analysis: "<subject> <body>", trimmed.

    Examples:
        >>> extract_text(MessageDetail(id="1", subject="Hi", body_content="<p>a</p>", body_content_type="html"))
        'Hi a'
    """
    text = message.subject or ""
    if message.body_content:
        if message.body_content_type.lower() == "html":
            text += " " + strip_html(message.body_content)
        else:
            text += " " + message.body_content
    return text.strip()
