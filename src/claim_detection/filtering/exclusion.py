"""
Exclusion Filter: exempt bulk/automated mail from claim analysis.

Rules file format (JSON):

    {
      "excludeFromClaimDetection": {
        "emails": ["noreply@example.com"],
        "domains": ["mailchimp.com"],
        "subjectPatterns": ["^\\\\[Newsletter\\\\]", "unsubscribe"]
      }
    }

A missing or malformed file yields an empty rule set: classification is
fail-open, never blocked by a configuration error.
"""

import json
import re
from pathlib import Path
from typing import Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError


logger = structlog.get_logger(__name__)


class ExclusionRule(BaseModel):
    """Declarative exclusion rule set (read-only once loaded)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    emails: tuple[str, ...] = Field(default=())
    domains: tuple[str, ...] = Field(default=())
    subject_patterns: tuple[str, ...] = Field(default=(), alias="subjectPatterns")


def load_exclusion_rule(path: Union[str, Path]) -> ExclusionRule:
    """
    Load the exclusion rule set from a JSON file.

    Never raises: a missing file, invalid JSON or an unexpected shape
    all produce an empty ExclusionRule.
    """
    path = Path(path)
    if not path.exists():
        logger.info("No exclusion list found, proceeding without filters", path=str(path))
        return ExclusionRule()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        section = data.get("excludeFromClaimDetection") or {}
        rule = ExclusionRule.model_validate(section)
    except (OSError, ValueError, AttributeError, ValidationError) as e:
        # ValueError covers json.JSONDecodeError
        logger.error(
            "Error loading exclusion list, proceeding without filters",
            path=str(path),
            error=str(e),
            error_type=type(e).__name__
        )
        return ExclusionRule()

    logger.info(
        "Exclusion list loaded",
        path=str(path),
        emails=len(rule.emails),
        domains=len(rule.domains),
        subject_patterns=len(rule.subject_patterns)
    )
    return rule


class ExclusionFilter:
    """
    Decide whether a message is exempt from classification.

    Rules, any match excludes:
    1. Sender address (case-insensitive) is in the address set
    2. Sender domain (case-insensitive) is in the domain set; the domain is
       the part between the first and second "@", so "a@b@c.com" has domain "b"
    3. Subject matches a subject pattern (case-insensitive search)

    Patterns are compiled once; a malformed pattern is skipped with a warning.
    """

    def __init__(self, rule: Optional[ExclusionRule] = None):
        self.rule = rule or ExclusionRule()
        self._emails = frozenset(e.strip().lower() for e in self.rule.emails if e)
        self._domains = frozenset(d.strip().lower() for d in self.rule.domains if d)
        self._patterns: list[re.Pattern] = []

        for pattern in self.rule.subject_patterns:
            try:
                self._patterns.append(re.compile(pattern, re.IGNORECASE))
            except re.error as e:
                logger.warning("Invalid subject pattern skipped", pattern=pattern, error=str(e))

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ExclusionFilter":
        return cls(load_exclusion_rule(path))

    def should_exclude(self, sender_address: Optional[str], subject: Optional[str]) -> bool:
        address = (sender_address or "").strip().lower()
        subject = subject or ""

        if address and address in self._emails:
            return True

        parts = address.split("@")
        if len(parts) > 1 and parts[1] in self._domains:
            return True

        return any(p.search(subject) for p in self._patterns)
