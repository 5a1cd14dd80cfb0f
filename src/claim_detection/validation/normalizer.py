"""
Response Normalizer: turn free-form model text into a ClassificationResult.

The Completion Service's output is untrusted free text. Unlike a hard-fail
validation stage, normalize() never raises: every malformed, truncated or
non-textual input is converted into a fully-populated ClassificationResult
carrying a parse_error descriptor.
"""

import json
import math
import re
from typing import Any, Optional

import structlog

from claim_detection.models.classification import ClassificationResult
from claim_detection.models.enums import ClaimCategory, Severity
from claim_detection.monitoring.metrics import normalization_failures_total

logger = structlog.get_logger(__name__)

LEADING_INT_PATTERN = re.compile(r"^\s*([+-]?\d+)")

EMPTY_RESPONSE_ERROR = "Empty or null response"
NO_JSON_ERROR = "No JSON structure found in response"


def find_json_span(text: str) -> Optional[str]:
    """
    Return the text from the first "{" to the last "}", or None.

    Examples:
        >>> find_json_span('noise {"a": {"b": 1}} tail')
        '{"a": {"b": 1}}'
        >>> find_json_span("}{") is None
        True
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        return None
    return text[start:end + 1]


def coerce_confidence(value: Any) -> int:
    """
    Parse a confidence value leniently and clamp it to [0, 100].

    Integers pass through, floats are truncated, strings contribute their
    leading integer ("85%" -> 85, "72.9" -> 72). Anything else, including
    booleans and non-finite floats, counts as 0.
    """
    if isinstance(value, bool):
        parsed = 0
    elif isinstance(value, int):
        parsed = value
    elif isinstance(value, float):
        parsed = int(value) if math.isfinite(value) else 0
    elif isinstance(value, str):
        match = LEADING_INT_PATTERN.match(value)
        parsed = int(match.group(1)) if match else 0
    else:
        parsed = 0
    return min(max(parsed, 0), 100)


def coerce_category(value: Any) -> ClaimCategory:
    if isinstance(value, str) and value in ClaimCategory.model_values():
        return ClaimCategory(value)
    return ClaimCategory.OTHER


def coerce_severity(value: Any) -> Severity:
    if isinstance(value, str) and value in Severity.model_values():
        return Severity(value)
    return Severity.MEDIUM


def coerce_keywords(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [item if isinstance(item, str) else json.dumps(item, ensure_ascii=False) for item in value]


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else ""


class ResponseNormalizer:
    """
    Extract and validate a structured classification from model text.

    Algorithm:
    1. Blank input -> default result ("empty response").
    2. First "{" to last "}" span; none -> default result.
    3. json.loads the span; failure -> default result with parser message.
    4. Coerce and clamp every field defensively.
    """

    def normalize(self, raw_text: Any, debug: bool = False) -> ClassificationResult:
        """
        Normalize raw model text into a ClassificationResult.

        Args:
            raw_text: Model output. Usually str, but None/bytes/other objects
                are tolerated.
            debug: Emit verbose diagnostic events

        Returns:
            Fully-populated ClassificationResult (never raises)
        """
        try:
            return self._normalize(raw_text, debug)
        except Exception as e:
            # Last-resort guard: coercion is already defensive
            normalization_failures_total.labels(reason="unexpected_error").inc()
            logger.error(
                "Unexpected error normalizing model response",
                error=str(e),
                error_type=type(e).__name__,
            )
            return ClassificationResult(
                reason=f"Failed to interpret model response: {e}",
                raw_response=raw_text if isinstance(raw_text, str) else None,
                parse_error=str(e),
            )

    def _normalize(self, raw_text: Any, debug: bool) -> ClassificationResult:
        text = self._to_text(raw_text)

        if debug:
            logger.info("Normalizing model response", length=len(text), raw_response=text)

        if not text.strip():
            normalization_failures_total.labels(reason="empty_response").inc()
            logger.warning("Model returned an empty response")
            return ClassificationResult(
                reason="empty response",
                raw_response=text,
                parse_error=EMPTY_RESPONSE_ERROR,
            )

        span = find_json_span(text)
        if span is None:
            normalization_failures_total.labels(reason="no_json").inc()
            logger.warning("No JSON structure in model response", snippet=text[:200])
            return ClassificationResult(
                reason="No JSON structure found in model response",
                raw_response=text,
                parse_error=NO_JSON_ERROR,
            )

        try:
            parsed = json.loads(span)
        except json.JSONDecodeError as e:
            normalization_failures_total.labels(reason="json_decode_error").inc()
            logger.warning(
                "Failed to parse JSON span from model response",
                parse_error=e.msg,
                line=e.lineno,
                col=e.colno,
            )
            if debug:
                logger.info("Unparseable JSON span", span=span[:500])
            return ClassificationResult(
                reason=f"JSON parse error: {e}",
                raw_response=text,
                parse_error=f"JSON parse failed: {e}",
            )

        if not isinstance(parsed, dict):
            # Cannot happen for a {...} span, kept for completeness
            normalization_failures_total.labels(reason="json_decode_error").inc()
            return ClassificationResult(
                reason=f"JSON parse error: expected object, got {type(parsed).__name__}",
                raw_response=text,
                parse_error=f"JSON parse failed: expected object, got {type(parsed).__name__}",
            )

        result = ClassificationResult(
            is_claim=bool(parsed.get("isClaim")),
            confidence=coerce_confidence(parsed.get("confidence")),
            category=coerce_category(parsed.get("category")),
            severity=coerce_severity(parsed.get("severity")),
            reason=_as_text(parsed.get("reason")),
            keywords=coerce_keywords(parsed.get("keywords")),
            summary=_as_text(parsed.get("summary")),
            raw_response=text,
        )

        if debug:
            logger.info(
                "Normalized model response",
                parsed_fields=sorted(parsed.keys()),
                category_in_taxonomy=parsed.get("category") in ClaimCategory.model_values(),
                severity_in_taxonomy=parsed.get("severity") in Severity.model_values(),
                result=result.model_dump(exclude={"raw_response"}, mode="json"),
            )

        return result

    @staticmethod
    def _to_text(raw_text: Any) -> str:
        if raw_text is None:
            return ""
        if isinstance(raw_text, str):
            return raw_text
        if isinstance(raw_text, (bytes, bytearray)):
            return bytes(raw_text).decode("utf-8", errors="replace")
        return str(raw_text)
