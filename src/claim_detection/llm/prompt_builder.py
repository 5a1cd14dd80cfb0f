"""
Prompt builder for completion requests.

Responsible for:
- Loading and rendering Jinja2 templates (system + user prompts)
- Truncating the message body at a sentence boundary
- Constructing complete CompletionRequest objects for analysis and reports
"""

from pathlib import Path
from typing import Sequence

import structlog
from jinja2 import Environment, FileSystemLoader

from claim_detection.llm.text_utils import truncate_at_sentence_boundary
from claim_detection.models.classification import ClassificationRecord
from claim_detection.models.enums import ClaimCategory, Severity
from claim_detection.models.llm_models import CompletionRequest


logger = structlog.get_logger(__name__)


class PromptBuilder:
    """
    Build prompts for claim analysis and claim reports.

    Templates (in templates_dir):
    - system_prompt.txt: analysis system message
    - claim_analysis.txt: analysis user message (subject, sender, body)
    - report_system_prompt.txt: report system message
    - claim_report.txt: report user message (list of claims)
    """

    def __init__(
        self,
        templates_dir: Path,
        body_truncation_limit: int = 8000,
        response_language: str = "Japanese",
    ):
        """
        Initialize prompt builder.

        Args:
            templates_dir: Directory containing prompt templates
            body_truncation_limit: Max body characters sent to the model
            response_language: Language the model is asked to answer in
        """
        self.templates_dir = Path(templates_dir)
        self.body_truncation_limit = body_truncation_limit
        self.response_language = response_language

        self.jinja_env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            trim_blocks=True,
            lstrip_blocks=True,
            autoescape=False  # Prompts, not HTML
        )

        try:
            self.system_template = self.jinja_env.get_template("system_prompt.txt")
            self.analysis_template = self.jinja_env.get_template("claim_analysis.txt")
            self.report_system_template = self.jinja_env.get_template("report_system_prompt.txt")
            self.report_template = self.jinja_env.get_template("claim_report.txt")
            logger.info("Loaded prompt templates", templates_dir=str(self.templates_dir))
        except Exception as e:
            logger.error("Failed to load prompt templates", error=str(e))
            raise

    def build_system_prompt(self) -> str:
        return self.system_template.render(response_language=self.response_language).strip()

    def build_analysis_prompt(self, text: str, subject: str, sender: str) -> tuple[str, dict]:
        """
        Build the analysis user prompt for one message.

        Returns:
            Tuple of (rendered_prompt, metadata_dict)
        """
        body = truncate_at_sentence_boundary(text, self.body_truncation_limit)
        rendered = self.analysis_template.render(
            subject=subject or "(no subject)",
            sender=sender or "(unknown)",
            body=body,
            categories=ClaimCategory.model_values(),
            severities=Severity.model_values(),
        ).strip()

        metadata = {
            "truncation_applied": len(body) < len(text),
            "original_body_length": len(text),
            "truncated_body_length": len(body),
            "prompt_length": len(rendered),
        }
        logger.debug("Analysis prompt built", **metadata)
        return rendered, metadata

    def build_analysis_request(
        self,
        text: str,
        subject: str,
        sender: str,
        temperature: float,
        max_tokens: int,
    ) -> CompletionRequest:
        user_prompt, _ = self.build_analysis_prompt(text, subject, sender)
        return CompletionRequest(
            system_prompt=self.build_system_prompt(),
            user_prompt=user_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    def build_report_request(
        self,
        claims: Sequence[ClassificationRecord],
        temperature: float,
        max_tokens: int,
    ) -> CompletionRequest:
        """Build the summary-report request for a list of detected claims."""
        claim_dicts = [
            {
                "subject": c.subject,
                "category": c.category.value,
                "severity": c.severity.value,
                "summary": c.summary,
                "received_at": c.received_at.isoformat() if c.received_at else "unknown",
            }
            for c in claims
        ]
        user_prompt = self.report_template.render(claims=claim_dicts).strip()
        system_prompt = self.report_system_template.render(
            response_language=self.response_language
        ).strip()

        logger.info("Report prompt built", claims_count=len(claim_dicts), prompt_length=len(user_prompt))
        return CompletionRequest(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
        )
