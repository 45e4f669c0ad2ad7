"""Bias detection, ethics validation and ethical prompt templates."""

from __future__ import annotations

import copy
import logging
import re
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from mpe.bias import LOW_BIAS_THRESHOLD, GuidelineCheck, detect_bias, score_ethics
from mpe.exceptions import NotFoundError
from mpe.models.ethics import EthicalTemplate
from mpe.schemas import validate_input
from mpe.schemas.responsible_ai import (
    BiasCheckRequest,
    BiasDetectionResult,
    EthicalTemplateCreate,
    EthicsReport,
    OverallAssessment,
    PromptAnalysis,
)

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\{\{\s*(\w+)\s*\}\}")

DEFAULT_TEMPLATES: tuple[dict[str, Any], ...] = (
    {
        "name": "Inclusive Assistant",
        "description": "Template for creating inclusive AI assistant prompts",
        "template": (
            "You are a helpful and inclusive AI assistant. When responding to questions "
            "about {{topic}}, ensure your responses are respectful to all individuals "
            "regardless of their background, identity, or beliefs. Provide balanced and "
            "factual information without bias."
        ),
        "ethical_guidelines": [
            "Use inclusive language",
            "Avoid stereotypes and generalizations",
            "Respect diversity of perspectives",
            "Provide balanced information",
        ],
        "tags": ["inclusive", "general", "assistant"],
    },
    {
        "name": "Educational Content Creator",
        "description": "Template for educational content that promotes learning without bias",
        "template": (
            "Create educational content about {{subject}} that is accessible to learners "
            "from diverse backgrounds. Ensure the content is factually accurate, culturally "
            "sensitive, and promotes critical thinking."
        ),
        "ethical_guidelines": [
            "Ensure factual accuracy",
            "Use culturally sensitive examples",
            "Promote critical thinking",
            "Be accessible to diverse learners",
        ],
        "tags": ["education", "inclusive", "learning"],
    },
    {
        "name": "Fair Analysis Framework",
        "description": "Template for conducting fair and unbiased analysis",
        "template": (
            "Analyze {{data_or_topic}} in a fair and objective manner. Consider multiple "
            "perspectives, acknowledge limitations in the data, and avoid drawing "
            "conclusions that could perpetuate bias or discrimination."
        ),
        "ethical_guidelines": [
            "Consider multiple perspectives",
            "Acknowledge data limitations",
            "Avoid discriminatory conclusions",
            "Maintain objectivity",
        ],
        "tags": ["analysis", "fairness", "objective"],
    },
)


class ResponsibleAIService:
    """Responsible-AI checks over prompt text."""

    def __init__(self, session: Session, guideline_check: GuidelineCheck | None = None) -> None:
        self._session = session
        self._guideline_check = guideline_check

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def detect_bias(self, content: str) -> BiasDetectionResult:
        request = validate_input(BiasCheckRequest, content=content)
        return detect_bias(request.content)

    def validate_ethics(self, content: str, template_id: str | None = None) -> EthicsReport:
        """Check *content* for harmful requests, bias and template guidelines.

        An unknown *template_id* is ignored.
        """
        request = validate_input(BiasCheckRequest, content=content, template_id=template_id)
        guidelines: list[str] = []
        if request.template_id:
            template = self.get_template(request.template_id)
            if template is None:
                logger.warning("Ethical template %s not found; skipping guidelines", template_id)
            else:
                guidelines = list(template.ethical_guidelines)
        return score_ethics(request.content, guidelines, self._guideline_check)

    def analyze_prompt(self, content: str, template_id: str | None = None) -> PromptAnalysis:
        """Combined bias and ethics report with an overall verdict."""
        bias = self.detect_bias(content)
        ethics = self.validate_ethics(content, template_id)
        recommended = ethics.is_ethical and bias.overall_score < LOW_BIAS_THRESHOLD
        return PromptAnalysis(
            bias_detection=bias,
            ethics_validation=ethics,
            overall_assessment=OverallAssessment(
                score=(ethics.score + (1 - bias.overall_score)) / 2,
                is_recommended=recommended,
                summary=(
                    "Prompt meets ethical guidelines and shows low bias"
                    if recommended
                    else "Prompt may need revision to improve ethical compliance and reduce bias"
                ),
            ),
        )

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def list_templates(self) -> list[EthicalTemplate]:
        return list(
            self._session.execute(
                select(EthicalTemplate).order_by(EthicalTemplate.created_at, EthicalTemplate.name)
            ).scalars()
        )

    def get_template(self, template_id: str) -> EthicalTemplate | None:
        return self._session.get(EthicalTemplate, template_id)

    def create_template(
        self,
        name: str,
        description: str,
        template: str,
        ethical_guidelines: list[str],
        tags: list[str] | None = None,
    ) -> EthicalTemplate:
        data = validate_input(
            EthicalTemplateCreate,
            name=name,
            description=description,
            template=template,
            ethical_guidelines=ethical_guidelines,
            tags=tags or [],
        )
        row = EthicalTemplate(**data.model_dump())
        self._session.add(row)
        self._session.flush()
        return row

    def apply_template(self, template_id: str, variables: dict[str, str]) -> str:
        """Substitute ``{{name}}`` placeholders. Unknown placeholders are left as-is."""
        template = self.get_template(template_id)
        if template is None:
            raise NotFoundError(f"Ethical template not found: {template_id}")

        def _replace(match: re.Match[str]) -> str:
            key = match.group(1)
            return str(variables[key]) if key in variables else match.group(0)

        return _PLACEHOLDER_RE.sub(_replace, template.template)

    def ensure_default_templates(self) -> int:
        """Seed the built-in templates that are missing. Returns how many were added."""
        existing = set(self._session.execute(select(EthicalTemplate.name)).scalars())
        added = 0
        for fields in DEFAULT_TEMPLATES:
            if fields["name"] in existing:
                continue
            self._session.add(EthicalTemplate(**copy.deepcopy(fields)))
            added += 1
        if added:
            self._session.flush()
            logger.debug("Seeded %d ethical templates", added)
        return added
