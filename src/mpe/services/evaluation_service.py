"""Evaluation runs, cost accounting and version comparison."""

from __future__ import annotations

import datetime
import logging
import math
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from mpe.config import token_cost_rates
from mpe.exceptions import ScoringError
from mpe.models.base import utcnow
from mpe.models.evaluation import CostAnalyticsRecord, PromptEvaluation
from mpe.models.prompt import PromptVersion
from mpe.schemas import validate_input
from mpe.schemas.evaluation import (
    ABTestResult,
    ABVariantResult,
    BatchEvaluationRequest,
    BatchEvaluationResult,
    BatchSummary,
    CostAnalytics,
    CostUsage,
    EvaluationConfig,
    EvaluationCreate,
    EvaluationOut,
    VersionComparison,
)
from mpe.scoring import ConfidenceFn, RandomScorer, ScoreFn

logger = logging.getLogger(__name__)

COST_WINDOW = datetime.timedelta(days=30)

IMPROVED = ["Better performance metrics", "Improved response quality"]
NOT_IMPROVED = ["Consider reverting to previous version", "Review recent changes"]


class EvaluationService:
    """Ledger of evaluation and cost records keyed by prompt id and version."""

    def __init__(
        self,
        session: Session,
        score_fn: ScoreFn | None = None,
        confidence_fn: ConfidenceFn | None = None,
    ) -> None:
        self._session = session
        default = RandomScorer()
        self._score_fn = score_fn or default
        self._confidence_fn = confidence_fn or default.confidence

    def _score(self, content: str, config: EvaluationConfig) -> float:
        score = float(self._score_fn(content, config))
        if math.isnan(score) or not 0.0 <= score <= 1.0:
            raise ScoringError(f"Scorer returned {score!r} for {config.evaluation_type}.")
        return score

    # ------------------------------------------------------------------
    # Evaluations
    # ------------------------------------------------------------------

    def evaluate(
        self,
        prompt_id: str,
        version: str,
        content: str,
        config: EvaluationConfig | dict[str, Any],
    ) -> PromptEvaluation:
        """Score *content* and append the result to the ledger."""
        data = validate_input(
            EvaluationCreate, prompt_id=prompt_id, version=version, content=content, config=config
        )
        score = self._score(data.content, data.config)
        now = utcnow()
        evaluation = PromptEvaluation(
            prompt_id=data.prompt_id,
            version=data.version,
            evaluation_type=data.config.evaluation_type,
            score=score,
            details={
                "test_dataset_size": len(data.config.test_dataset or []),
                "evaluated_at": now.isoformat(),
                "config": data.config.model_dump(mode="json"),
            },
            created_at=now,
        )
        self._session.add(evaluation)
        self._session.flush()
        logger.info(
            "Evaluated %s v%s (%s): %.3f", prompt_id, version, evaluation.evaluation_type, score
        )
        return evaluation

    def batch_evaluate(
        self, items: list[dict[str, Any]], evaluation_type: str
    ) -> BatchEvaluationResult:
        """Evaluate several prompt versions under one evaluation type.

        Every item is validated before any score is recorded.
        """
        request = validate_input(
            BatchEvaluationRequest, prompts=items, evaluation_type=evaluation_type
        )
        config = {"evaluation_type": request.evaluation_type}
        results = [
            self.evaluate(item.id, item.version, item.content, config) for item in request.prompts
        ]
        scores = [e.score for e in results]
        return BatchEvaluationResult(
            results=[EvaluationOut.from_model(e) for e in results],
            summary=BatchSummary(
                total=len(results),
                average_score=sum(scores) / len(scores) if scores else 0.0,
            ),
        )

    def list_evaluations(self, prompt_id: str, version: str | None = None) -> list[PromptEvaluation]:
        stmt = select(PromptEvaluation).where(PromptEvaluation.prompt_id == prompt_id)
        if version is not None:
            stmt = stmt.where(PromptEvaluation.version == version)
        return list(self._session.execute(stmt.order_by(PromptEvaluation.created_at)).scalars())

    def _average_score(self, prompt_id: str, version: str) -> float:
        scores = [e.score for e in self.list_evaluations(prompt_id, version)]
        return sum(scores) / len(scores) if scores else 0.0

    def compare_versions(self, prompt_id: str, version1: str, version2: str) -> VersionComparison:
        """Compare mean recorded scores. Ties go to *version2*."""
        avg1 = self._average_score(prompt_id, version1)
        avg2 = self._average_score(prompt_id, version2)
        return VersionComparison(
            version1_score=avg1,
            version2_score=avg2,
            winner=version1 if avg1 > avg2 else version2,
            improvements=list(IMPROVED if avg2 > avg1 else NOT_IMPROVED),
        )

    # ------------------------------------------------------------------
    # Cost
    # ------------------------------------------------------------------

    def cost_analytics(
        self,
        prompt_id: str,
        calls: int,
        input_tokens: int,
        output_tokens: int,
        cost_model: dict[str, float] | None = None,
    ) -> CostAnalytics:
        """Compute cost from token counts and replace the stored record."""
        usage = validate_input(
            CostUsage,
            prompt_id=prompt_id,
            calls=calls,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost_model=cost_model,
        )
        if usage.cost_model is not None:
            input_rate = usage.cost_model.input_token_cost
            output_rate = usage.cost_model.output_token_cost
        else:
            input_rate, output_rate = token_cost_rates()

        total_cost = usage.input_tokens * input_rate + usage.output_tokens * output_rate
        now = utcnow()
        record = self._session.get(CostAnalyticsRecord, usage.prompt_id)
        if record is None:
            record = CostAnalyticsRecord(prompt_id=usage.prompt_id)
            self._session.add(record)
        record.total_cost = total_cost
        record.average_cost_per_call = total_cost / usage.calls if usage.calls else 0.0
        record.total_calls = usage.calls
        record.input_tokens = usage.input_tokens
        record.output_tokens = usage.output_tokens
        record.model_cost = total_cost
        record.range_start = now - COST_WINDOW
        record.range_end = now
        self._session.flush()
        return CostAnalytics.from_record(record)

    def get_cost_analytics(self, prompt_id: str) -> CostAnalytics | None:
        record = self._session.get(CostAnalyticsRecord, prompt_id)
        return CostAnalytics.from_record(record) if record is not None else None

    # ------------------------------------------------------------------
    # A/B testing
    # ------------------------------------------------------------------

    def _version_content(self, prompt_id: str, version: str) -> str:
        content = self._session.execute(
            select(PromptVersion.content).where(
                PromptVersion.prompt_id == prompt_id, PromptVersion.version == version
            )
        ).scalar_one_or_none()
        return content or ""

    def ab_test(
        self,
        prompt_id: str,
        version_a: str,
        version_b: str,
        config: EvaluationConfig | dict[str, Any],
    ) -> ABTestResult:
        """Score two versions side by side. Nothing is recorded."""
        test_config = validate_input(EvaluationConfig, **_as_dict(config))
        score_a = self._score(self._version_content(prompt_id, version_a), test_config)
        score_b = self._score(self._version_content(prompt_id, version_b), test_config)
        confidence = self._confidence_fn()

        if score_a > score_b:
            recommendation = (
                f"Version A performs better ({score_a * 100:.1f}% vs {score_b * 100:.1f}%)"
            )
        else:
            recommendation = (
                f"Version B performs better ({score_b * 100:.1f}% vs {score_a * 100:.1f}%)"
            )
        return ABTestResult(
            version_a=ABVariantResult(score=score_a, confidence=confidence),
            version_b=ABVariantResult(score=score_b, confidence=confidence),
            recommendation=recommendation,
        )


def _as_dict(config: EvaluationConfig | dict[str, Any]) -> dict[str, Any]:
    if isinstance(config, EvaluationConfig):
        return config.model_dump()
    return config
