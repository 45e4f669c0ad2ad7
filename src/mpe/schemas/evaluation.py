from __future__ import annotations

import datetime
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, Field, StrictInt, StrictStr

if TYPE_CHECKING:
    from mpe.models.evaluation import CostAnalyticsRecord, PromptEvaluation

EvaluationType = Literal["performance", "cost", "bias", "quality"]


class CostModel(BaseModel):
    input_token_cost: float = Field(..., ge=0)
    output_token_cost: float = Field(..., ge=0)


class EvaluationConfig(BaseModel):
    evaluation_type: EvaluationType
    test_dataset: list[str] | None = None
    cost_model: CostModel | None = None


class EvaluationCreate(BaseModel):
    prompt_id: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)
    content: StrictStr
    config: EvaluationConfig


class EvaluationOut(BaseModel):
    id: str
    prompt_id: str
    version: str
    evaluation_type: EvaluationType
    score: float = Field(..., ge=0, le=1)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime.datetime

    @classmethod
    def from_model(cls, evaluation: PromptEvaluation) -> EvaluationOut:
        return cls(
            id=evaluation.id,
            prompt_id=evaluation.prompt_id,
            version=evaluation.version,
            evaluation_type=evaluation.evaluation_type,
            score=evaluation.score,
            metadata=dict(evaluation.details or {}),
            created_at=evaluation.created_at,
        )


class VersionComparison(BaseModel):
    version1_score: float
    version2_score: float
    winner: str
    improvements: list[str]


class ABVariantResult(BaseModel):
    score: float
    confidence: float


class ABTestResult(BaseModel):
    version_a: ABVariantResult
    version_b: ABVariantResult
    recommendation: str


class CostUsage(BaseModel):
    prompt_id: str = Field(..., min_length=1)
    calls: StrictInt = Field(..., ge=0)
    input_tokens: StrictInt = Field(..., ge=0)
    output_tokens: StrictInt = Field(..., ge=0)
    cost_model: CostModel | None = None


class CostBreakdown(BaseModel):
    input_tokens: int
    output_tokens: int
    model_cost: float


class TimeRange(BaseModel):
    start: datetime.datetime
    end: datetime.datetime


class CostAnalytics(BaseModel):
    prompt_id: str
    total_cost: float
    average_cost_per_call: float
    total_calls: int
    cost_breakdown: CostBreakdown
    time_range: TimeRange

    @classmethod
    def from_record(cls, record: CostAnalyticsRecord) -> CostAnalytics:
        return cls(
            prompt_id=record.prompt_id,
            total_cost=record.total_cost,
            average_cost_per_call=record.average_cost_per_call,
            total_calls=record.total_calls,
            cost_breakdown=CostBreakdown(
                input_tokens=record.input_tokens,
                output_tokens=record.output_tokens,
                model_cost=record.model_cost,
            ),
            time_range=TimeRange(start=record.range_start, end=record.range_end),
        )


class BatchItem(BaseModel):
    id: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)
    content: StrictStr


class BatchEvaluationRequest(BaseModel):
    prompts: list[BatchItem]
    evaluation_type: EvaluationType


class BatchSummary(BaseModel):
    total: int
    average_score: float


class BatchEvaluationResult(BaseModel):
    results: list[EvaluationOut]
    summary: BatchSummary
