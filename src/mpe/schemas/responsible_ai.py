from __future__ import annotations

import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictStr

BiasType = Literal["gender", "race", "age", "religion", "socioeconomic"]


class BiasCheckRequest(BaseModel):
    content: StrictStr
    template_id: str | None = None


class BiasCategory(BaseModel):
    type: BiasType
    score: float = Field(..., ge=0, le=1)
    evidence: list[str] = Field(default_factory=list)


class BiasDetectionResult(BaseModel):
    overall_score: float = Field(..., ge=0, le=1)
    categories: list[BiasCategory] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    detected_at: datetime.datetime


class EthicsReport(BaseModel):
    is_ethical: bool
    score: float = Field(..., ge=0, le=1)
    violations: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class OverallAssessment(BaseModel):
    score: float
    is_recommended: bool
    summary: str


class PromptAnalysis(BaseModel):
    bias_detection: BiasDetectionResult
    ethics_validation: EthicsReport
    overall_assessment: OverallAssessment


class EthicalTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    template: str = Field(..., min_length=1)
    ethical_guidelines: list[str]
    tags: list[str] = Field(default_factory=list)


class EthicalTemplateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str
    template: str
    ethical_guidelines: list[str]
    tags: list[str]
