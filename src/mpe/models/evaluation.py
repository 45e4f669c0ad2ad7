from __future__ import annotations

import datetime
from typing import Any

from sqlalchemy import JSON, CheckConstraint, DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from mpe.models.base import Base, new_id, utcnow


class PromptEvaluation(Base):
    """Append-only record of one evaluation run against a prompt version."""

    __tablename__ = "prompt_evaluations"
    __table_args__ = (CheckConstraint("score >= 0 AND score <= 1", name="ck_evaluation_score"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    prompt_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    version: Mapped[str] = mapped_column(String(32), nullable=False)
    evaluation_type: Mapped[str] = mapped_column(String(16), nullable=False)
    score: Mapped[float] = mapped_column(Float, nullable=False)
    # "metadata" is reserved on declarative classes.
    details: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<PromptEvaluation(prompt_id={self.prompt_id!r}, v={self.version}, "
            f"{self.evaluation_type}={self.score:.3f})>"
        )


class CostAnalyticsRecord(Base):
    """Latest cost computation per prompt (last write wins)."""

    __tablename__ = "cost_analytics"

    prompt_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    total_cost: Mapped[float] = mapped_column(Float, nullable=False)
    average_cost_per_call: Mapped[float] = mapped_column(Float, nullable=False)
    total_calls: Mapped[int] = mapped_column(Integer, nullable=False)
    input_tokens: Mapped[int] = mapped_column(Integer, nullable=False)
    output_tokens: Mapped[int] = mapped_column(Integer, nullable=False)
    model_cost: Mapped[float] = mapped_column(Float, nullable=False)
    range_start: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    range_end: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
