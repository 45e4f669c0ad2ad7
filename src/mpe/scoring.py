"""Pluggable scoring strategies for evaluations and A/B tests.

A real evaluator replaces :class:`RandomScorer` while keeping the
``(content, config) -> score in [0, 1]`` call shape.
"""

from __future__ import annotations

import random
from typing import Callable

from mpe.schemas.evaluation import EvaluationConfig

ScoreFn = Callable[[str, EvaluationConfig], float]
ConfidenceFn = Callable[[], float]

# evaluation_type -> (low, high) bounds of the placeholder score
SCORE_RANGES: dict[str, tuple[float, float]] = {
    "performance": (0.7, 1.0),
    "cost": (0.5, 1.0),
    "bias": (0.8, 1.0),
    "quality": (0.6, 1.0),
}
CONFIDENCE_RANGE = (0.7, 1.0)


class RandomScorer:
    """Placeholder evaluator drawing uniform scores per evaluation type."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def __call__(self, content: str, config: EvaluationConfig) -> float:
        low, high = SCORE_RANGES[config.evaluation_type]
        return low + self._rng.random() * (high - low)

    def confidence(self) -> float:
        low, high = CONFIDENCE_RANGE
        return low + self._rng.random() * (high - low)
