"""Keyword-based bias and ethics scoring for prompt text.

This is a fixed-rule classifier, not a model. Matching is case-insensitive
substring search, so ``"female"`` also counts as ``"male"``.
"""

from __future__ import annotations

import random
from typing import Callable

from mpe.models.base import utcnow
from mpe.schemas.responsible_ai import BiasCategory, BiasDetectionResult, EthicsReport

BIAS_KEYWORDS: dict[str, tuple[str, ...]] = {
    "gender": ("he/she", "he or she", "man/woman", "masculine", "feminine", "male", "female"),
    "race": ("race", "ethnicity", "color", "minority", "majority"),
    "age": ("young", "old", "elderly", "senior", "youth", "aged"),
    "religion": ("christian", "muslim", "jewish", "hindu", "buddhist", "religion", "religious"),
    "socioeconomic": ("poor", "rich", "wealthy", "poverty", "privileged", "class"),
}

HARMFUL_PATTERNS: tuple[str, ...] = (
    "generate fake news",
    "create misinformation",
    "write harassment",
    "create discriminatory",
    "generate illegal",
)

KEYWORD_WEIGHT = 0.2
CATEGORY_SUGGESTION_THRESHOLD = 0.3
GENERAL_SUGGESTION_THRESHOLD = 0.5
VIOLATION_PENALTY = 0.2
ETHICAL_SCORE_THRESHOLD = 0.7
LOW_BIAS_THRESHOLD = 0.3

GENERAL_SUGGESTIONS = (
    "Consider reviewing prompt for potential bias and using neutral language",
    "Test prompt with diverse scenarios to ensure fair outputs",
)
ETHICS_RECOMMENDATIONS = (
    "Consider revising prompt to be more inclusive and ethical",
    "Review ethical guidelines for prompt creation",
)

# (content, guideline) -> True when the guideline is judged violated
GuidelineCheck = Callable[[str, str], bool]


def random_guideline_check(rng: random.Random | None = None) -> GuidelineCheck:
    """Stand-in guideline check that flags roughly one guideline in five."""
    source = rng or random.Random()

    def check(content: str, guideline: str) -> bool:
        return source.random() > 0.8

    return check


def detect_bias(content: str) -> BiasDetectionResult:
    """Score *content* against every bias category."""
    lowered = content.lower()
    categories: list[BiasCategory] = []
    suggestions: list[str] = []
    total = 0.0

    for bias_type, keywords in BIAS_KEYWORDS.items():
        found = [kw for kw in keywords if kw in lowered]
        if not found:
            continue
        score = min(len(found) * KEYWORD_WEIGHT, 1.0)
        categories.append(
            BiasCategory(
                type=bias_type,
                score=score,
                evidence=[f'Found potentially biased term: "{kw}"' for kw in found],
            )
        )
        total += score
        if score > CATEGORY_SUGGESTION_THRESHOLD:
            suggestions.append(
                f"Consider using more inclusive language instead of terms related to {bias_type}"
            )

    overall = min(total / len(BIAS_KEYWORDS), 1.0)
    if overall > GENERAL_SUGGESTION_THRESHOLD:
        suggestions.extend(GENERAL_SUGGESTIONS)

    return BiasDetectionResult(
        overall_score=overall,
        categories=categories,
        suggestions=suggestions,
        detected_at=utcnow(),
    )


def find_harmful_requests(content: str) -> list[str]:
    lowered = content.lower()
    return [
        f"Potentially harmful request detected: {pattern}"
        for pattern in HARMFUL_PATTERNS
        if pattern in lowered
    ]


def score_ethics(
    content: str,
    guidelines: list[str] | None = None,
    guideline_check: GuidelineCheck | None = None,
) -> EthicsReport:
    """Build an ethics report from bias, harmful patterns and template guidelines."""
    bias = detect_bias(content)
    violations = find_harmful_requests(content)

    if guidelines:
        check = guideline_check or random_guideline_check()
        violations.extend(
            f"Potential violation of guideline: {g}" for g in guidelines if check(content, g)
        )

    score = 1 - bias.overall_score - VIOLATION_PENALTY * len(violations)
    score = max(0.0, min(1.0, score))
    is_ethical = score > ETHICAL_SCORE_THRESHOLD and not violations

    recommendations: list[str] = []
    if not is_ethical:
        recommendations.extend(ETHICS_RECOMMENDATIONS)
        recommendations.extend(bias.suggestions)

    return EthicsReport(
        is_ethical=is_ethical,
        score=score,
        violations=violations,
        recommendations=recommendations,
    )


def ethical_tags_for(result: BiasDetectionResult) -> list[str]:
    """Tags attached to a prompt after its content has been scored."""
    tags = ["bias-checked"]
    tags.append("low-bias" if result.overall_score < LOW_BIAS_THRESHOLD else "needs-review")
    tags.extend(f"bias:{c.type}" for c in result.categories)
    return tags
