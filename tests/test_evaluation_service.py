"""Tests for evaluations, cost analytics and A/B tests."""

from __future__ import annotations

import datetime
import random
from typing import Any

import pytest
from sqlalchemy.orm import Session

from mpe.exceptions import InvalidInputError, ScoringError
from mpe.schemas.evaluation import EvaluationConfig
from mpe.scoring import SCORE_RANGES, RandomScorer
from mpe.services.evaluation_service import IMPROVED, NOT_IMPROVED, EvaluationService
from mpe.services.prompt_service import PromptService


@pytest.fixture(autouse=True)
def _default_rates(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MPE_INPUT_TOKEN_COST", raising=False)
    monkeypatch.delenv("MPE_OUTPUT_TOKEN_COST", raising=False)


class TestEvaluate:
    def test_records_score(self, evaluations: EvaluationService) -> None:
        evaluation = evaluations.evaluate(
            "P", "1.0.0", "content", {"evaluation_type": "quality", "test_dataset": ["a", "b"]}
        )
        assert evaluation.score == 0.9
        assert evaluation.evaluation_type == "quality"
        assert evaluation.details["test_dataset_size"] == 2
        assert evaluation.details["config"]["evaluation_type"] == "quality"
        assert "evaluated_at" in evaluation.details

    def test_accepts_config_model(self, evaluations: EvaluationService) -> None:
        config = EvaluationConfig(evaluation_type="cost")
        evaluation = evaluations.evaluate("P", "1.0.0", "content", config)
        assert evaluation.details["test_dataset_size"] == 0

    def test_invalid_type(self, evaluations: EvaluationService) -> None:
        with pytest.raises(InvalidInputError, match="evaluation_type"):
            evaluations.evaluate("P", "1.0.0", "content", {"evaluation_type": "speed"})

    def test_out_of_range_score(self, session: Session) -> None:
        service = EvaluationService(session, score_fn=lambda content, config: 1.5)
        with pytest.raises(ScoringError):
            service.evaluate("P", "1.0.0", "content", {"evaluation_type": "performance"})
        assert service.list_evaluations("P") == []

    def test_nan_score(self, session: Session) -> None:
        service = EvaluationService(session, score_fn=lambda content, config: float("nan"))
        with pytest.raises(ScoringError):
            service.evaluate("P", "1.0.0", "content", {"evaluation_type": "performance"})

    def test_list_filters_by_version(self, evaluations: EvaluationService) -> None:
        config = {"evaluation_type": "performance"}
        evaluations.evaluate("P", "1.0.0", "a", config)
        evaluations.evaluate("P", "1.1.0", "b", config)
        evaluations.evaluate("Q", "1.0.0", "c", config)
        assert len(evaluations.list_evaluations("P")) == 2
        assert [e.version for e in evaluations.list_evaluations("P", "1.1.0")] == ["1.1.0"]


class TestBatchEvaluate:
    def test_summary(self, session: Session, fixed_scorer: Any) -> None:
        scorer = fixed_scorer(0.6, 0.8, 1.0)
        service = EvaluationService(session, score_fn=scorer)
        items = [
            {"id": "P", "version": "1.0.0", "content": "a"},
            {"id": "P", "version": "1.1.0", "content": "b"},
            {"id": "Q", "version": "1.0.0", "content": "c"},
        ]
        result = service.batch_evaluate(items, "quality")
        assert [r.score for r in result.results] == [0.6, 0.8, 1.0]
        assert result.summary.total == 3
        assert result.summary.average_score == pytest.approx(0.8)
        assert scorer.seen == [("a", "quality"), ("b", "quality"), ("c", "quality")]
        assert len(service.list_evaluations("P")) == 2

    def test_empty_batch(self, evaluations: EvaluationService) -> None:
        result = evaluations.batch_evaluate([], "performance")
        assert result.results == []
        assert result.summary.total == 0
        assert result.summary.average_score == 0.0

    def test_invalid_item_records_nothing(self, evaluations: EvaluationService) -> None:
        items = [
            {"id": "P", "version": "1.0.0", "content": "a"},
            {"id": "P", "content": "b"},
        ]
        with pytest.raises(InvalidInputError, match="prompts.1.version"):
            evaluations.batch_evaluate(items, "quality")
        assert evaluations.list_evaluations("P") == []

    def test_invalid_type(self, evaluations: EvaluationService) -> None:
        with pytest.raises(InvalidInputError, match="evaluation_type"):
            evaluations.batch_evaluate([], "speed")


class TestCompareVersions:
    def test_unevaluated_version_scores_zero(self, evaluations: EvaluationService) -> None:
        evaluations.evaluate("P", "1.0.0", "content", {"evaluation_type": "performance"})
        result = evaluations.compare_versions("P", "1.0.0", "2.0.0")
        assert result.version1_score == pytest.approx(0.9)
        assert result.version2_score == 0.0
        assert result.winner == "1.0.0"
        assert result.improvements == NOT_IMPROVED

    def test_averages_scores(self, session: Session, fixed_scorer: Any) -> None:
        service = EvaluationService(session, score_fn=fixed_scorer(0.2, 0.4, 0.9))
        config = {"evaluation_type": "performance"}
        service.evaluate("P", "1.0.0", "a", config)
        service.evaluate("P", "1.0.0", "a", config)
        service.evaluate("P", "1.1.0", "b", config)
        result = service.compare_versions("P", "1.0.0", "1.1.0")
        assert result.version1_score == pytest.approx(0.3)
        assert result.winner == "1.1.0"
        assert result.improvements == IMPROVED

    def test_tie_goes_to_second_version(self, evaluations: EvaluationService) -> None:
        result = evaluations.compare_versions("P", "1.0.0", "1.1.0")
        assert result.version1_score == result.version2_score == 0.0
        assert result.winner == "1.1.0"
        assert result.improvements == NOT_IMPROVED


class TestCostAnalytics:
    def test_default_rates(self, evaluations: EvaluationService) -> None:
        analytics = evaluations.cost_analytics("P", calls=10, input_tokens=1000, output_tokens=500)
        assert analytics.total_cost == pytest.approx(0.2)
        assert analytics.average_cost_per_call == pytest.approx(0.02)
        assert analytics.total_calls == 10
        assert analytics.cost_breakdown.input_tokens == 1000
        assert analytics.cost_breakdown.model_cost == pytest.approx(0.2)
        span = analytics.time_range.end - analytics.time_range.start
        assert span == datetime.timedelta(days=30)

    def test_zero_calls(self, evaluations: EvaluationService) -> None:
        analytics = evaluations.cost_analytics("P", calls=0, input_tokens=0, output_tokens=0)
        assert analytics.total_cost == 0.0
        assert analytics.average_cost_per_call == 0.0

    def test_last_write_wins(self, evaluations: EvaluationService) -> None:
        evaluations.cost_analytics("P", calls=10, input_tokens=1000, output_tokens=500)
        evaluations.cost_analytics("P", calls=1, input_tokens=10, output_tokens=0)
        stored = evaluations.get_cost_analytics("P")
        assert stored is not None
        assert stored.total_calls == 1
        assert stored.total_cost == pytest.approx(0.001)

    def test_missing_record(self, evaluations: EvaluationService) -> None:
        assert evaluations.get_cost_analytics("P") is None

    def test_explicit_cost_model(self, evaluations: EvaluationService) -> None:
        analytics = evaluations.cost_analytics(
            "P",
            calls=2,
            input_tokens=100,
            output_tokens=100,
            cost_model={"input_token_cost": 0.01, "output_token_cost": 0.03},
        )
        assert analytics.total_cost == pytest.approx(4.0)

    def test_env_rates(
        self, evaluations: EvaluationService, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("MPE_INPUT_TOKEN_COST", "0.001")
        analytics = evaluations.cost_analytics("P", calls=1, input_tokens=1000, output_tokens=0)
        assert analytics.total_cost == pytest.approx(1.0)

    @pytest.mark.parametrize(
        "usage",
        [
            {"calls": -1, "input_tokens": 0, "output_tokens": 0},
            {"calls": 1, "input_tokens": -5, "output_tokens": 0},
            {"calls": 1, "input_tokens": 0, "output_tokens": "many"},
        ],
    )
    def test_invalid_usage(self, evaluations: EvaluationService, usage: dict) -> None:
        with pytest.raises(InvalidInputError):
            evaluations.cost_analytics("P", **usage)


class TestABTest:
    def test_b_wins(
        self, session: Session, service: PromptService, fixed_scorer: Any
    ) -> None:
        prompt = service.create_prompt("p", content="first")
        service.add_version(prompt.id, "second")
        scorer = fixed_scorer(0.6, 0.8)
        evaluations = EvaluationService(session, score_fn=scorer, confidence_fn=lambda: 0.85)

        result = evaluations.ab_test(prompt.id, "1.0.0", "1.1.0", {"evaluation_type": "quality"})
        assert result.version_a.score == pytest.approx(0.6)
        assert result.version_b.score == pytest.approx(0.8)
        assert result.version_a.confidence == result.version_b.confidence == 0.85
        assert result.recommendation == "Version B performs better (80.0% vs 60.0%)"
        assert [content for content, _ in scorer.seen] == ["first", "second"]
        assert evaluations.list_evaluations(prompt.id) == []

    def test_a_wins(self, session: Session, fixed_scorer: Any) -> None:
        evaluations = EvaluationService(session, score_fn=fixed_scorer(0.75, 0.5))
        result = evaluations.ab_test("P", "1.0.0", "1.1.0", {"evaluation_type": "performance"})
        assert result.recommendation == "Version A performs better (75.0% vs 50.0%)"

    def test_tie_recommends_b(self, evaluations: EvaluationService) -> None:
        result = evaluations.ab_test("P", "1.0.0", "1.1.0", {"evaluation_type": "performance"})
        assert result.recommendation.startswith("Version B")

    def test_unknown_versions_score_empty_content(
        self, evaluations: EvaluationService, scorer: Any
    ) -> None:
        evaluations.ab_test("P", "1.0.0", "1.1.0", {"evaluation_type": "bias"})
        assert scorer.seen == [("", "bias"), ("", "bias")]

    def test_accepts_config_model(self, evaluations: EvaluationService, scorer: Any) -> None:
        evaluations.ab_test("P", "1.0.0", "1.1.0", EvaluationConfig(evaluation_type="cost"))
        assert [kind for _, kind in scorer.seen] == ["cost", "cost"]

    def test_invalid_config(self, evaluations: EvaluationService) -> None:
        with pytest.raises(InvalidInputError):
            evaluations.ab_test("P", "1.0.0", "1.1.0", {"evaluation_type": "latency"})


class TestRandomScorer:
    @pytest.mark.parametrize("evaluation_type", sorted(SCORE_RANGES))
    def test_scores_within_range(self, rng: random.Random, evaluation_type: str) -> None:
        scorer = RandomScorer(rng)
        low, high = SCORE_RANGES[evaluation_type]
        config = EvaluationConfig(evaluation_type=evaluation_type)
        for _ in range(50):
            assert low <= scorer("content", config) <= high

    def test_confidence_range(self, rng: random.Random) -> None:
        scorer = RandomScorer(rng)
        for _ in range(50):
            assert 0.7 <= scorer.confidence() < 1.0

    def test_default_service_uses_random_scorer(self, session: Session) -> None:
        evaluation = EvaluationService(session).evaluate(
            "P", "1.0.0", "content", {"evaluation_type": "bias"}
        )
        assert 0.8 <= evaluation.score <= 1.0
