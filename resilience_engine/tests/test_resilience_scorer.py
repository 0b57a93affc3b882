"""Tests for ResilienceScorer — composite score, bands, recommendations."""

import pytest

from resilience_engine.config import ResilienceEngineConfig
from resilience_engine.core.dependency_analyzer import DependencyAnalyzer
from resilience_engine.core.graph_model import GraphModel
from resilience_engine.core.resilience_scorer import ResilienceScorer, assess
from resilience_engine.schema import Assessment


def _hub(dependents: int, independents: int = 0) -> GraphModel:
    table = {"hub": {}}
    for i in range(dependents):
        table[f"dep-{i}"] = {"depends": ["hub"]}
    for i in range(independents):
        table[f"solo-{i}"] = {}
    return GraphModel.from_table(table)


@pytest.fixture
def scorer(config: ResilienceEngineConfig) -> ResilienceScorer:
    return ResilienceScorer(config)


class TestScore:

    def test_empty_graph_is_robust(
        self, scorer: ResilienceScorer, empty_graph: GraphModel
    ) -> None:
        report = scorer.score(empty_graph)
        assert report.score == 100.0
        assert report.assessment == Assessment.ROBUST
        assert report.recommendations == []
        assert report.details.total_resources == 0

    def test_no_critical_resources(
        self, scorer: ResilienceScorer, dns_graph: GraphModel
    ) -> None:
        report = scorer.score(dns_graph)
        assert report.score == 100.0
        assert report.assessment == Assessment.ROBUST
        assert report.details.cascade_impacts == {}

    def test_star_is_clamped_to_zero(self, scorer: ResilienceScorer) -> None:
        report = scorer.score(_hub(4))
        assert report.score == 0.0
        assert report.assessment == Assessment.CRITICAL
        assert report.details.critical_penalty == 40.0
        assert report.details.avg_cascade_impact == 100.0
        assert report.details.cascade_impacts == {"hub": 100}

    def test_fragile_band(self, scorer: ResilienceScorer) -> None:
        report = scorer.score(_hub(3, independents=6))
        assert report.details.cascade_impacts == {"hub": 40}
        assert report.details.critical_penalty == 20.0
        assert report.score == 40.0
        assert report.assessment == Assessment.FRAGILE

    def test_moderate_band(self, scorer: ResilienceScorer) -> None:
        report = scorer.score(_hub(6, independents=20))
        assert report.details.cascade_impacts == {"hub": 25}
        assert report.score == pytest.approx(100 - 200 / 27 - 25)
        assert report.assessment == Assessment.MODERATE

    def test_just_below_robust_stays_moderate(
        self, scorer: ResilienceScorer
    ) -> None:
        # 199 resources: penalty 200/199, cascade 38/199 -> 19%
        report = scorer.score(_hub(37, independents=161))
        assert report.details.cascade_impacts == {"hub": 19}
        assert report.score == pytest.approx(79.99497, abs=1e-5)
        assert report.score < 80.0
        assert report.assessment == Assessment.MODERATE

    @pytest.mark.parametrize(
        "dependents,independents",
        [(0, 0), (3, 0), (3, 3), (5, 50), (10, 1)],
    )
    def test_score_in_range(
        self, scorer: ResilienceScorer, dependents: int, independents: int
    ) -> None:
        report = scorer.score(_hub(dependents, independents))
        assert 0.0 <= report.score <= 100.0

    def test_reuses_precomputed_ranking(
        self, config: ResilienceEngineConfig
    ) -> None:
        analyzer = DependencyAnalyzer(config)
        scorer = ResilienceScorer(config, analyzer=analyzer)
        graph = _hub(3, independents=6)
        ranking = analyzer.bottleneck_rank(graph)
        assert scorer.score(graph, bottlenecks=ranking) == scorer.score(graph)

    def test_deterministic(self, scorer: ResilienceScorer) -> None:
        graph = _hub(4, independents=2)
        assert (
            scorer.score(graph).model_dump_json()
            == scorer.score(graph).model_dump_json()
        )


class TestAssessmentBands:

    @pytest.mark.parametrize(
        "score,expected",
        [
            (100.0, Assessment.ROBUST),
            (80.0, Assessment.ROBUST),
            (79.995, Assessment.MODERATE),
            (79.9, Assessment.MODERATE),
            (60.0, Assessment.MODERATE),
            (59.9, Assessment.FRAGILE),
            (40.0, Assessment.FRAGILE),
            (39.9, Assessment.CRITICAL),
            (0.0, Assessment.CRITICAL),
        ],
    )
    def test_band_edges(self, score: float, expected: Assessment) -> None:
        assert assess(score) == expected


class TestRecommendations:

    def test_redundancy_and_cascade(self, scorer: ResilienceScorer) -> None:
        report = scorer.score(_hub(4))
        assert report.recommendations[0] == (
            "Add redundancy for critical bottlenecks: hub"
        )
        assert report.recommendations[1].startswith(
            "High average cascade impact (100.0%)"
        )
        assert len(report.recommendations) == 2

    def test_high_fan_in_flagged(self, scorer: ResilienceScorer) -> None:
        report = scorer.score(_hub(6, independents=20))
        assert report.recommendations == [
            "Add redundancy for critical bottlenecks: hub",
            "'hub' has 6 dependents: single point of failure risk",
        ]

    def test_fan_in_at_limit_not_flagged(
        self, scorer: ResilienceScorer
    ) -> None:
        report = scorer.score(_hub(5, independents=20))
        assert not any("single point" in r for r in report.recommendations)
