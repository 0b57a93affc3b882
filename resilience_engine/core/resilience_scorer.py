"""
File: core/resilience_scorer.py
Purpose: Compose bottleneck ranking and cascade impact into one 0–100 score.
Dependencies: DependencyAnalyzer
Performance: O(C * max_waves * (V + E)) for C critical resources

Formula:
  critical_penalty = critical_count / total_resources * 100 * 2
  score = clamp(100 - critical_penalty - avg_cascade_impact, 0, 100)
"""

from __future__ import annotations

import time
from typing import Dict, List, Optional

from resilience_engine.config import ResilienceEngineConfig
from resilience_engine.core.dependency_analyzer import DependencyAnalyzer
from resilience_engine.core.graph_model import GraphModel
from resilience_engine.schema import (
    Assessment,
    BottleneckReport,
    ResilienceDetails,
    ResilienceReport,
)
from resilience_engine.telemetry import get_logger

logger = get_logger("resilience_engine.resilience_scorer")


def assess(score: float) -> Assessment:
    """Qualitative band for a score: >=80 robust, >=60 moderate, >=40 fragile."""
    if score >= 80:
        return Assessment.ROBUST
    if score >= 60:
        return Assessment.MODERATE
    if score >= 40:
        return Assessment.FRAGILE
    return Assessment.CRITICAL


class ResilienceScorer:
    """Single operational signal built from fan-in and cascade lenses.

    Stateless; holds only configuration and the analyzer it delegates to.

    Args:
        config: Engine configuration.
        analyzer: Analyzer to reuse, a new one is built when omitted.
    """

    def __init__(
        self,
        config: Optional[ResilienceEngineConfig] = None,
        analyzer: Optional[DependencyAnalyzer] = None,
    ) -> None:
        self._config = config or ResilienceEngineConfig()
        self._analyzer = analyzer or DependencyAnalyzer(self._config)

    def score(
        self,
        graph: GraphModel,
        bottlenecks: Optional[BottleneckReport] = None,
        correlation_id: str = "",
    ) -> ResilienceReport:
        """Score the graph's resilience.

        Args:
            graph: Normalized graph snapshot.
            bottlenecks: Pre-computed ranking, reused when given.
            correlation_id: Request correlation ID.

        Returns:
            ResilienceReport with the clamped, unrounded score banded
            as is; an empty graph scores 100 (robust).
        """
        start = time.perf_counter()
        thresholds = self._config.thresholds
        report = bottlenecks or self._analyzer.bottleneck_rank(
            graph, correlation_id=correlation_id
        )

        cascade_impacts: Dict[str, int] = {}
        for entry in report.critical:
            result = self._analyzer.cascade(
                graph, entry.name, correlation_id=correlation_id
            )
            cascade_impacts[entry.name] = result.cascade_percent

        avg_cascade = (
            sum(cascade_impacts.values()) / len(cascade_impacts)
            if cascade_impacts
            else 0.0
        )

        total = len(graph)
        critical_count = len(report.critical)
        critical_penalty = (
            critical_count * 200 / total if total else 0.0
        )
        score = min(max(100 - critical_penalty - avg_cascade, 0.0), 100.0)

        recommendations: List[str] = []
        if report.critical:
            names = ", ".join(e.name for e in report.critical)
            recommendations.append(
                f"Add redundancy for critical bottlenecks: {names}"
            )
        if avg_cascade > thresholds.high_cascade_pct:
            recommendations.append(
                f"High average cascade impact ({avg_cascade:.1f}%): "
                f"isolate failure domains between critical resources"
            )
        if report.ranked and report.ranked[0].fan_in > thresholds.high_fan_in:
            top = report.ranked[0]
            recommendations.append(
                f"'{top.name}' has {top.fan_in} dependents: "
                f"single point of failure risk"
            )

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(
            f"Resilience score {score:.1f}, {elapsed_ms:.2f}ms",
            extra={
                "correlation_id": correlation_id,
                "layer": "resilience",
                "context": {
                    "score": round(score, 1),
                    "critical_count": critical_count,
                    "avg_cascade_impact": round(avg_cascade, 2),
                    "latency_ms": round(elapsed_ms, 2),
                },
            },
        )

        return ResilienceReport(
            score=score,
            assessment=assess(score),
            details=ResilienceDetails(
                total_resources=total,
                critical_count=critical_count,
                critical_penalty=round(critical_penalty, 2),
                avg_cascade_impact=round(avg_cascade, 2),
                max_fan_in=report.summary.max_fan_in,
                cascade_impacts=cascade_impacts,
            ),
            recommendations=recommendations,
        )

