"""
File: core/dependency_analyzer.py
Purpose: Fan-in counting, bottleneck ranking, cascade-failure waves, SPOFs.
Dependencies: Standard library only
Performance: O(V + E) ranking, O(max_waves * (V + E)) per cascade

Implements:
  Algorithm 1: Fan-in (scan of every normalized dependency set)
  Algorithm 2: Bottleneck Rank (stable sort, threshold classification)
  Algorithm 3: Cascade Waves (bounded BFS against the cumulative failed set)

The graph may contain cycles.  Cascade propagation is capped at
``max_waves`` steps, so it always terminates.
"""

from __future__ import annotations

import time
from typing import Dict, List, Optional, Set

from resilience_engine.config import ResilienceEngineConfig
from resilience_engine.core.graph_model import GraphModel
from resilience_engine.schema import (
    BottleneckReport,
    BottleneckSummary,
    CascadeResult,
    CascadeWave,
    FanInResult,
    RankedResource,
    ResilienceReport,
    SinglePointOfFailure,
)
from resilience_engine.telemetry import get_logger

logger = get_logger("resilience_engine.dependency_analyzer")


class DependencyAnalyzer:
    """Analyze who depends on whom and what breaks when something fails.

    Every operation is a total, read-only function of the graph: an empty
    graph or an unknown target yields empty/zero results, never an error.

    Args:
        config: Engine configuration with default thresholds.

    Example::

        analyzer = DependencyAnalyzer(ResilienceEngineConfig())
        waves = analyzer.cascade(graph, "dns")
        print(waves.total_affected)
    """

    def __init__(
        self, config: Optional[ResilienceEngineConfig] = None
    ) -> None:
        self._config = config or ResilienceEngineConfig()

    # ── Algorithm 1: Fan-in ─────────────────────────────────────

    def fan_in(self, graph: GraphModel, target: str) -> FanInResult:
        """List resources whose dependency set contains ``target``.

        Args:
            graph: Normalized graph snapshot.
            target: Resource name.

        Returns:
            FanInResult with dependents in input order; empty when the
            target is not part of the graph.
        """
        if target not in graph:
            return FanInResult(target=target)

        dependents = [
            r.name for r in graph if target in r.depends_on
        ]
        return FanInResult(
            target=target,
            dependents=dependents,
            count=len(dependents),
        )

    def fan_in_counts(self, graph: GraphModel) -> Dict[str, int]:
        """Fan-in of every resource, keyed in input order.

        Complexity: O(V + E).  Dependencies naming resources outside the
        graph are ignored.
        """
        counts: Dict[str, int] = {name: 0 for name in graph.names()}
        for resource in graph:
            for dep in resource.depends_on:
                if dep in counts:
                    counts[dep] += 1
        return counts

    # ── Algorithm 2: Bottleneck Rank ────────────────────────────

    def bottleneck_rank(
        self,
        graph: GraphModel,
        critical_threshold: Optional[int] = None,
        important_threshold: Optional[int] = None,
        correlation_id: str = "",
    ) -> BottleneckReport:
        """Rank resources by fan-in and classify their criticality.

        Ties keep input order (``sorted`` is stable).  A resource is
        critical when fan-in >= ``critical_threshold``, otherwise important
        when fan-in >= ``important_threshold``.  Thresholds are used as
        given, including out-of-range values.

        Args:
            graph: Normalized graph snapshot.
            critical_threshold: Defaults to config (3).
            important_threshold: Defaults to config (1).
            correlation_id: Request correlation ID.

        Returns:
            BottleneckReport with ranked/critical/important lists, leaves
            (fan-in 0), roots (no outgoing dependencies) and a summary.
        """
        start = time.perf_counter()
        thresholds = self._config.thresholds
        if critical_threshold is None:
            critical_threshold = thresholds.critical_threshold
        if important_threshold is None:
            important_threshold = thresholds.important_threshold

        counts = self.fan_in_counts(graph)
        ranked = sorted(
            (RankedResource(name=n, fan_in=c) for n, c in counts.items()),
            key=lambda entry: -entry.fan_in,
        )

        critical: List[RankedResource] = []
        important: List[RankedResource] = []
        for entry in ranked:
            if entry.fan_in >= critical_threshold:
                critical.append(entry)
            elif entry.fan_in >= important_threshold:
                important.append(entry)

        leaves = [n for n, c in counts.items() if c == 0]
        roots = [r.name for r in graph if not r.depends_on]

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(
            f"Bottleneck rank complete: resources={len(ranked)}, "
            f"critical={len(critical)}, {elapsed_ms:.2f}ms",
            extra={
                "correlation_id": correlation_id,
                "layer": "bottleneck_rank",
                "context": {
                    "resources": len(ranked),
                    "critical": len(critical),
                    "important": len(important),
                    "latency_ms": round(elapsed_ms, 2),
                },
            },
        )

        return BottleneckReport(
            ranked=ranked,
            critical=critical,
            important=important,
            leaves=leaves,
            roots=roots,
            summary=BottleneckSummary(
                total_resources=len(ranked),
                critical_count=len(critical),
                important_count=len(important),
                leaf_count=len(leaves),
                root_count=len(roots),
                max_fan_in=ranked[0].fan_in if ranked else 0,
            ),
        )

    # ── Algorithm 3: Cascade Waves ──────────────────────────────

    def cascade(
        self,
        graph: GraphModel,
        failed_resource: str,
        max_waves: Optional[int] = None,
        correlation_id: str = "",
    ) -> CascadeResult:
        """Simulate failure propagation from one resource.

        Wave 0 holds the failed resource.  Wave k holds every resource not
        yet failed that depends on anything failed in waves 0..k-1.
        Propagation stops on an empty wave or after ``max_waves``
        propagation steps.

        Complexity: O(max_waves * (V + E))

        Args:
            graph: Normalized graph snapshot.
            failed_resource: Name of the initially failed resource.
            max_waves: Propagation cap, defaults to config (5).  Negative
                values behave like 0.
            correlation_id: Request correlation ID.

        Returns:
            CascadeResult; empty waves when the resource is unknown.
        """
        if max_waves is None:
            max_waves = self._config.thresholds.max_waves
        # a negative cap allows no propagation, same as 0
        max_waves = max(max_waves, 0)

        if failed_resource not in graph:
            return CascadeResult(
                failed_resource=failed_resource,
                survivors=graph.names(),
                max_waves=max_waves,
            )

        failed: Set[str] = {failed_resource}
        waves: List[CascadeWave] = [
            CascadeWave(wave=0, failed=[failed_resource])
        ]

        for wave_number in range(1, max_waves + 1):
            newly_failed = self._next_wave(graph, failed)
            if not newly_failed:
                break
            waves.append(CascadeWave(wave=wave_number, failed=newly_failed))
            failed.update(newly_failed)

        truncated = len(waves) == max_waves + 1 and bool(
            self._next_wave(graph, failed)
        )
        if truncated:
            logger.warning(
                f"Cascade from '{failed_resource}' stopped at wave cap "
                f"{max_waves} with propagation still pending",
                extra={
                    "correlation_id": correlation_id,
                    "layer": "cascade",
                    "context": {
                        "failed_resource": failed_resource,
                        "max_waves": max_waves,
                    },
                },
            )

        total_affected = sum(len(w.failed) for w in waves)
        cascade_percent = (
            total_affected * 100 // len(graph) if len(graph) else 0
        )
        survivors = [name for name in graph.names() if name not in failed]

        return CascadeResult(
            failed_resource=failed_resource,
            waves=waves,
            total_affected=total_affected,
            cascade_percent=cascade_percent,
            survivors=survivors,
            max_waves=max_waves,
            truncated=truncated,
        )

    @staticmethod
    def _next_wave(graph: GraphModel, failed: Set[str]) -> List[str]:
        """Resources outside ``failed`` depending on any member of it."""
        return [
            r.name
            for r in graph
            if r.name not in failed and not r.depends_on.isdisjoint(failed)
        ]

    # ── Single points of failure ────────────────────────────────

    def single_points_of_failure(
        self,
        graph: GraphModel,
        report: Optional[BottleneckReport] = None,
    ) -> List[SinglePointOfFailure]:
        """Depended-upon resources with no replica on either side.

        A resource counts as replicated when it names a ``replica``, when
        another resource declares ``replica_of`` pointing at it, or when it
        is itself a replica.

        Args:
            graph: Normalized graph snapshot.
            report: Pre-computed bottleneck ranking, reused when given.

        Returns:
            SPOFs ordered by fan-in descending.
        """
        report = report or self.bottleneck_rank(graph)
        min_fan_in = max(self._config.thresholds.important_threshold, 1)

        replicated: Set[str] = {
            r.replica_of for r in graph if r.replica_of
        }

        spofs: List[SinglePointOfFailure] = []
        for entry in report.ranked:
            if entry.fan_in < min_fan_in:
                continue
            resource = graph.get(entry.name)
            if resource is None:
                continue
            if resource.replica or resource.replica_of:
                continue
            if resource.name in replicated:
                continue
            spofs.append(SinglePointOfFailure(
                name=entry.name,
                fan_in=entry.fan_in,
                reason=(
                    f"{entry.fan_in} dependents and no declared replica"
                ),
            ))
        return spofs

    # ── Resilience score ────────────────────────────────────────

    def resilience_score(
        self, graph: GraphModel, correlation_id: str = ""
    ) -> ResilienceReport:
        """Composite score, see ``ResilienceScorer.score``."""
        from resilience_engine.core.resilience_scorer import ResilienceScorer

        return ResilienceScorer(self._config, analyzer=self).score(
            graph, correlation_id=correlation_id
        )
