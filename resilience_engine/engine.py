"""
File: engine.py
Purpose: Façade running every analysis lens over one immutable snapshot.
Dependencies: All resilience_engine sub-modules.
Performance: <200ms for 1000 resources on the default thresholds.

Pipeline::

    table → [load] → [bottlenecks → resilience → SPOFs]
                   → [utilization → cluster → rebalance]
                   → [diagnostics + invariant validation] → EngineReport

Every call works on a fresh GraphModel; nothing is cached between calls,
so concurrent calls on the same or different snapshots need no locking.
"""

from __future__ import annotations

import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from resilience_engine.config import ResilienceEngineConfig
from resilience_engine.core.capacity_planner import (
    CapacityPlanner,
    PendingWorkloads,
)
from resilience_engine.core.dependency_analyzer import DependencyAnalyzer
from resilience_engine.core.graph_model import GraphModel
from resilience_engine.core.resilience_scorer import ResilienceScorer
from resilience_engine.schema import (
    CascadeResult,
    EngineReport,
    FitResult,
    Placement,
    PlacementRequest,
    SinglePointOfFailure,
    ValidationResult,
)
from resilience_engine.telemetry import TelemetryCollector, get_logger
from resilience_engine.validator import ReportValidator, SnapshotValidator

logger = get_logger("resilience_engine.engine")

Snapshot = Union[GraphModel, Mapping[str, Any]]


class ResilienceEngine:
    """Dependency resilience and capacity placement over a resource table.

    Args:
        config: Engine configuration.

    Example::

        engine = ResilienceEngine(ResilienceEngineConfig())
        report = engine.analyze(resources, nodes=hosts)
        print(report.resilience.score, report.utilization.alerts)
    """

    def __init__(
        self, config: Optional[ResilienceEngineConfig] = None
    ) -> None:
        self._config = config or ResilienceEngineConfig()
        self._telemetry = TelemetryCollector()

        # ── layer instances ─────────────────────────────────────
        self._analyzer = DependencyAnalyzer(self._config)
        self._scorer = ResilienceScorer(self._config, analyzer=self._analyzer)
        self._planner = CapacityPlanner(self._config)
        self._snapshot_validator = SnapshotValidator()
        self._report_validator = ReportValidator(self._config)

        logger.info(
            f"ResilienceEngine initialized: "
            f"max_waves={self._config.thresholds.max_waves}, "
            f"cumulative_placement={self._config.features.cumulative_placement}, "
            f"max_workers={self._config.performance.max_workers}, "
            f"validation={'enabled' if self._config.features.enable_validation else 'disabled'}",
        )

    @property
    def telemetry(self) -> TelemetryCollector:
        """Access the telemetry collector."""
        return self._telemetry

    @property
    def analyzer(self) -> DependencyAnalyzer:
        return self._analyzer

    @property
    def planner(self) -> CapacityPlanner:
        return self._planner

    # ─── loading ────────────────────────────────────────────────

    def load(
        self, snapshot: Optional[Snapshot], correlation_id: str = ""
    ) -> GraphModel:
        """Normalize a raw table (graphs pass through unchanged)."""
        if isinstance(snapshot, GraphModel):
            return snapshot

        with self._telemetry.measure("graph_load", correlation_id):
            graph = GraphModel.from_table(
                snapshot,
                default_priority=self._config.thresholds.default_priority,
            )

        if len(graph) > self._config.performance.max_resources:
            logger.warning(
                f"Snapshot has {len(graph)} resources, above the "
                f"{self._config.performance.max_resources} budget",
                extra={
                    "correlation_id": correlation_id,
                    "layer": "graph_load",
                    "context": {"resources": len(graph)},
                },
            )
        return graph

    # ─── public API ─────────────────────────────────────────────

    def analyze(
        self,
        resources: Optional[Snapshot],
        nodes: Optional[Snapshot] = None,
        correlation_id: str = "",
    ) -> EngineReport:
        """Run every lens over one snapshot.

        Args:
            resources: Resource table (dependencies and workloads).
            nodes: Capacity node table, defaults to ``resources``.
            correlation_id: Optional correlation ID.

        Returns:
            EngineReport with all sections populated.
        """
        cid = correlation_id or str(uuid.uuid4())
        pipeline_start = time.perf_counter()
        self._telemetry.analyses_total.inc()

        try:
            graph = self.load(resources, cid)
            node_graph = graph if nodes is None else self.load(nodes, cid)

            logger.info(
                "Analysis started",
                extra={
                    "correlation_id": cid,
                    "layer": "pipeline",
                    "context": {
                        "resources": len(graph),
                        "nodes": len(node_graph.capacity_nodes()),
                    },
                },
            )

            # ── dependency lenses ───────────────────────────────
            with self._telemetry.measure("bottleneck_rank", cid):
                bottlenecks = self._analyzer.bottleneck_rank(
                    graph, correlation_id=cid
                )
            with self._telemetry.measure("resilience", cid):
                resilience = self._scorer.score(
                    graph, bottlenecks=bottlenecks, correlation_id=cid
                )
            self._telemetry.cascades_simulated.inc(len(bottlenecks.critical))

            spofs: List[SinglePointOfFailure] = []
            if self._config.features.enable_spof_detection:
                spofs = self._analyzer.single_points_of_failure(
                    graph, report=bottlenecks
                )

            # ── capacity lenses ─────────────────────────────────
            with self._telemetry.measure("utilization", cid):
                utilization = self._planner.utilization(
                    node_graph, graph, correlation_id=cid
                )
                cluster = self._planner.cluster_capacity(
                    node_graph, graph, utilization=utilization,
                    correlation_id=cid,
                )
            with self._telemetry.measure("placement", cid):
                rebalance = self._planner.rebalance_suggestions(
                    node_graph, graph, utilization=utilization,
                    correlation_id=cid,
                )

            # ── diagnostics ─────────────────────────────────────
            diagnostics = self._snapshot_validator.inspect(graph, cid)
            if node_graph is not graph:
                diagnostics.extend(
                    w for w in utilization.warnings
                    if w not in diagnostics
                )
            self._telemetry.record_warnings(len(diagnostics), cid)

            report = EngineReport(
                correlation_id=cid,
                bottlenecks=bottlenecks,
                resilience=resilience,
                single_points_of_failure=spofs,
                utilization=utilization,
                cluster=cluster,
                rebalance=rebalance,
                diagnostics=diagnostics,
            )

            if self._config.features.enable_validation:
                validation = self.validate(report, correlation_id=cid)
                report = report.model_copy(update={"validation": validation})

            elapsed = (time.perf_counter() - pipeline_start) * 1000
            report = report.model_copy(
                update={"pipeline_latency_ms": round(elapsed, 2)}
            )
            self._telemetry.analyses_succeeded.inc()
            self._telemetry.measure_value("pipeline_total", elapsed)

            logger.info(
                f"Analysis completed: score={resilience.score:.1f}, "
                f"assessment={resilience.assessment.value}, {elapsed:.2f}ms",
                extra={
                    "correlation_id": cid,
                    "layer": "pipeline",
                    "context": {
                        "score": round(resilience.score, 1),
                        "critical": len(bottlenecks.critical),
                        "overloaded": len(
                            utilization.alerts.overloaded_nodes
                        ),
                        "latency_ms": round(elapsed, 2),
                    },
                },
            )
            return report

        except Exception as e:
            self._telemetry.analyses_failed.inc()
            logger.error(
                f"Analysis failed: {e}",
                extra={
                    "correlation_id": cid,
                    "layer": "pipeline",
                    "context": {"error": str(e)},
                },
                exc_info=True,
            )
            raise

    def what_if(
        self,
        resources: Optional[Snapshot],
        failures: Sequence[str],
        max_waves: Optional[int] = None,
        correlation_id: str = "",
    ) -> List[CascadeResult]:
        """Simulate several hypothetical failures in parallel.

        Each cascade is independent; results come back in request order
        regardless of completion order.
        """
        cid = correlation_id or str(uuid.uuid4())
        graph = self.load(resources, cid)
        if not failures:
            return []

        workers = max(1, min(self._config.performance.max_workers,
                             len(failures)))

        def _run(target: str) -> CascadeResult:
            return self._analyzer.cascade(
                graph, target, max_waves=max_waves, correlation_id=cid
            )

        with self._telemetry.measure("cascade", cid):
            with ThreadPoolExecutor(max_workers=workers) as pool:
                results = list(pool.map(_run, failures))

        self._telemetry.cascades_simulated.inc(len(results))
        logger.debug(
            f"What-if: {len(results)} cascades on {workers} workers",
            extra={
                "correlation_id": cid,
                "layer": "cascade",
                "context": {
                    "failures": list(failures),
                    "workers": workers,
                },
            },
        )
        return results

    def place(
        self,
        resources: Optional[Snapshot],
        request: Union[PlacementRequest, Mapping[str, int]],
        nodes: Optional[Snapshot] = None,
        correlation_id: str = "",
    ) -> FitResult:
        """Candidate hosts for one inbound request."""
        cid = correlation_id or str(uuid.uuid4())
        graph = self.load(resources, cid)
        node_graph = graph if nodes is None else self.load(nodes, cid)
        if not isinstance(request, PlacementRequest):
            request = PlacementRequest.model_validate(request)

        with self._telemetry.measure("placement", cid):
            result = self._planner.can_fit(
                node_graph, graph, request, correlation_id=cid
            )
        self._telemetry.placements_evaluated.inc()
        return result

    def plan_batch(
        self,
        resources: Optional[Snapshot],
        pending: PendingWorkloads,
        nodes: Optional[Snapshot] = None,
        cumulative: Optional[bool] = None,
        correlation_id: str = "",
    ) -> List[Placement]:
        """Greedy placement of several pending workloads."""
        cid = correlation_id or str(uuid.uuid4())
        graph = self.load(resources, cid)
        node_graph = graph if nodes is None else self.load(nodes, cid)

        with self._telemetry.measure("placement", cid):
            placements = self._planner.best_fit(
                node_graph, graph, pending,
                cumulative=cumulative, correlation_id=cid,
            )
        self._telemetry.placements_evaluated.inc(len(placements))
        return placements

    def validate(
        self,
        report: EngineReport,
        cascades: Sequence[CascadeResult] = (),
        correlation_id: str = "",
    ) -> ValidationResult:
        """Invariant checks on a report (and optional cascades)."""
        with self._telemetry.measure("validation", correlation_id):
            result = self._report_validator.validate(
                report,
                cascades=cascades,
                graph_size=report.bottlenecks.summary.total_resources,
                correlation_id=correlation_id,
            )
        if not result.validation_passed:
            self._telemetry.record_validation_failure(correlation_id)
        return result

    def health_check(self) -> Dict[str, Any]:
        """Return engine health status.

        Returns:
            Dict with component health, config and metrics.
        """
        return {
            "status": "healthy",
            "engine": "resilience_engine",
            "config": {
                "max_waves": self._config.thresholds.max_waves,
                "critical_threshold": (
                    self._config.thresholds.critical_threshold
                ),
                "cumulative_placement": (
                    self._config.features.cumulative_placement
                ),
                "max_workers": self._config.performance.max_workers,
            },
            "components": {
                "dependency_analyzer": "healthy",
                "resilience_scorer": "healthy",
                "capacity_planner": "healthy",
                "validator": "healthy",
            },
            "metrics": self._telemetry.snapshot(),
        }
