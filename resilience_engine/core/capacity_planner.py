"""
File: core/capacity_planner.py
Purpose: Node utilization, placement search, greedy packing, rebalancing.
Dependencies: Standard library, schema models
Performance: O(N * W) utilization, O(N log N) per placement query

Implements:
  Algorithm 4: Utilization (per-node demand sums + three-tier status)
  Algorithm 5: Can-Fit (feasibility filter, headroom ranking)
  Algorithm 6: Best-Fit (largest-first greedy packing)
  Algorithm 7: Rebalance (move workloads off overloaded nodes)

Nodes whose capacity totals are not all positive are skipped and reported
as ``invalid_capacity`` warnings.  Equal headroom is broken by node name
ascending.
"""

from __future__ import annotations

import time
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

from resilience_engine.config import ResilienceEngineConfig
from resilience_engine.core.graph_model import GraphModel
from resilience_engine.schema import (
    CapacityAlerts,
    CapacityTotals,
    ClusterCapacity,
    Demand,
    FitResult,
    NodeStatus,
    NodeUtilization,
    Placement,
    PlacementCandidate,
    PlacementRequest,
    RebalanceSuggestion,
    Resource,
    ResourceAmounts,
    UtilizationPct,
    UtilizationReport,
    ValidationWarning,
    WarningCode,
)
from resilience_engine.telemetry import get_logger

logger = get_logger("resilience_engine.capacity_planner")

PendingWorkloads = Union[GraphModel, Mapping[str, Any]]


def _pct(used: int, total: int) -> float:
    return used * 100 / total if total > 0 else 0.0


def request_for(demand: Demand) -> PlacementRequest:
    """Placement request matching a workload's demand."""
    return PlacementRequest(
        cores=max(demand.cores, 0),
        memory=max(demand.memory, 0),
        disk=max(demand.disk, 0),
    )


class CapacityPlanner:
    """Capacity-aware placement over a node table and a workload table.

    Utilization is derived per query from the immutable snapshot; nothing
    is cached between calls.

    Args:
        config: Engine configuration with status thresholds.

    Example::

        planner = CapacityPlanner(ResilienceEngineConfig())
        fit = planner.can_fit(nodes, workloads,
                              PlacementRequest(cores=16, memory=32768, disk=200))
        print(fit.best_fit)
    """

    def __init__(
        self, config: Optional[ResilienceEngineConfig] = None
    ) -> None:
        self._config = config or ResilienceEngineConfig()

    # ── node validation ─────────────────────────────────────────

    def valid_nodes(
        self, nodes: GraphModel, correlation_id: str = ""
    ) -> Tuple[List[Resource], List[ValidationWarning]]:
        """Split capacity nodes into usable ones and warnings.

        Returns:
            Tuple of (valid nodes in input order, invalid_capacity warnings).
        """
        valid: List[Resource] = []
        warnings: List[ValidationWarning] = []
        for node in nodes.capacity_nodes():
            capacity = node.capacity
            if capacity is not None and capacity.is_valid:
                valid.append(node)
                continue
            warnings.append(ValidationWarning(
                code=WarningCode.INVALID_CAPACITY,
                resource=node.name,
                message=(
                    f"capacity totals must be positive, got "
                    f"cores={capacity.cores if capacity else 0}, "
                    f"memory={capacity.memory if capacity else 0}, "
                    f"disk={capacity.disk if capacity else 0}"
                ),
            ))
            logger.warning(
                f"Node '{node.name}' skipped: non-positive capacity",
                extra={
                    "correlation_id": correlation_id,
                    "layer": "utilization",
                    "context": {"node": node.name},
                },
            )
        return valid, warnings

    # ── Algorithm 4: Utilization ────────────────────────────────

    def utilization(
        self,
        nodes: GraphModel,
        workloads: GraphModel,
        correlation_id: str = "",
    ) -> UtilizationReport:
        """Per-node used/free/percentage/status.

        Args:
            nodes: Graph whose capacity records are placement targets.
            workloads: Graph of workloads, matched by normalized host.
            correlation_id: Request correlation ID.

        Returns:
            UtilizationReport with per-node entries, alert lists and
            warnings for rejected nodes.
        """
        start = time.perf_counter()
        valid, warnings = self.valid_nodes(nodes, correlation_id)

        entries: List[NodeUtilization] = []
        for node in valid:
            hosted = workloads.hosted_on(node.name)
            used = ResourceAmounts(
                cores=sum(w.demand.cores for w in hosted),
                memory=sum(w.demand.memory for w in hosted),
                disk=sum(w.demand.disk for w in hosted),
            )
            entries.append(
                self._node_entry(node, used, len(hosted))
            )

        report = UtilizationReport(
            nodes=entries,
            alerts=CapacityAlerts(
                overloaded_nodes=[
                    e.node for e in entries
                    if e.status == NodeStatus.OVERLOADED
                ],
                busy_nodes=[
                    e.node for e in entries if e.status == NodeStatus.BUSY
                ],
            ),
            warnings=warnings,
        )

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(
            f"Utilization computed: nodes={len(entries)}, "
            f"overloaded={len(report.alerts.overloaded_nodes)}, "
            f"{elapsed_ms:.2f}ms",
            extra={
                "correlation_id": correlation_id,
                "layer": "utilization",
                "context": {
                    "nodes": len(entries),
                    "rejected": len(warnings),
                    "latency_ms": round(elapsed_ms, 2),
                },
            },
        )
        return report

    def _node_entry(
        self, node: Resource, used: ResourceAmounts, vm_count: int
    ) -> NodeUtilization:
        capacity = node.capacity or CapacityTotals()
        raw = (
            _pct(used.cores, capacity.cores),
            _pct(used.memory, capacity.memory),
            _pct(used.disk, capacity.disk),
        )
        return NodeUtilization(
            node=node.name,
            total=ResourceAmounts(
                cores=capacity.cores,
                memory=capacity.memory,
                disk=capacity.disk,
            ),
            used=used,
            free=ResourceAmounts(
                cores=max(capacity.cores - used.cores, 0),
                memory=max(capacity.memory - used.memory, 0),
                disk=max(capacity.disk - used.disk, 0),
            ),
            pct=UtilizationPct(
                cores=round(max(raw[0], 0.0), 1),
                memory=round(max(raw[1], 0.0), 1),
                disk=round(max(raw[2], 0.0), 1),
            ),
            status=self._classify(raw),
            vm_count=vm_count,
        )

    def _classify(self, pcts: Iterable[float]) -> NodeStatus:
        """Overloaded if any dimension > 80%, else busy if any > 60%."""
        thresholds = self._config.thresholds
        values = list(pcts)
        if any(p > thresholds.overloaded_pct for p in values):
            return NodeStatus.OVERLOADED
        if any(p > thresholds.busy_pct for p in values):
            return NodeStatus.BUSY
        return NodeStatus.HEALTHY

    # ── Cluster aggregate ───────────────────────────────────────

    def cluster_capacity(
        self,
        nodes: GraphModel,
        workloads: GraphModel,
        utilization: Optional[UtilizationReport] = None,
        correlation_id: str = "",
    ) -> ClusterCapacity:
        """Totals, usage and overall percentages across every valid node."""
        report = utilization or self.utilization(
            nodes, workloads, correlation_id
        )

        def _sum(attr: str, dim: str) -> int:
            return sum(getattr(getattr(e, attr), dim) for e in report.nodes)

        total = ResourceAmounts(
            cores=_sum("total", "cores"),
            memory=_sum("total", "memory"),
            disk=_sum("total", "disk"),
        )
        used = ResourceAmounts(
            cores=_sum("used", "cores"),
            memory=_sum("used", "memory"),
            disk=_sum("used", "disk"),
        )
        free = ResourceAmounts(
            cores=_sum("free", "cores"),
            memory=_sum("free", "memory"),
            disk=_sum("free", "disk"),
        )

        return ClusterCapacity(
            node_count=len(report.nodes),
            vm_count=sum(e.vm_count for e in report.nodes),
            total=total,
            used=used,
            free=free,
            overall_utilization=UtilizationPct(
                cores=round(max(_pct(used.cores, total.cores), 0.0), 1),
                memory=round(max(_pct(used.memory, total.memory), 0.0), 1),
                disk=round(max(_pct(used.disk, total.disk), 0.0), 1),
            ),
            warnings=report.warnings,
        )

    # ── Algorithm 5: Can-Fit ────────────────────────────────────

    def can_fit(
        self,
        nodes: GraphModel,
        workloads: GraphModel,
        request: PlacementRequest,
        exclude: Iterable[str] = (),
        utilization: Optional[UtilizationReport] = None,
        correlation_id: str = "",
    ) -> FitResult:
        """Find nodes with enough free capacity for ``request``.

        A node qualifies when ``total - used >= request`` in all three
        dimensions.  Candidates are ranked by headroom (free cores minus
        requested cores) descending, then node name ascending.

        Args:
            nodes: Capacity node graph.
            workloads: Current workloads.
            request: Capacity asked for.
            exclude: Node names never proposed (e.g. a current host).
            utilization: Pre-computed utilization, reused when given.
            correlation_id: Request correlation ID.

        Returns:
            FitResult; ``best_fit`` is ``""`` when nothing fits.
        """
        report = utilization or self.utilization(
            nodes, workloads, correlation_id
        )
        excluded = set(exclude)

        candidates: List[PlacementCandidate] = []
        for entry in report.nodes:
            if entry.node in excluded:
                continue
            if not self._fits(entry, request):
                continue
            candidates.append(PlacementCandidate(
                node=entry.node,
                cores_after=round(
                    _pct(entry.used.cores + request.cores, entry.total.cores), 1
                ),
                memory_after=round(
                    _pct(entry.used.memory + request.memory,
                         entry.total.memory), 1
                ),
                headroom=entry.total.cores - entry.used.cores - request.cores,
            ))

        candidates.sort(key=lambda c: (-c.headroom, c.node))

        return FitResult(
            candidates=candidates,
            best_fit=candidates[0].node if candidates else "",
            can_place=bool(candidates),
            warnings=report.warnings,
        )

    @staticmethod
    def _fits(entry: NodeUtilization, request: PlacementRequest) -> bool:
        return (
            entry.total.cores - entry.used.cores >= request.cores
            and entry.total.memory - entry.used.memory >= request.memory
            and entry.total.disk - entry.used.disk >= request.disk
        )

    # ── Algorithm 6: Best-Fit ───────────────────────────────────

    def best_fit(
        self,
        nodes: GraphModel,
        workloads: GraphModel,
        new_workloads: PendingWorkloads,
        cumulative: Optional[bool] = None,
        correlation_id: str = "",
    ) -> List[Placement]:
        """Greedily place pending workloads, largest core request first.

        By default every workload is checked against the original
        utilization: placements in the same batch do not consume capacity
        seen by later ones, so two large workloads can both land on a node
        that cannot hold them together.  ``cumulative=True`` charges each
        placement against a working copy instead.

        Args:
            nodes: Capacity node graph.
            workloads: Current workloads.
            new_workloads: Pending workloads (graph or raw table).
            cumulative: Defaults to ``FeatureFlags.cumulative_placement``.
            correlation_id: Request correlation ID.

        Returns:
            One Placement per pending workload, in placement order.
        """
        start = time.perf_counter()
        if cumulative is None:
            cumulative = self._config.features.cumulative_placement

        pending_graph = (
            new_workloads
            if isinstance(new_workloads, GraphModel)
            else GraphModel.from_table(
                new_workloads,
                default_priority=self._config.thresholds.default_priority,
            )
        )
        pending = sorted(
            ((w.name, request_for(w.demand)) for w in pending_graph),
            key=lambda item: -item[1].cores,
        )

        report = self.utilization(nodes, workloads, correlation_id)
        placements: List[Placement] = []
        for name, request in pending:
            fit = self.can_fit(
                nodes, workloads, request,
                utilization=report,
                correlation_id=correlation_id,
            )
            placements.append(Placement(
                workload=name,
                request=request,
                node=fit.best_fit,
                can_place=fit.can_place,
                headroom=fit.candidates[0].headroom if fit.candidates else 0,
            ))
            if cumulative and fit.can_place:
                report = self._charge(report, fit.best_fit, request)

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(
            f"Best-fit placed {sum(p.can_place for p in placements)}/"
            f"{len(placements)} workloads, cumulative={cumulative}, "
            f"{elapsed_ms:.2f}ms",
            extra={
                "correlation_id": correlation_id,
                "layer": "placement",
                "context": {
                    "pending": len(placements),
                    "cumulative": cumulative,
                    "latency_ms": round(elapsed_ms, 2),
                },
            },
        )
        return placements

    def _charge(
        self,
        report: UtilizationReport,
        node_name: str,
        request: PlacementRequest,
    ) -> UtilizationReport:
        """Copy of ``report`` with ``request`` added to one node's usage."""
        entries: List[NodeUtilization] = []
        for entry in report.nodes:
            if entry.node != node_name:
                entries.append(entry)
                continue
            used = ResourceAmounts(
                cores=entry.used.cores + request.cores,
                memory=entry.used.memory + request.memory,
                disk=entry.used.disk + request.disk,
            )
            node = Resource(
                name=entry.node,
                capacity=CapacityTotals(
                    cores=entry.total.cores,
                    memory=entry.total.memory,
                    disk=entry.total.disk,
                ),
            )
            entries.append(self._node_entry(node, used, entry.vm_count + 1))

        return UtilizationReport(
            nodes=entries,
            alerts=CapacityAlerts(
                overloaded_nodes=[
                    e.node for e in entries
                    if e.status == NodeStatus.OVERLOADED
                ],
                busy_nodes=[
                    e.node for e in entries if e.status == NodeStatus.BUSY
                ],
            ),
            warnings=report.warnings,
        )

    # ── Algorithm 7: Rebalance ──────────────────────────────────

    def rebalance_suggestions(
        self,
        nodes: GraphModel,
        workloads: GraphModel,
        utilization: Optional[UtilizationReport] = None,
        correlation_id: str = "",
    ) -> List[RebalanceSuggestion]:
        """Propose moves for workloads hosted on overloaded nodes.

        Each workload is matched independently against current usage with
        its own host excluded.  Workloads with nowhere to go are omitted.
        Suggestions are ordered by priority ascending, then input order.
        """
        report = utilization or self.utilization(
            nodes, workloads, correlation_id
        )
        overloaded = set(report.alerts.overloaded_nodes)

        suggestions: List[RebalanceSuggestion] = []
        for workload in workloads:
            if workload.host not in overloaded:
                continue
            fit = self.can_fit(
                nodes, workloads, request_for(workload.demand),
                exclude=(workload.host,),
                utilization=report,
                correlation_id=correlation_id,
            )
            if not fit.candidates:
                continue
            target = fit.candidates[0]
            suggestions.append(RebalanceSuggestion(
                workload=workload.name,
                from_node=workload.host,
                to_node=target.node,
                priority=workload.priority,
                source_status=NodeStatus.OVERLOADED,
                headroom=target.headroom,
                cores_after=target.cores_after,
                memory_after=target.memory_after,
            ))

        suggestions.sort(key=lambda s: s.priority)

        logger.debug(
            f"Rebalance: {len(suggestions)} suggestions for "
            f"{len(overloaded)} overloaded nodes",
            extra={
                "correlation_id": correlation_id,
                "layer": "placement",
                "context": {
                    "overloaded_nodes": sorted(overloaded),
                    "suggestions": len(suggestions),
                },
            },
        )
        return suggestions
