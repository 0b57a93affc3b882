"""
File: validator.py
Purpose: Snapshot diagnostics and invariant checks for engine reports.
Dependencies: Schema models only
Performance: <5ms, O(V + E)

Snapshot diagnostics (non-fatal, returned alongside results):
  invalid_capacity, dangling_dependency, self_dependency

Report checks:
  Bottleneck   (4 checks): ordering, disjoint classes, summary integrity
  Resilience   (3 checks): score range, assessment band, impact range
  Capacity     (3 checks): free within total, alert integrity, moves
  Cascade      (3 checks): disjoint waves, affected count, numbering
"""

from __future__ import annotations

import time
from typing import List, Optional, Sequence, Set

from resilience_engine.config import ResilienceEngineConfig
from resilience_engine.core.graph_model import GraphModel
from resilience_engine.core.resilience_scorer import assess
from resilience_engine.schema import (
    CascadeResult,
    EngineReport,
    NodeStatus,
    ValidationResult,
    ValidationWarning,
    ValidatorError,
    WarningCode,
)
from resilience_engine.telemetry import get_logger

logger = get_logger("resilience_engine.validator")


class SnapshotValidator:
    """Collect non-fatal diagnostics about an input snapshot.

    Nothing here raises or alters the snapshot; the analyzers behave the
    same with or without these warnings.

    Example::

        warnings = SnapshotValidator().inspect(graph)
    """

    def inspect(
        self, graph: GraphModel, correlation_id: str = ""
    ) -> List[ValidationWarning]:
        warnings: List[ValidationWarning] = []
        for resource in graph:
            capacity = resource.capacity
            if capacity is not None and not capacity.is_valid:
                warnings.append(ValidationWarning(
                    code=WarningCode.INVALID_CAPACITY,
                    resource=resource.name,
                    message="capacity totals must be positive",
                ))
            if resource.name in resource.depends_on:
                warnings.append(ValidationWarning(
                    code=WarningCode.SELF_DEPENDENCY,
                    resource=resource.name,
                    message="resource depends on itself",
                ))
            for dep in sorted(resource.depends_on):
                if dep not in graph:
                    warnings.append(ValidationWarning(
                        code=WarningCode.DANGLING_DEPENDENCY,
                        resource=resource.name,
                        message=f"depends on unknown resource '{dep}'",
                    ))

        if warnings:
            logger.info(
                f"Snapshot diagnostics: {len(warnings)} warnings",
                extra={
                    "correlation_id": correlation_id,
                    "layer": "validation",
                    "context": {
                        "codes": sorted({w.code.value for w in warnings}),
                    },
                },
            )
        return warnings


class ReportValidator:
    """Validates an EngineReport against its structural invariants.

    Validation failures are informational: they do NOT block output.

    Args:
        config: Engine configuration.

    Example::

        result = ReportValidator().validate(report)
        print(result.validation_passed)
    """

    def __init__(
        self, config: Optional[ResilienceEngineConfig] = None
    ) -> None:
        self._config = config or ResilienceEngineConfig()

    def validate(
        self,
        report: EngineReport,
        cascades: Sequence[CascadeResult] = (),
        graph_size: Optional[int] = None,
        correlation_id: str = "",
    ) -> ValidationResult:
        """Run all checks.

        Args:
            report: Assembled engine report.
            cascades: Cascade results to check as well.
            graph_size: Resource count bounding ``total_affected``.
            correlation_id: Request correlation ID.

        Returns:
            ValidationResult listing failed checks.
        """
        start = time.perf_counter()
        errors: List[ValidatorError] = []
        checks = 0

        bottlenecks = report.bottlenecks
        ranked = bottlenecks.ranked

        # ── Bottleneck Checks (1–4) ─────────────────────────────

        # 1. ranked is fan-in descending
        checks += 1
        for i in range(len(ranked) - 1):
            if ranked[i].fan_in < ranked[i + 1].fan_in:
                errors.append(ValidatorError(
                    check_number=1,
                    check_name="ranked_descending",
                    error_description="ranking is not fan-in descending",
                    expected=f"{ranked[i].fan_in} >= {ranked[i + 1].fan_in}",
                    actual=f"{ranked[i].name} < {ranked[i + 1].name}",
                ))
                break

        # 2. critical and important are disjoint
        checks += 1
        overlap = {e.name for e in bottlenecks.critical} & {
            e.name for e in bottlenecks.important
        }
        if overlap:
            errors.append(ValidatorError(
                check_number=2,
                check_name="classes_disjoint",
                error_description="resource classified twice",
                expected="no overlap",
                actual=", ".join(sorted(overlap)),
            ))

        # 3. max_fan_in is the top of the ranking
        checks += 1
        expected_max = ranked[0].fan_in if ranked else 0
        if bottlenecks.summary.max_fan_in != expected_max:
            errors.append(ValidatorError(
                check_number=3,
                check_name="max_fan_in",
                error_description="summary max_fan_in mismatch",
                expected=str(expected_max),
                actual=str(bottlenecks.summary.max_fan_in),
            ))

        # 4. summary counts match lists
        checks += 1
        summary = bottlenecks.summary
        if (
            summary.critical_count != len(bottlenecks.critical)
            or summary.important_count != len(bottlenecks.important)
            or summary.total_resources != len(ranked)
        ):
            errors.append(ValidatorError(
                check_number=4,
                check_name="summary_counts",
                error_description="summary counts do not match lists",
                expected=(
                    f"{len(ranked)}/{len(bottlenecks.critical)}/"
                    f"{len(bottlenecks.important)}"
                ),
                actual=(
                    f"{summary.total_resources}/{summary.critical_count}/"
                    f"{summary.important_count}"
                ),
            ))

        # ── Resilience Checks (5–7) ─────────────────────────────

        resilience = report.resilience

        # 5. score within [0, 100]
        checks += 1
        if not 0.0 <= resilience.score <= 100.0:
            errors.append(ValidatorError(
                check_number=5,
                check_name="score_range",
                error_description="score outside [0, 100]",
                expected="0..100",
                actual=str(resilience.score),
            ))

        # 6. assessment matches score band
        checks += 1
        band = assess(resilience.score)
        if resilience.assessment != band:
            errors.append(ValidatorError(
                check_number=6,
                check_name="assessment_band",
                error_description="assessment does not match score",
                expected=band.value,
                actual=resilience.assessment.value,
            ))

        # 7. cascade impacts are percentages
        checks += 1
        bad = [
            name for name, pct in resilience.details.cascade_impacts.items()
            if not 0 <= pct <= 100
        ]
        if bad:
            errors.append(ValidatorError(
                check_number=7,
                check_name="cascade_impact_range",
                error_description="cascade impact outside [0, 100]",
                expected="0..100",
                actual=", ".join(bad),
            ))

        # ── Capacity Checks (8–10) ──────────────────────────────

        # 8. free never exceeds total, never negative
        checks += 1
        for entry in report.utilization.nodes:
            if (
                entry.free.cores > entry.total.cores
                or entry.free.memory > entry.total.memory
                or entry.free.disk > entry.total.disk
                or min(entry.free.cores, entry.free.memory,
                       entry.free.disk) < 0
            ):
                errors.append(ValidatorError(
                    check_number=8,
                    check_name="free_within_total",
                    error_description=f"invalid free capacity on {entry.node}",
                    expected="0 <= free <= total",
                    actual=str(entry.free.model_dump()),
                ))

        # 9. alerts match statuses
        checks += 1
        overloaded = [
            e.node for e in report.utilization.nodes
            if e.status == NodeStatus.OVERLOADED
        ]
        busy = [
            e.node for e in report.utilization.nodes
            if e.status == NodeStatus.BUSY
        ]
        alerts = report.utilization.alerts
        if alerts.overloaded_nodes != overloaded or alerts.busy_nodes != busy:
            errors.append(ValidatorError(
                check_number=9,
                check_name="alert_integrity",
                error_description="alert lists disagree with node statuses",
                expected=f"{overloaded} / {busy}",
                actual=f"{alerts.overloaded_nodes} / {alerts.busy_nodes}",
            ))

        # 10. rebalance never targets the source node
        checks += 1
        loops = [s.workload for s in report.rebalance if s.from_node == s.to_node]
        if loops:
            errors.append(ValidatorError(
                check_number=10,
                check_name="rebalance_moves",
                error_description="suggestion moves a workload onto its host",
                expected="from_node != to_node",
                actual=", ".join(loops),
            ))

        # ── Cascade Checks (11–13) ──────────────────────────────

        checks += 3
        for cascade in cascades:
            errors.extend(self._check_cascade(cascade, graph_size))

        elapsed_ms = (time.perf_counter() - start) * 1000

        logger.debug(
            f"Validation complete: {checks} checks, {len(errors)} errors",
            extra={
                "correlation_id": correlation_id,
                "layer": "validation",
                "context": {
                    "checks": checks,
                    "errors": len(errors),
                    "latency_ms": round(elapsed_ms, 2),
                },
            },
        )

        return ValidationResult(
            validation_passed=not errors,
            checks_executed=checks,
            errors=errors,
            validation_latency_ms=round(elapsed_ms, 2),
        )

    @staticmethod
    def _check_cascade(
        cascade: CascadeResult, graph_size: Optional[int]
    ) -> List[ValidatorError]:
        errors: List[ValidatorError] = []
        seen: Set[str] = set()
        duplicated: Set[str] = set()
        for wave in cascade.waves:
            for name in wave.failed:
                if name in seen:
                    duplicated.add(name)
                seen.add(name)

        # 11. waves pairwise disjoint
        if duplicated:
            errors.append(ValidatorError(
                check_number=11,
                check_name="waves_disjoint",
                error_description=(
                    f"cascade from {cascade.failed_resource} repeats resources"
                ),
                expected="each resource in one wave",
                actual=", ".join(sorted(duplicated)),
            ))

        # 12. total_affected equals wave membership and fits the graph
        counted = sum(len(w.failed) for w in cascade.waves)
        if counted != cascade.total_affected or (
            graph_size is not None and cascade.total_affected > graph_size
        ):
            errors.append(ValidatorError(
                check_number=12,
                check_name="total_affected",
                error_description=(
                    f"cascade from {cascade.failed_resource} miscounted"
                ),
                expected=str(counted),
                actual=str(cascade.total_affected),
            ))

        # 13. waves numbered 0..k without gaps
        numbers = [w.wave for w in cascade.waves]
        if numbers != list(range(len(numbers))):
            errors.append(ValidatorError(
                check_number=13,
                check_name="wave_numbering",
                error_description="wave numbers are not consecutive from 0",
                expected=str(list(range(len(numbers)))),
                actual=str(numbers),
            ))
        return errors

