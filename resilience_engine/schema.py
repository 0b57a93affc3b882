"""
File: schema.py
Purpose: Type-safe Pydantic v2 schemas for the resilience engine.
Dependencies: pydantic >=2.0
Performance: Schema validation <1ms per object

Defines the normalized resource record consumed by every analyzer and the
output contracts for bottleneck ranking, cascade simulation, capacity
planning, resilience scoring and validation.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ═══════════════════════════════════════════════════════════════
#  ENUMS
# ═══════════════════════════════════════════════════════════════


class NodeStatus(str, Enum):
    """Health tier of a capacity node."""
    HEALTHY = "healthy"
    BUSY = "busy"
    OVERLOADED = "overloaded"


class Assessment(str, Enum):
    """Qualitative band for a resilience score."""
    ROBUST = "robust"
    MODERATE = "moderate"
    FRAGILE = "fragile"
    CRITICAL = "critical"


class WarningCode(str, Enum):
    """Kind of non-fatal diagnostic raised for a snapshot."""
    INVALID_CAPACITY = "invalid_capacity"
    DANGLING_DEPENDENCY = "dangling_dependency"
    SELF_DEPENDENCY = "self_dependency"


# ═══════════════════════════════════════════════════════════════
#  NORMALIZED RESOURCE
# ═══════════════════════════════════════════════════════════════


class Demand(BaseModel):
    """Capacity demand of a workload (cores, memory MB, disk GB)."""
    model_config = ConfigDict(frozen=True)

    cores: int = Field(ge=0, default=0)
    memory: int = Field(ge=0, default=0)
    disk: int = Field(ge=0, default=0)


class CapacityTotals(BaseModel):
    """Capacity offered by a node.

    Totals are kept as given; non-positive values are rejected by the
    planner with a ``ValidationWarning`` rather than at load time.
    """
    model_config = ConfigDict(frozen=True)

    cores: int = 0
    memory: int = 0
    disk: int = 0

    @property
    def is_valid(self) -> bool:
        return self.cores > 0 and self.memory > 0 and self.disk > 0


class Resource(BaseModel):
    """A resource after normalization.

    Example::

        Resource(
            name="web",
            host="pve1",
            depends_on=frozenset({"dns"}),
            demand=Demand(cores=2, memory=2048, disk=20),
        )
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    host: str = ""
    depends_on: FrozenSet[str] = Field(default_factory=frozenset)
    demand: Demand = Field(default_factory=Demand)
    capacity: Optional[CapacityTotals] = None
    priority: int = 5
    replica: str = ""
    replica_of: str = ""


class PlacementRequest(BaseModel):
    """Capacity asked for by an inbound workload.

    Example::

        PlacementRequest(cores=16, memory=32768, disk=200)
    """
    model_config = ConfigDict(frozen=True)

    cores: int = Field(..., ge=0)
    memory: int = Field(..., ge=0)
    disk: int = Field(..., ge=0)


# ═══════════════════════════════════════════════════════════════
#  DIAGNOSTICS
# ═══════════════════════════════════════════════════════════════


class ValidationWarning(BaseModel):
    """A non-fatal diagnostic passed back alongside a result."""
    code: WarningCode
    resource: str
    message: str = ""


class ValidatorError(BaseModel):
    """A single failed invariant check on an engine report."""
    check_number: int
    check_name: str
    error_description: str
    expected: str
    actual: str


class ValidationResult(BaseModel):
    """Output of the report invariant checks."""
    validation_passed: bool
    checks_executed: int = Field(ge=0)
    errors: List[ValidatorError] = Field(default_factory=list)
    validation_latency_ms: float = Field(ge=0.0, default=0.0)


# ═══════════════════════════════════════════════════════════════
#  DEPENDENCY ANALYSIS SCHEMAS
# ═══════════════════════════════════════════════════════════════


class FanInResult(BaseModel):
    """Resources that declare a dependency on ``target``."""
    target: str
    dependents: List[str] = Field(default_factory=list)
    count: int = Field(ge=0, default=0)


class RankedResource(BaseModel):
    """One entry of a fan-in ranking."""
    name: str
    fan_in: int = Field(ge=0, default=0)


class BottleneckSummary(BaseModel):
    total_resources: int = Field(ge=0, default=0)
    critical_count: int = Field(ge=0, default=0)
    important_count: int = Field(ge=0, default=0)
    leaf_count: int = Field(ge=0, default=0)
    root_count: int = Field(ge=0, default=0)
    max_fan_in: int = Field(ge=0, default=0)


class BottleneckReport(BaseModel):
    """Fan-in ranking with criticality classes.

    ``leaves`` have fan-in 0; ``roots`` have no outgoing dependencies.
    """
    ranked: List[RankedResource] = Field(default_factory=list)
    critical: List[RankedResource] = Field(default_factory=list)
    important: List[RankedResource] = Field(default_factory=list)
    leaves: List[str] = Field(default_factory=list)
    roots: List[str] = Field(default_factory=list)
    summary: BottleneckSummary = Field(default_factory=BottleneckSummary)


class CascadeWave(BaseModel):
    """Resources newly failed in one propagation step."""
    wave: int = Field(ge=0)
    failed: List[str] = Field(default_factory=list)


class CascadeResult(BaseModel):
    """Wave set produced by a cascade simulation.

    Example::

        CascadeResult(
            failed_resource="dns",
            waves=[
                CascadeWave(wave=0, failed=["dns"]),
                CascadeWave(wave=1, failed=["web", "api"]),
            ],
            total_affected=3,
            cascade_percent=75,
            survivors=["cache"],
        )
    """
    failed_resource: str
    waves: List[CascadeWave] = Field(default_factory=list)
    total_affected: int = Field(ge=0, default=0)
    cascade_percent: int = Field(ge=0, default=0)
    survivors: List[str] = Field(default_factory=list)
    max_waves: int = Field(ge=0, default=5)
    truncated: bool = False


class SinglePointOfFailure(BaseModel):
    """A depended-upon resource without any replica."""
    name: str
    fan_in: int = Field(ge=0, default=0)
    reason: str = ""


# ═══════════════════════════════════════════════════════════════
#  RESILIENCE SCHEMAS
# ═══════════════════════════════════════════════════════════════


class ResilienceDetails(BaseModel):
    total_resources: int = Field(ge=0, default=0)
    critical_count: int = Field(ge=0, default=0)
    critical_penalty: float = Field(ge=0.0, default=0.0)
    avg_cascade_impact: float = Field(ge=0.0, default=0.0)
    max_fan_in: int = Field(ge=0, default=0)
    cascade_impacts: Dict[str, int] = Field(default_factory=dict)


class ResilienceReport(BaseModel):
    """Composite 0–100 resilience score."""
    score: float = Field(ge=0.0, le=100.0, default=100.0)
    assessment: Assessment = Assessment.ROBUST
    details: ResilienceDetails = Field(default_factory=ResilienceDetails)
    recommendations: List[str] = Field(default_factory=list)


# ═══════════════════════════════════════════════════════════════
#  CAPACITY SCHEMAS
# ═══════════════════════════════════════════════════════════════


class ResourceAmounts(BaseModel):
    cores: int = 0
    memory: int = 0
    disk: int = 0


class UtilizationPct(BaseModel):
    cores: float = Field(ge=0.0, default=0.0)
    memory: float = Field(ge=0.0, default=0.0)
    disk: float = Field(ge=0.0, default=0.0)


class NodeUtilization(BaseModel):
    """Derived usage of one capacity node."""
    node: str
    total: ResourceAmounts = Field(default_factory=ResourceAmounts)
    used: ResourceAmounts = Field(default_factory=ResourceAmounts)
    free: ResourceAmounts = Field(default_factory=ResourceAmounts)
    pct: UtilizationPct = Field(default_factory=UtilizationPct)
    status: NodeStatus = NodeStatus.HEALTHY
    vm_count: int = Field(ge=0, default=0)


class CapacityAlerts(BaseModel):
    overloaded_nodes: List[str] = Field(default_factory=list)
    busy_nodes: List[str] = Field(default_factory=list)


class UtilizationReport(BaseModel):
    nodes: List[NodeUtilization] = Field(default_factory=list)
    alerts: CapacityAlerts = Field(default_factory=CapacityAlerts)
    warnings: List[ValidationWarning] = Field(default_factory=list)

    def get(self, node: str) -> Optional[NodeUtilization]:
        for entry in self.nodes:
            if entry.node == node:
                return entry
        return None


class ClusterCapacity(BaseModel):
    """Cluster-wide capacity aggregate."""
    node_count: int = Field(ge=0, default=0)
    vm_count: int = Field(ge=0, default=0)
    total: ResourceAmounts = Field(default_factory=ResourceAmounts)
    used: ResourceAmounts = Field(default_factory=ResourceAmounts)
    free: ResourceAmounts = Field(default_factory=ResourceAmounts)
    overall_utilization: UtilizationPct = Field(
        default_factory=UtilizationPct
    )
    warnings: List[ValidationWarning] = Field(default_factory=list)


class PlacementCandidate(BaseModel):
    """A node able to host a request.

    ``cores_after``/``memory_after`` are projected utilization percentages.
    """
    node: str
    cores_after: float = Field(ge=0.0, default=0.0)
    memory_after: float = Field(ge=0.0, default=0.0)
    headroom: int = Field(ge=0, default=0)


class FitResult(BaseModel):
    candidates: List[PlacementCandidate] = Field(default_factory=list)
    best_fit: str = ""
    can_place: bool = False
    warnings: List[ValidationWarning] = Field(default_factory=list)


class Placement(BaseModel):
    """Outcome of placing one pending workload."""
    workload: str
    request: PlacementRequest
    node: str = ""
    can_place: bool = False
    headroom: int = Field(ge=0, default=0)


class RebalanceSuggestion(BaseModel):
    workload: str
    from_node: str
    to_node: str
    priority: int = 5
    source_status: NodeStatus = NodeStatus.OVERLOADED
    headroom: int = Field(ge=0, default=0)
    cores_after: float = Field(ge=0.0, default=0.0)
    memory_after: float = Field(ge=0.0, default=0.0)


# ═══════════════════════════════════════════════════════════════
#  ENGINE OUTPUT
# ═══════════════════════════════════════════════════════════════


class EngineReport(BaseModel):
    """Everything the engine derives from one snapshot."""
    correlation_id: str = ""
    bottlenecks: BottleneckReport = Field(default_factory=BottleneckReport)
    resilience: ResilienceReport = Field(default_factory=ResilienceReport)
    single_points_of_failure: List[SinglePointOfFailure] = Field(
        default_factory=list
    )
    utilization: UtilizationReport = Field(
        default_factory=UtilizationReport
    )
    cluster: ClusterCapacity = Field(default_factory=ClusterCapacity)
    rebalance: List[RebalanceSuggestion] = Field(default_factory=list)
    diagnostics: List[ValidationWarning] = Field(default_factory=list)
    validation: Optional[ValidationResult] = None
    pipeline_latency_ms: float = Field(ge=0.0, default=0.0)
