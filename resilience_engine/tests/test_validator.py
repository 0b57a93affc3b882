"""Tests for SnapshotValidator and ReportValidator (13 report checks)."""

import pytest

from resilience_engine.config import FeatureFlags, ResilienceEngineConfig
from resilience_engine.core.graph_model import GraphModel
from resilience_engine.engine import ResilienceEngine
from resilience_engine.schema import (
    Assessment,
    CascadeResult,
    CascadeWave,
    EngineReport,
    RankedResource,
    RebalanceSuggestion,
    WarningCode,
)
from resilience_engine.tests.conftest import make_node, make_vm
from resilience_engine.validator import ReportValidator, SnapshotValidator


@pytest.fixture
def validator(config: ResilienceEngineConfig) -> ReportValidator:
    return ReportValidator(config)


@pytest.fixture
def report() -> EngineReport:
    engine = ResilienceEngine(ResilienceEngineConfig(
        features=FeatureFlags(enable_validation=False)
    ))
    return engine.analyze({
        "pve1": make_node(cores=10),
        "pve2": make_node(cores=10),
        "db": make_vm("pve1", cores=9),
        "api": make_vm("pve2", cores=2, depends=["db"]),
        "web": make_vm("pve2", cores=1, depends=["db", "api"]),
        "worker": make_vm("pve2", depends=["db"]),
    })


def _failed_checks(result) -> list[int]:
    return sorted({e.check_number for e in result.errors})


class TestSnapshotValidator:

    def test_clean_snapshot(self, dns_graph: GraphModel) -> None:
        assert SnapshotValidator().inspect(dns_graph) == []

    def test_dangling_dependency(self) -> None:
        graph = GraphModel.from_table({"web": {"depends": ["ghost"]}})
        warnings = SnapshotValidator().inspect(graph)
        assert [(w.code, w.resource) for w in warnings] == [
            (WarningCode.DANGLING_DEPENDENCY, "web"),
        ]
        assert "ghost" in warnings[0].message

    def test_self_dependency(self) -> None:
        graph = GraphModel.from_table({"loop": {"depends": ["loop"]}})
        codes = [w.code for w in SnapshotValidator().inspect(graph)]
        assert codes == [WarningCode.SELF_DEPENDENCY]

    def test_invalid_capacity(self) -> None:
        graph = GraphModel.from_table({"pve1": make_node(cores=-4)})
        codes = [w.code for w in SnapshotValidator().inspect(graph)]
        assert codes == [WarningCode.INVALID_CAPACITY]


class TestReportValidator:

    def test_engine_report_passes(
        self, validator: ReportValidator, report: EngineReport
    ) -> None:
        result = validator.validate(report)
        assert result.validation_passed is True
        assert result.checks_executed == 13
        assert result.errors == []

    def test_ranking_order(
        self, validator: ReportValidator, report: EngineReport
    ) -> None:
        bottlenecks = report.bottlenecks.model_copy(
            update={"ranked": list(reversed(report.bottlenecks.ranked))}
        )
        result = validator.validate(
            report.model_copy(update={"bottlenecks": bottlenecks})
        )
        assert 1 in _failed_checks(result)

    def test_disjoint_classes(
        self, validator: ReportValidator, report: EngineReport
    ) -> None:
        bottlenecks = report.bottlenecks.model_copy(
            update={"important": list(report.bottlenecks.critical)}
        )
        result = validator.validate(
            report.model_copy(update={"bottlenecks": bottlenecks})
        )
        assert 2 in _failed_checks(result)

    def test_max_fan_in(
        self, validator: ReportValidator, report: EngineReport
    ) -> None:
        summary = report.bottlenecks.summary.model_copy(
            update={"max_fan_in": 99}
        )
        bottlenecks = report.bottlenecks.model_copy(
            update={"summary": summary}
        )
        result = validator.validate(
            report.model_copy(update={"bottlenecks": bottlenecks})
        )
        assert _failed_checks(result) == [3]

    def test_summary_counts(
        self, validator: ReportValidator, report: EngineReport
    ) -> None:
        bottlenecks = report.bottlenecks.model_copy(
            update={"critical": [RankedResource(name="db", fan_in=3)] * 2}
        )
        result = validator.validate(
            report.model_copy(update={"bottlenecks": bottlenecks})
        )
        assert 4 in _failed_checks(result)

    def test_score_range(
        self, validator: ReportValidator, report: EngineReport
    ) -> None:
        resilience = report.resilience.model_copy(update={"score": 120.0})
        result = validator.validate(
            report.model_copy(update={"resilience": resilience})
        )
        assert 5 in _failed_checks(result)

    def test_assessment_band(
        self, validator: ReportValidator, report: EngineReport
    ) -> None:
        resilience = report.resilience.model_copy(
            update={"score": 95.0, "assessment": Assessment.CRITICAL}
        )
        result = validator.validate(
            report.model_copy(update={"resilience": resilience})
        )
        assert _failed_checks(result) == [6]

    def test_band_uses_unrounded_score(
        self, validator: ReportValidator
    ) -> None:
        table = {"hub": {}}
        table.update({f"dep-{i}": {"depends": ["hub"]} for i in range(37)})
        table.update({f"solo-{i}": {} for i in range(161)})
        report = ResilienceEngine().analyze(table)
        assert report.resilience.score < 80.0
        assert report.resilience.assessment == Assessment.MODERATE
        assert validator.validate(report).validation_passed is True

    def test_cascade_impact_range(
        self, validator: ReportValidator, report: EngineReport
    ) -> None:
        details = report.resilience.details.model_copy(
            update={"cascade_impacts": {"db": 150}}
        )
        resilience = report.resilience.model_copy(update={"details": details})
        result = validator.validate(
            report.model_copy(update={"resilience": resilience})
        )
        assert _failed_checks(result) == [7]

    def test_free_within_total(
        self, validator: ReportValidator, report: EngineReport
    ) -> None:
        entry = report.utilization.nodes[0]
        bad = entry.model_copy(update={
            "free": entry.free.model_copy(update={"cores": entry.total.cores + 1})
        })
        utilization = report.utilization.model_copy(
            update={"nodes": [bad] + report.utilization.nodes[1:]}
        )
        result = validator.validate(
            report.model_copy(update={"utilization": utilization})
        )
        assert _failed_checks(result) == [8]

    def test_alert_integrity(
        self, validator: ReportValidator, report: EngineReport
    ) -> None:
        alerts = report.utilization.alerts.model_copy(
            update={"overloaded_nodes": []}
        )
        utilization = report.utilization.model_copy(update={"alerts": alerts})
        result = validator.validate(
            report.model_copy(update={"utilization": utilization})
        )
        assert _failed_checks(result) == [9]

    def test_rebalance_loop(
        self, validator: ReportValidator, report: EngineReport
    ) -> None:
        loop = RebalanceSuggestion(
            workload="db", from_node="pve1", to_node="pve1"
        )
        result = validator.validate(
            report.model_copy(update={"rebalance": [loop]})
        )
        assert _failed_checks(result) == [10]


class TestCascadeChecks:

    def test_real_cascade_passes(
        self, validator: ReportValidator, report: EngineReport
    ) -> None:
        engine = ResilienceEngine()
        graph = GraphModel.from_table({
            "db": {}, "api": {"depends": ["db"]},
        })
        cascade = engine.analyzer.cascade(graph, "db")
        result = validator.validate(report, cascades=[cascade], graph_size=2)
        assert result.validation_passed is True

    def test_repeated_resource(
        self, validator: ReportValidator, report: EngineReport
    ) -> None:
        cascade = CascadeResult(
            failed_resource="a",
            waves=[
                CascadeWave(wave=0, failed=["a"]),
                CascadeWave(wave=1, failed=["b", "a"]),
            ],
            total_affected=3,
        )
        assert _failed_checks(
            validator.validate(report, cascades=[cascade])
        ) == [11]

    def test_miscounted_total(
        self, validator: ReportValidator, report: EngineReport
    ) -> None:
        cascade = CascadeResult(
            failed_resource="a",
            waves=[CascadeWave(wave=0, failed=["a"])],
            total_affected=2,
        )
        assert _failed_checks(
            validator.validate(report, cascades=[cascade])
        ) == [12]

    def test_total_exceeds_graph(
        self, validator: ReportValidator, report: EngineReport
    ) -> None:
        cascade = CascadeResult(
            failed_resource="a",
            waves=[
                CascadeWave(wave=0, failed=["a"]),
                CascadeWave(wave=1, failed=["b", "c"]),
            ],
            total_affected=3,
        )
        result = validator.validate(report, cascades=[cascade], graph_size=2)
        assert _failed_checks(result) == [12]

    def test_wave_numbering(
        self, validator: ReportValidator, report: EngineReport
    ) -> None:
        cascade = CascadeResult(
            failed_resource="a",
            waves=[
                CascadeWave(wave=0, failed=["a"]),
                CascadeWave(wave=2, failed=["b"]),
            ],
            total_affected=2,
        )
        assert _failed_checks(
            validator.validate(report, cascades=[cascade])
        ) == [13]
