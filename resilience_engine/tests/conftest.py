"""
conftest.py — shared fixtures for resilience engine tests.
"""

from __future__ import annotations

from typing import Any, Dict

import pytest

from resilience_engine.config import ResilienceEngineConfig
from resilience_engine.core.capacity_planner import CapacityPlanner
from resilience_engine.core.dependency_analyzer import DependencyAnalyzer
from resilience_engine.core.graph_model import GraphModel


# ─── Helper factories ───────────────────────────────────────


def make_node(
    cores: int = 64, memory: int = 262144, disk: int = 4000
) -> Dict[str, Any]:
    """Capacity node record with sane defaults."""
    return {
        "cores_total": cores,
        "memory_total": memory,
        "storage_total": disk,
    }


def make_vm(
    host: str,
    cores: int = 0,
    memory: int = 0,
    disk: int = 0,
    **extra: Any,
) -> Dict[str, Any]:
    """Workload record hosted on ``host``."""
    return {
        "host": host,
        "cores": cores,
        "memory": memory,
        "disk": disk,
        **extra,
    }


# ─── Fixtures ───────────────────────────────────────────────


@pytest.fixture
def config() -> ResilienceEngineConfig:
    return ResilienceEngineConfig()


@pytest.fixture
def analyzer(config: ResilienceEngineConfig) -> DependencyAnalyzer:
    return DependencyAnalyzer(config)


@pytest.fixture
def planner(config: ResilienceEngineConfig) -> CapacityPlanner:
    return CapacityPlanner(config)


@pytest.fixture
def dns_graph() -> GraphModel:
    """dns <- web, dns <- api <- cache."""
    return GraphModel.from_table({
        "dns": {"depends": []},
        "web": {"depends": ["dns"]},
        "api": {"depends": ["dns"]},
        "cache": {"depends": ["api"]},
    })


@pytest.fixture
def empty_graph() -> GraphModel:
    return GraphModel.from_table({})
