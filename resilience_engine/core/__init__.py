"""Core deterministic algorithms for resilience and capacity analysis."""

from resilience_engine.core.capacity_planner import CapacityPlanner
from resilience_engine.core.dependency_analyzer import DependencyAnalyzer
from resilience_engine.core.graph_model import GraphModel
from resilience_engine.core.resilience_scorer import ResilienceScorer

__all__ = [
    "CapacityPlanner",
    "DependencyAnalyzer",
    "GraphModel",
    "ResilienceScorer",
]
